"""LangGraph workflow agents for delivery dispatch."""

from .recorder import record_failure, record_sent
from .scheduler import build_next_delivery, spawn_next
from .sender import send_newsletter
from .validator import validate_delivery

__all__ = [
    "record_failure",
    "record_sent",
    "build_next_delivery",
    "spawn_next",
    "send_newsletter",
    "validate_delivery",
]
