"""LangGraph workflows for the newsletter schedule engine."""

from .dispatch import create_dispatch_workflow

__all__ = [
    "create_dispatch_workflow",
]
