"""Infrastructure layer for external integrations and data persistence."""

from .api_clients import DryRunTransport, HttpContentCollector, ResendClient
from .config import ApplicationConfig, load_config
from .database import Database
from .error_handling import SchedulerError, handle_service_errors
from .logging import setup_logging

__all__ = [
    "Database",
    "DryRunTransport",
    "HttpContentCollector",
    "ResendClient",
    "ApplicationConfig",
    "load_config",
    "setup_logging",
    "handle_service_errors",
    "SchedulerError",
]
