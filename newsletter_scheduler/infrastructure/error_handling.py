"""Unified error handling utilities for the newsletter schedule engine."""

import functools
from typing import Any, Callable, Dict, Optional, TypeVar, cast

from newsletter_scheduler.infrastructure.logging import get_logger

F = TypeVar('F', bound=Callable[..., Any])
logger = get_logger(__name__)


class SchedulerError(Exception):
    """Base exception for schedule engine errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ConfigurationError(SchedulerError):
    """A newsletter section cannot be scheduled as configured."""


class DeliveryNotFoundError(SchedulerError):
    """No delivery exists with the requested id."""


class ScheduleContinuityError(SchedulerError):
    """The next delivery of a recurring schedule could not be created."""


class TransportError(SchedulerError):
    """The mail transport could not be reached or refused the request."""


class CollectorError(SchedulerError):
    """The content collection service failed."""


def handle_service_errors(
    service_name: str,
    log_level: str = "error",
    reraise: bool = True
) -> Callable[[F], F]:
    """
    Decorator for service-level error handling.

    Args:
        service_name: Name of the service for logging context
        log_level: Logging level ('error', 'warning', 'info')
        reraise: Whether to re-raise the exception after logging

    Usage:
        @handle_service_errors("Materializer")
        async def materialize_all(self, now): ...
    """
    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                log_func = getattr(logger, log_level, logger.error)
                log_func(
                    f"Error in {service_name}.{func.__name__}",
                    error=str(e),
                    exception_type=type(e).__name__,
                    exc_info=True,
                )

                if reraise:
                    raise
                return None

        return cast(F, wrapper)
    return decorator

