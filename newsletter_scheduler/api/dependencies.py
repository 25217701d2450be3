"""Request dependencies shared by the trigger endpoints."""

import functools
import secrets
from typing import Annotated, Any, Callable, Optional, TypeVar, cast

from fastapi import Depends, Header, HTTPException, Request

from newsletter_scheduler.infrastructure.error_handling import SchedulerError
from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.services.engine import ScheduleEngine

F = TypeVar('F', bound=Callable[..., Any])
logger = get_logger(__name__)


def get_engine(request: Request) -> ScheduleEngine:
    """Dependency to get the schedule engine."""
    return request.app.state.engine


def require_api_key(
    request: Request,
    x_api_key: Annotated[Optional[str], Header()] = None,
) -> None:
    """Reject requests whose x-api-key does not match the shared secret.

    An unset secret rejects every request.
    """
    expected = get_engine(request).config.api_shared_secret
    if not expected or not x_api_key or not secrets.compare_digest(
        x_api_key.encode(), expected.encode()
    ):
        logger.warning("Unauthorized trigger request", path=request.url.path)
        raise HTTPException(status_code=401, detail="Unauthorized")


EngineDep = Annotated[ScheduleEngine, Depends(get_engine)]


def collaborator_errors(func: F) -> F:
    """Surface unexpected failures of an endpoint as SchedulerError."""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except (HTTPException, SchedulerError):
            raise
        except Exception as e:
            logger.error(
                "Trigger endpoint failed",
                endpoint=func.__name__,
                error=str(e),
                exception_type=type(e).__name__,
                exc_info=True,
            )
            raise SchedulerError(str(e) or type(e).__name__, "INTERNAL_ERROR") from e

    return cast(F, wrapper)
