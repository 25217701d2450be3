"""FastAPI application exposing the schedule engine to external cron triggers."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from newsletter_scheduler import __version__
from newsletter_scheduler.api.routers import emails, health, scheduler
from newsletter_scheduler.infrastructure.config import ApplicationConfig, load_config
from newsletter_scheduler.infrastructure.error_handling import (
    DeliveryNotFoundError,
    SchedulerError,
)
from newsletter_scheduler.infrastructure.logging import get_logger
from newsletter_scheduler.services.engine import ScheduleEngine

logger = get_logger(__name__)


def create_app(
    config: Optional[ApplicationConfig] = None,
    engine: Optional[ScheduleEngine] = None,
    dry_run: bool = False,
) -> FastAPI:
    """Create the API application.

    Args:
        config: Configuration used to build the engine when none is given
        engine: Prebuilt engine; its lifecycle stays with the caller
        dry_run: Build the engine with the recording mail transport

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_engine = engine is None
        app.state.engine = engine or ScheduleEngine.from_config(
            config or load_config(), dry_run=dry_run
        )
        if owns_engine:
            await app.state.engine.start()
        logger.info("Scheduler API started", dry_run=dry_run)
        try:
            yield
        finally:
            if owns_engine:
                await app.state.engine.close()

    app = FastAPI(
        title="Newsletter Scheduler",
        description="Trigger endpoints for materializing, populating and sending newsletters",
        version=__version__,
        lifespan=lifespan,
    )
    if engine is not None:
        app.state.engine = engine

    app.include_router(health.router)
    app.include_router(scheduler.router)
    app.include_router(emails.router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(SchedulerError)
    async def scheduler_error(request: Request, exc: SchedulerError):
        if isinstance(exc, DeliveryNotFoundError):
            return JSONResponse(status_code=404, content={"error": exc.message})
        logger.error(
            "Request failed",
            path=request.url.path,
            error=exc.message,
            error_code=exc.error_code,
        )
        return JSONResponse(status_code=500, content={"error": exc.message})

    return app

