"""Logging configuration for the newsletter schedule engine.

structlog events and plain stdlib records (uvicorn, SQLAlchemy, premailer)
go through the same ``ProcessorFormatter``, so every line of a run shares one
format. The log file is always JSON, whatever the console format.
"""

import logging
import sys

import structlog
from rich.logging import RichHandler

from newsletter_scheduler.infrastructure.config import get_logs_dir

LOG_FILE_NAME = "scheduler.log"

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = {
    "aiohttp": logging.WARNING,
    "asyncio": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "uvicorn.access": logging.WARNING,
    "CSSUTILS": logging.ERROR,
}

# Applied to stdlib records before rendering
FOREIGN_PRE_CHAIN = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="ISO"),
]


def _formatter(renderer) -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=FOREIGN_PRE_CHAIN,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _console_handler(format_type: str) -> logging.Handler:
    if format_type == "text":
        handler: logging.Handler = RichHandler(
            rich_tracebacks=True,
            show_path=False,
            show_time=False,  # timestamp comes from the processors
        )
        handler.setFormatter(_formatter(structlog.dev.ConsoleRenderer(colors=True)))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    return handler


def _file_handler() -> logging.Handler:
    handler = logging.FileHandler(get_logs_dir() / LOG_FILE_NAME)
    handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
    return handler


def setup_logging(
    level: str = "INFO",
    format_type: str = "structured",
    log_file: bool = True,
) -> structlog.stdlib.BoundLogger:
    """Set up structured logging with rich console output.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_type: Console format, "structured" (JSON) or "text" (rich)
        log_file: Also append JSON lines to ``logs/scheduler.log``

    Returns:
        Configured structlog logger
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *FOREIGN_PRE_CHAIN,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = [_console_handler(format_type)]
    if log_file:
        handlers.append(_file_handler())

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level.upper())

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logger = structlog.get_logger("scheduler")
    logger.info("Logging configured", level=level, format=format_type, log_file=log_file)
    return logger


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, usually for ``__name__``."""
    return structlog.get_logger(name)


class LoggerMixin:
    """Gives services a ``self.logger`` named after their class."""

    @property
    def logger(self) -> structlog.stdlib.BoundLogger:
        if not hasattr(self, "_logger"):
            self._logger = get_logger(self.__class__.__name__)
        return self._logger
