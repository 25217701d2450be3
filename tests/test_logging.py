"""Tests for logging setup."""

import json
import logging

import pytest
import structlog

from newsletter_scheduler.infrastructure import logging as scheduler_logging


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
    structlog.reset_defaults()


def test_file_log_is_json_for_structlog_and_stdlib(tmp_path, monkeypatch, restore_logging):
    monkeypatch.setattr(scheduler_logging, "get_logs_dir", lambda: tmp_path)

    scheduler_logging.setup_logging(level="INFO", format_type="text", log_file=True)
    structlog.get_logger("tests").info("Delivery sent", delivery_id="d1")
    logging.getLogger("uvicorn.error").warning("Server shutting down")
    for handler in logging.getLogger().handlers:
        handler.flush()

    lines = [
        json.loads(line)
        for line in (tmp_path / scheduler_logging.LOG_FILE_NAME).read_text().splitlines()
    ]
    events = {line["event"]: line for line in lines}
    assert events["Delivery sent"]["delivery_id"] == "d1"
    assert events["Delivery sent"]["level"] == "info"
    assert events["Server shutting down"]["logger"] == "uvicorn.error"


def test_noisy_loggers_are_quieted(restore_logging):
    scheduler_logging.setup_logging(level="DEBUG", log_file=False)

    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
    assert logging.getLogger().level == logging.DEBUG
