"""Tests for the command line entry point."""

import sys

import pytest

from newsletter_scheduler import main as cli


def test_invalid_configuration_exits_cleanly(monkeypatch, tmp_path, capsys):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("NEWSLETTER_LOG_LEVEL", "LOUD")
    monkeypatch.setattr(sys, "argv", ["newsletter-scheduler", "init-db"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1
    output = capsys.readouterr().out
    assert "Invalid configuration" in output
    assert "log_level" in output


def test_missing_command_prints_help(monkeypatch):
    monkeypatch.setattr(sys, "argv", ["newsletter-scheduler"])

    with pytest.raises(SystemExit) as exc_info:
        cli.main()

    assert exc_info.value.code == 1
