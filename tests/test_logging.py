"""Tests for logging setup."""
import logging

from chatrelay.core import logging as relay_logging
from chatrelay.core.config import settings


def test_setup_logging_applies_configured_level(monkeypatch):
    root = logging.getLogger()
    previous = root.level
    monkeypatch.setattr(settings, "LOG_LEVEL", "debug")
    try:
        relay_logging.setup_logging()
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(previous)


def test_unknown_level_falls_back_to_info(monkeypatch):
    root = logging.getLogger()
    previous = root.level
    monkeypatch.setattr(settings, "LOG_LEVEL", "chatty")
    try:
        relay_logging.setup_logging()
        assert root.level == logging.INFO
    finally:
        root.setLevel(previous)


def test_get_logger_uses_module_name():
    assert relay_logging.get_logger("chatrelay.services.session_handler").name == "chatrelay.services.session_handler"
