# src/ECA/tests/test_logging.py
import logging

import pytest
from pythonjsonlogger.jsonlogger import JsonFormatter

from ECA import app_logger
from ECA.core.config import settings


@pytest.fixture
def restore_logging():
    root, eca = logging.getLogger(), logging.getLogger("ECA")
    saved = [(lg, list(lg.handlers), lg.level, lg.propagate) for lg in (root, eca)]
    yield
    for lg, handlers, level, propagate in saved:
        lg.handlers[:] = handlers
        lg.setLevel(level)
        lg.propagate = propagate


def test_json_switch_comes_from_settings(monkeypatch, restore_logging):
    monkeypatch.setattr(settings, "ECA_LOG_JSON", True)
    logger = app_logger.setup_logging()
    assert logger.name == "ECA"
    assert any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers)


def test_plain_format_when_json_disabled(monkeypatch, restore_logging):
    monkeypatch.setattr(settings, "ECA_LOG_JSON", False)
    logger = app_logger.setup_logging()
    assert logger.handlers
    assert not any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers)
