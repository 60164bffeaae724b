"""Tests for the rainwatch logger setup."""

import logging
from logging.handlers import RotatingFileHandler

import pytest

from rainwatch.core import logging as rw_logging


@pytest.fixture
def fresh_logger(monkeypatch, tmp_path):
    """Reset the singleton and point the log directory at ``tmp_path``."""
    monkeypatch.setattr(rw_logging, "_logger", None)
    monkeypatch.setattr(rw_logging, "_configured", False)
    monkeypatch.setitem(rw_logging.settings.PATHS, "logs", tmp_path / "logs")
    yield tmp_path
    logger = logging.getLogger("rainwatch")
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


class TestGetLogger:

    def test_console_only(self, fresh_logger):
        logger = rw_logging.get_logger(log_to_file=False)

        assert logger.name == "rainwatch"
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert not (fresh_logger / "logs").exists()

    def test_file_handler_rotates(self, fresh_logger):
        logger = rw_logging.get_logger()

        file_handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(file_handlers) == 1
        assert file_handlers[0].maxBytes == rw_logging.MAX_LOG_BYTES
        assert (fresh_logger / "logs").is_dir()

    def test_configured_once(self, fresh_logger):
        first = rw_logging.get_logger(log_to_file=False)
        second = rw_logging.get_logger(log_to_file=False)

        assert first is second
        assert len(second.handlers) == 1

    def test_module_loggers_inherit(self, fresh_logger):
        rw_logging.get_logger(log_to_file=False)

        child = logging.getLogger("rainwatch.agent")

        assert child.getEffectiveLevel() == logging.getLogger("rainwatch").level
