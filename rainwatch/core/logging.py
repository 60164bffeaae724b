"""Logging configuration."""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List

from rainwatch.settings import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# The daemon runs for weeks, keep the log bounded
MAX_LOG_BYTES = 1_000_000
LOG_BACKUPS = 3

_logger = None
_configured = False


def log_file_path() -> Path:
    return Path(settings.PATHS["logs"]) / "rainwatch.log"


def _build_handlers(log_to_file: bool) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if not log_to_file:
        return handlers

    path = log_file_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS))
    except OSError as e:
        sys.stderr.write(f"rainwatch: file logging disabled, cannot open {path}: {e}\n")
    return handlers


def get_logger(log_to_file: bool = True) -> logging.Logger:
    """Return the ``rainwatch`` logger, attaching handlers on first use.

    Modules log through ``logging.getLogger(__name__)``; those loggers are
    children of ``rainwatch`` and inherit the handlers installed here.
    """
    global _logger, _configured

    if _logger is None:
        _logger = logging.getLogger("rainwatch")

    if not _configured:
        level = getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO)
        _logger.setLevel(level)
        _logger.propagate = False
        _logger.handlers.clear()

        formatter = logging.Formatter(LOG_FORMAT)
        for handler in _build_handlers(log_to_file):
            handler.setFormatter(formatter)
            _logger.addHandler(handler)
        _configured = True

    return _logger
