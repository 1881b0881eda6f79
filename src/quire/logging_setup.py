"""Logging configuration for quire.

Modules log through ``logging.getLogger(__name__)``; this installs the
handlers once for the ``quire`` logger. Stdout is reserved for the
JSON-RPC channel, so console output goes to stderr.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .settings import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_configured = False


def configure_logging(
    level: str | None = None,
    log_path: Path | None = None,
) -> logging.Logger:
    """Attach a rotating file handler and a stderr handler to the quire logger.

    Args:
        level: Log level name; defaults to QUIRE_LOG_LEVEL.
        log_path: Log file location; defaults to the settings log path.

    Returns:
        The configured ``quire`` logger.
    """
    global _configured

    logger = logging.getLogger("quire")
    logger.setLevel((level or settings.log_level).upper())

    if _configured:
        return logger

    formatter = logging.Formatter(_FORMAT)

    path = log_path or settings.log_path
    path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        path,
        maxBytes=settings.log_max_bytes,
        backupCount=settings.log_backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    _configured = True
    return logger


def reset_logging() -> None:
    """Remove handlers installed by configure_logging (used by tests)."""
    global _configured

    logger = logging.getLogger("quire")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    _configured = False
