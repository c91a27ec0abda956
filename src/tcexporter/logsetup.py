"""Logging configuration driven by the `log` section of the config file."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

from tcexporter.config.models import LogConfig

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%H:%M:%S"
BACKUP_COUNT = 5

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

# Marks handlers installed here so a reload can swap them out.
_OWNED = "_tcexporter_handler"


def level_for(name: str) -> int:
    return _LEVELS.get(name.lower(), logging.INFO) if name else logging.INFO


def setup_logging(config: LogConfig, verbose: bool = False) -> None:
    """Install console and rotating file handlers on the package logger.

    Raises OSError if log_path is set but cannot be opened.
    """
    logger = logging.getLogger("tcexporter")
    level = logging.DEBUG if verbose else level_for(config.level)

    handlers = []
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    handlers.append(console)

    if config.log_path:
        directory = os.path.dirname(config.log_path) or "."
        if not os.access(directory, os.W_OK):
            raise OSError(f"log directory {directory} is not writable")
        file_handler = RotatingFileHandler(
            config.log_path, maxBytes=config.max_bytes, backupCount=BACKUP_COUNT
        )
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    for old in [h for h in logger.handlers if getattr(h, _OWNED, False)]:
        logger.removeHandler(old)
        old.close()

    for handler in handlers:
        setattr(handler, _OWNED, True)
        logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
