# =============================================================================
# core/logger.py — Centralized Logging Utility
#
# Every module logs through get_logger(__name__). Each named logger gets a
# console handler (INFO, or DEBUG when DEBUG_MODE is on) and a dated file
# handler under LOGS_DIR that always records DEBUG.
# =============================================================================

import logging
import os
from datetime import datetime

from config import LOGS_DIR, DEBUG_MODE

_FORMAT  = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATEFMT = "%H:%M:%S"

# Console handlers created so far, so the host can raise/lower verbosity later
_console_handlers: list = []


def _log_path() -> str:
    return os.path.join(LOGS_DIR, datetime.now().strftime("attention_%Y%m%d.log"))


def get_logger(name: str) -> logging.Logger:
    """
    Return a named logger that writes to both console and a dated log file.

    Usage:  from core.logger import get_logger
            log = get_logger(__name__)
            log.info("Message")
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger  # Avoid adding duplicate handlers

    logger.setLevel(logging.DEBUG)
    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATEFMT)

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if DEBUG_MODE else logging.INFO)
    console.setFormatter(formatter)
    logger.addHandler(console)
    _console_handlers.append(console)

    file_handler = logging.FileHandler(_log_path(), encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger


def set_console_level(level: int) -> None:
    """Change the console verbosity of every logger created through get_logger."""
    for handler in _console_handlers:
        handler.setLevel(level)
