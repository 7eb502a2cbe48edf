"""Logger setup shared by promise-repeat modules."""

from __future__ import annotations

import logging
from typing import Optional

from .config import get_settings

ROOT_LOGGER_NAME = "promise_repeat"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure(name: str) -> logging.Logger:
    """Return the logger for ``name`` with the package level applied.

    Only a ``NullHandler`` is installed on the package logger; applications
    (and the CLI) decide where records go.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not any(isinstance(handler, logging.NullHandler) for handler in root.handlers):
        root.addHandler(logging.NullHandler())
    root.setLevel(get_settings().level_number)
    return logging.getLogger(name)


def enable_console(level: Optional[int] = None) -> None:
    """Send package log records to stderr, used by the command line entry point."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if any(isinstance(handler, logging.StreamHandler) for handler in root.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    if level is not None:
        root.setLevel(level)
