"""Console logging for the stravastats package logger."""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

LOGGER_NAME = "stravastats"

_FORMAT = "[%(asctime)s] %(levelname)-7s %(name)s - %(message)s"
_DATE_FORMAT = "%H:%M:%S"


class _ConsoleHandler(logging.StreamHandler):
    """The one handler setup_logging owns; earlier instances are swapped out."""


def setup_logging(level: str = "INFO", stream: Optional[IO[str]] = None) -> logging.Logger:
    """Send package log records to stream (stdout by default) at the given level.

    Calling it again replaces the previous console handler, so the latest
    stream wins and records are never written twice.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    for handler in list(logger.handlers):
        if isinstance(handler, _ConsoleHandler):
            logger.removeHandler(handler)

    console = _ConsoleHandler(stream if stream is not None else sys.stdout)
    console.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(console)
    return logger
