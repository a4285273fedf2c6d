"""Console logging for dev sessions.

Log messages already carry their component tag (``[pipeline]``,
``[supervisor]`` ...), so lines are just ``HH:MM:SS LEVEL message`` with
the level colour applied when the stream is a terminal.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from pyhandler.config import settings


class ColorFormatter(logging.Formatter):
    """Colours the whole line by level; tracebacks stay plain."""

    LEVEL_COLORS = {
        logging.DEBUG: "36",
        logging.INFO: "32",
        logging.WARNING: "33",
        logging.ERROR: "31",
        logging.CRITICAL: "1;31",
    }

    def __init__(self, use_color: bool = True) -> None:
        super().__init__("%(asctime)s %(levelname)-8s %(message)s", datefmt="%H:%M:%S")
        self.use_color = use_color

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        code = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_color or code is None:
            return line
        return f"\033[{code}m{line}\033[0m"


def setup_logging(level: str | None = None, stream: TextIO | None = None) -> logging.Handler:
    """Attach a stderr handler to the ``pyhandler`` logger.

    *level* defaults to ``settings.LOG_LEVEL``.  Calling again replaces
    the previously installed handler instead of stacking a second one.
    """
    stream = stream or sys.stderr
    logger = logging.getLogger("pyhandler")
    for existing in list(logger.handlers):
        if isinstance(existing.formatter, ColorFormatter):
            logger.removeHandler(existing)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(ColorFormatter(use_color=stream.isatty()))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))
    return handler
