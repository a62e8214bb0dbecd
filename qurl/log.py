"""Logger construction for qurl.

The logger is built once by the entry point and handed to every component
that needs it; nothing here mutates the root logger.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "qurl"

_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
    "panic": logging.CRITICAL,
}

# Attributes present on every LogRecord; anything else came in via ``extra``.
_RESERVED = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


def parse_level(level: Optional[str]) -> int:
    """Map a level name to a logging level; unknown names mean INFO."""
    return _LEVELS.get((level or "").strip().lower(), logging.INFO)


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with ``extra`` fields inlined."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["error"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Logger:
    """
    Build the ``qurl`` logger.

    Args:
        level: Level name; falls back to ``QURL_LOG_LEVEL`` then ``warn``.
        fmt: ``pretty`` or ``json``; falls back to ``QURL_LOG_FORMAT``.
        stream: Destination, stderr by default. stdout is never used since
            it carries response bodies and MCP messages.
    """
    level = level or os.environ.get("QURL_LOG_LEVEL") or "warn"
    fmt = (fmt or os.environ.get("QURL_LOG_FORMAT") or "pretty").lower()
    stream = stream or sys.stderr

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(parse_level(level))
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if fmt == "json":
        handler: logging.Handler = logging.StreamHandler(stream)
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(
            console=Console(file=stream),
            show_path=False,
            log_time_format="%H:%M:%S",
        )
    logger.addHandler(handler)
    return logger


def component_logger(logger: Optional[logging.Logger], component: str) -> logging.Logger:
    """Child logger for a component, defaulting to the package logger."""
    base = logger if logger is not None else logging.getLogger(LOGGER_NAME)
    return base.getChild(component)
