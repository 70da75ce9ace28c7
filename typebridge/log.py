"""Logging setup for the command line.

Library modules only create loggers (``logging.getLogger(__name__)``); the
CLI attaches a single handler to the ``typebridge`` logger.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

from rich.console import Console
from rich.logging import RichHandler

ISO = "%Y-%m-%dT%H:%M:%S.%fZ"

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

_RECORD_FIELDS = {
    "msg", "args", "levelname", "levelno", "name", "pathname", "filename", "module",
    "exc_info", "exc_text", "stack_info", "lineno", "funcName", "created", "msecs",
    "relativeCreated", "thread", "threadName", "processName", "process", "taskName",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; extra record attributes are merged in."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": datetime.now(UTC).strftime(ISO),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for k, v in record.__dict__.items():
            if k.startswith("_") or k in _RECORD_FIELDS:
                continue
            if k not in base:
                base[k] = v
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False, default=str)


def configure_logging(level: str = "info", log_format: str = "text") -> logging.Logger:
    """Attach a stderr handler to the ``typebridge`` logger, replacing earlier ones."""
    logger = logging.getLogger("typebridge")
    logger.setLevel(LEVELS[level])

    if log_format == "json":
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(JsonFormatter())
    else:
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=False,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))

    logger.handlers[:] = [handler]
    logger.propagate = False
    return logger
