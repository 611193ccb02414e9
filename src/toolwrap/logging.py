"""Structured logging configuration for toolwrap.

Provides JSON-formatted logging for hosts that aggregate logs, or a
plain text format for interactive use. Output goes to stderr so stdout
stays free for tool responses.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class StructuredFormatter(logging.Formatter):
    """JSON log formatter, one object per line."""

    def __init__(self, service_name: str = "toolwrap") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        if record.levelno >= logging.WARNING:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }

        # Fields passed through extra=
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        return json.dumps(log_data, default=str)


def setup_logging(
    level: int = logging.INFO,
    json_format: bool = True,
    service_name: str = "toolwrap",
) -> logging.Logger:
    """Configure the toolwrap logger.

    Args:
        level: Logging level (default: INFO)
        json_format: Use JSON formatting (default: True)
        service_name: Service name for log entries
    """
    logger = logging.getLogger("toolwrap")
    logger.setLevel(level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)

    formatter: logging.Formatter
    if json_format:
        formatter = StructuredFormatter(service_name)
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the toolwrap prefix.

    Module names already under the toolwrap package are used as is.
    """
    if name == "toolwrap" or name.startswith("toolwrap."):
        return logging.getLogger(name)
    return logging.getLogger(f"toolwrap.{name}")
