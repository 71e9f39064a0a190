"""Logging setup for evosim.

Configurable via environment variables:
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR. Default: INFO
- LOG_FORMAT: 'text' or 'json'. Default: text

Usage:
    from evosim.logging_config import configure_logging
    configure_logging()  # once, at process startup
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from typing import Any, ClassVar

# Attributes every LogRecord carries; anything else was passed via ``extra=``.
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "thread",
        "threadName",
        "processName",
        "process",
        "message",
        "msecs",
        "relativeCreated",
        "taskName",
    }
)

_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Fields passed through ``extra=`` (e.g. ``variant``, ``generation``) are
    nested under ``"extra"``.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a record as a JSON line."""
        payload: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.levelno >= logging.ERROR or record.levelno == logging.DEBUG:
            payload["source"] = f"{record.filename}:{record.lineno}"
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        extra = _extra_fields(record)
        if extra:
            payload["extra"] = extra
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Human readable ``TIMESTAMP LEVEL [logger] message`` lines."""

    LEVEL_COLORS: ClassVar[dict[str, str]] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;31m",
    }
    RESET: ClassVar[str] = "\033[0m"

    def __init__(self, use_colors: bool = True) -> None:
        """Initialize formatter.

        Args:
            use_colors: Colorize the level name (only when stderr is a TTY).
        """
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format a record as a single text line."""
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        level = f"{record.levelname:8s}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        name = record.name.removeprefix("evosim.")
        line = f"{timestamp} {level} [{name}] {record.getMessage()}"

        if record.levelno >= logging.ERROR or record.levelno == logging.DEBUG:
            line += f" ({record.filename}:{record.lineno})"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def get_log_level() -> int:
    """Read LOG_LEVEL from the environment, falling back to INFO."""
    return _LEVELS.get(os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)


def get_log_format() -> str:
    """Read LOG_FORMAT from the environment ('text' or 'json')."""
    format_name = os.environ.get("LOG_FORMAT", "text").lower()
    return format_name if format_name in ("text", "json") else "text"


def configure_logging(
    level: int | None = None,
    format_type: str | None = None,
    use_colors: bool = True,
) -> None:
    """Install a single stderr handler on the ``evosim`` logger.

    Safe to call more than once; previous handlers are replaced.

    Args:
        level: Log level. If None, reads LOG_LEVEL.
        format_type: 'text' or 'json'. If None, reads LOG_FORMAT.
        use_colors: Colorize text output when attached to a TTY.
    """
    if level is None:
        level = get_log_level()
    if format_type is None:
        format_type = get_log_format()

    handler = logging.StreamHandler(sys.stderr)
    if format_type == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter(use_colors=use_colors))

    package_logger = logging.getLogger("evosim")
    package_logger.setLevel(level)
    package_logger.handlers.clear()
    package_logger.addHandler(handler)
    package_logger.propagate = False

    # Route uvicorn's request log through the same handler
    access = logging.getLogger("uvicorn.access")
    access.handlers.clear()
    access.addHandler(handler)
    access.setLevel(level)
    access.propagate = False

    package_logger.debug(
        "Logging configured: level=%s, format=%s",
        logging.getLevelName(level),
        format_type,
    )


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``evosim`` namespace."""
    if not name.startswith("evosim"):
        name = f"evosim.{name}"
    return logging.getLogger(name)
