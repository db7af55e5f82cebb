"""Structured logging infrastructure with correlation ID tracking.

Each API call binds its request id as the correlation id, so every record
logged while the call runs (by any stage, transport or retry) can be traced
back to it. Secrets are redacted before records reach a handler.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Final, override

from netlayer.utils.sanitization import sanitize_args, sanitize_url, sanitize_value

correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id",
    default=None,
)

DEFAULT_LOG_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] - %(message)s"

# Attributes every LogRecord carries; anything else came from ``extra=``
_STANDARD_ATTRS: Final[frozenset[str]] = frozenset(
    {
        "name", "msg", "args", "created", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "pathname", "process",
        "processName", "relativeCreated", "thread", "threadName", "exc_info",
        "exc_text", "stack_info", "taskName", "message", "asctime",
        "correlation_id",
    }
)


class LogFormat(Enum):
    """Supported log output formats."""

    TEXT = "text"
    JSON = "json"
    KEYVALUE = "keyvalue"


class CorrelationIDFilter(logging.Filter):
    """Logging filter that adds the current correlation ID to log records."""

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        correlation_id = correlation_id_var.get()
        record.correlation_id = correlation_id if correlation_id is not None else "N/A"
        return True


class SecretRedactingFilter(logging.Filter):
    """Logging filter that redacts bearer tokens and credentials.

    Sanitizes the message text, the ``%`` arguments and any fields passed
    through ``extra=``.
    """

    @override
    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = sanitize_url(record.msg)

        if isinstance(record.args, tuple) and record.args:
            record.args = sanitize_args(record.args)

        for attr_name in list(record.__dict__):
            if attr_name not in _STANDARD_ATTRS and not attr_name.startswith("_"):
                attr_value: object = getattr(record, attr_name)  # pyright: ignore[reportAny]
                setattr(record, attr_name, sanitize_value(attr_value, field_name=attr_name))
        return True


class StructuredFormatter(logging.Formatter):
    """Formatter emitting one JSON object or ``key=value`` line per record."""

    def __init__(self, format_type: LogFormat = LogFormat.JSON) -> None:
        """Initialize StructuredFormatter.

        Args:
            format_type: JSON or key-value output
        """
        super().__init__()
        self.format_type: LogFormat = format_type

    @override
    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None),
        }
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data[key] = value if isinstance(value, (str, int, float, bool, type(None))) else str(value)  # pyright: ignore[reportAny]

        if self.format_type is LogFormat.KEYVALUE:
            return " ".join(f"{key}={json.dumps(value, default=str)}" for key, value in data.items())
        return json.dumps(data, default=str, ensure_ascii=False)


def configure_logging(
    *,
    log_level: str = "INFO",
    log_format: LogFormat = LogFormat.TEXT,
    enable_console: bool = True,
    redact_secrets: bool = True,
    logger_name: str = "netlayer",
) -> logging.Logger:
    """Configure the library logger with correlation IDs and secret redaction.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Text, JSON or key-value output
        enable_console: Attach a stderr handler
        redact_secrets: Install the secret redacting filter
        logger_name: Logger to configure (the library root by default)

    Returns:
        The configured logger

    Example:
        >>> configure_logging(log_level="DEBUG", log_format=LogFormat.JSON)
    """
    target = logging.getLogger(logger_name)
    target.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    target.handlers.clear()

    if enable_console:
        handler = logging.StreamHandler(sys.stderr)
        if log_format is LogFormat.TEXT:
            handler.setFormatter(logging.Formatter(DEFAULT_LOG_FORMAT))
        else:
            handler.setFormatter(StructuredFormatter(log_format))
        handler.addFilter(CorrelationIDFilter())
        if redact_secrets:
            handler.addFilter(SecretRedactingFilter())
        target.addHandler(handler)

    return target


def get_correlation_id() -> str | None:
    """Get the current correlation ID from context."""
    return correlation_id_var.get()


@contextmanager
def correlation_id_context(correlation_id: str) -> Iterator[str]:
    """Bind ``correlation_id`` for the duration of the block.

    Asyncio tasks created inside the block inherit the binding.
    """
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)
