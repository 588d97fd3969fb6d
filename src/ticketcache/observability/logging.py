"""Structured logging for ticketcache.

Log records carry the cache bucket and the data-source operation in
progress, taken from context variables, so a line emitted deep inside a
fetch can be traced back to the wrapper that triggered it.

Two output styles are available: one JSON object per line (serialized with
orjson) for log shipping, and a plain pipe-separated line for terminals.

Usage:
    from ticketcache.observability.logging import LogContext, configure_logging

    configure_logging(json_format=False, level="DEBUG")

    with LogContext(bucket="Widget", operation="fetch_all"):
        logger.info("Refreshing widgets")
"""

from __future__ import annotations

import contextvars
import logging
import sys
from datetime import UTC, datetime
from typing import Any

import orjson

bucket_var: contextvars.ContextVar[str] = contextvars.ContextVar("bucket", default="")
operation_var: contextvars.ContextVar[str] = contextvars.ContextVar("operation", default="")

_CONTEXT_VARS: dict[str, contextvars.ContextVar[str]] = {
    "bucket": bucket_var,
    "operation": operation_var,
}

# Attributes every LogRecord has; anything else arrived through ``extra=``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


def _current_context() -> dict[str, str]:
    return {name: value for name, var in _CONTEXT_VARS.items() if (value := var.get())}


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Example line:
        {"timestamp": "2026-03-02T09:15:00.120000+00:00", "level": "DEBUG",
         "logger": "ticketcache.cache.store", "message": "Cached Widget 1 ...",
         "bucket": "Widget", "operation": "fetch_one"}
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        payload.update(_current_context())

        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc, _ = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc),
                "traceback": self.formatException(record.exc_info),
            }

        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        )

        return orjson.dumps(payload, default=str).decode("utf-8")


class ConsoleFormatter(logging.Formatter):
    """Single-line format for terminals.

    Example line:
        2026-03-02 09:15:00 | DEBUG    | ticketcache.cache.store | Cached Widget 1 | bucket=Widget
    """

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2m",
        logging.INFO: "\033[34m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_colors:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}\033[0m"

        parts = [self.formatTime(record, self.datefmt), level, record.name, record.getMessage()]
        context = _current_context()
        if context:
            parts.append(" ".join(f"{name}={value}" for name, value in context.items()))

        line = " | ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def configure_logging(
    json_format: bool = True,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Replace the root logger's handlers with a single stderr handler.

    Args:
        json_format: Emit JSON lines instead of the console format
        level: Root log level name, case-insensitive
        use_colors: Colorize the console format when stderr is a TTY
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else ConsoleFormatter(use_colors))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


class LogContext:
    """Temporarily set bucket/operation context for log records.

    Keys other than ``bucket`` and ``operation`` are ignored.
    """

    def __init__(self, **values: str) -> None:
        self.values = values
        self._reset: list[tuple[contextvars.ContextVar[str], contextvars.Token[str]]] = []

    def __enter__(self) -> LogContext:
        for name, value in self.values.items():
            if name in _CONTEXT_VARS:
                var = _CONTEXT_VARS[name]
                self._reset.append((var, var.set(value)))
        return self

    def __exit__(self, *exc: object) -> None:
        while self._reset:
            var, token = self._reset.pop()
            var.reset(token)


def get_logger(name: str) -> logging.Logger:
    """Shorthand for ``logging.getLogger``."""
    return logging.getLogger(name)
