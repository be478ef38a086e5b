"""Logging configuration for coursehub.

Two output shapes share one root handler on stdout:

  _ContainerFormatter -- human-readable, single line, for local dev.
  _JsonFormatter      -- one JSON object per line, for log aggregation.
    Request-context fields attached by RequestContextMiddleware and the
    identifiers services pass via ``extra=`` become top-level keys.

Set LOG_JSON=true to switch to JSON output. The API process and the
notification worker both call setup_logging() once at startup.
"""

from __future__ import annotations

import json
import logging
import sys

_NOISY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
    "alembic",
)


class _IsoFormatter(logging.Formatter):
    """ISO-8601 timestamps with millisecond precision."""

    def __init__(self, fmt: str | None = None) -> None:
        super().__init__(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = super().formatTime(record, datefmt)
        # Offset is the trailing +HHMM
        return f"{stamp[:-5]}.{int(record.msecs):03d}{stamp[-5:]}"


class _ContainerFormatter(_IsoFormatter):
    """Single-line formatter tuned for container stdout.

    WARNING and above get a ``[file:line]`` suffix; tracebacks from
    ``exc_info`` are rendered below the line.
    """

    _LINE = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"

    def __init__(self) -> None:
        super().__init__(self._LINE)
        self._located = _IsoFormatter(self._LINE + "  [%(filename)s:%(lineno)d]")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            return self._located.format(record)
        return super().format(record)


class _JsonFormatter(_IsoFormatter):
    _CONTEXT_FIELDS = (
        # request
        "request_id",
        "method",
        "path",
        "user_id",
        "status_code",
        "duration_ms",
        # domain
        "course_id",
        "enrollment_id",
        "payment_id",
        "event_type",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Replace the root logger's handlers with a single stdout handler.

    Unknown level names fall back to INFO. Chatty third-party loggers
    are held at WARNING or above regardless of ``level_name``.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
