"""Structured logging configuration for acmer.

Provides JSON and text formatters, an identity-context filter that
guarantees every record carries ``identity`` and ``request_id``
attributes, and a one-call ``configure_logging`` function driven by
config settings.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from acmer.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Context attributes handled explicitly
        "identity",
        "request_id",
    }
)

_NOISY_LOGGERS = ("acme", "urllib3", "psycopg", "psycopg.pool")

# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for production logging.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller or injected by filters.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        identity = getattr(record, "identity", None)
        if identity not in (None, "-"):
            data["identity"] = identity

        request_id = getattr(record, "request_id", None)
        if request_id not in (None, "-"):
            data["request_id"] = request_id

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(identity)s] %(name)s - %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class IdentityContextFilter(logging.Filter):
    """Default the identity context attributes on every record.

    Callers pass ``extra={"identity": ..., "request_id": ...}`` where
    the context is known; records from elsewhere get ``"-"``.
    """

    CONTEXT_ATTRS = frozenset({"identity", "request_id"})

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for attr in self.CONTEXT_ATTRS:
            if not hasattr(record, attr):
                setattr(record, attr, "-")
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(settings: LoggingSettings) -> logging.Logger:
    """Configure the ``acmer`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output and
    returns the root ``acmer`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)

    root = logging.getLogger("acmer")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(IdentityContextFilter())
    root.addHandler(console)

    for lib in _NOISY_LOGGERS:
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
