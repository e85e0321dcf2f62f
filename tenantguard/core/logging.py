"""Logging configuration for tenant-guard.

Two output shapes, picked by LOG_JSON:

  _ContainerFormatter
    One human-readable line per record for local development.  Records
    at WARNING and above get a ``[file:line]`` suffix, which is where
    most guard rejections are logged from.

  _JsonFormatter
    JSON Lines for production log pipelines.  Request-scoped fields
    (request_id, user_id, org_id, procedure, ...) become top-level keys,
    so "every FORBIDDEN for org X" is a filter rather than a regex.

Both write to stdout; the container runtime owns shipping.
"""

from __future__ import annotations

import json
import logging
import sys


class _ContainerFormatter(logging.Formatter):
    _BASE_FMT = "%(asctime)s %(levelname)-8s %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        ms = int(record.msecs)
        # Milliseconds go before the +HHMM offset
        return f"{base[:-5]}.{ms:03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.WARNING:
            self._style._fmt = self._BASE_FMT + self._LOC_SUFFIX
        else:
            self._style._fmt = self._BASE_FMT
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """One JSON object per line, with request context lifted to the top level."""

    _CONTEXT_FIELDS = (
        "request_id",
        "method",
        "path",
        "user_id",
        "org_id",
        "procedure",
        "status_code",
        "duration_ms",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in self._CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = value

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def setup_logging(
    level_name: str,
    *,
    json_format: bool = False,
    filters: tuple[logging.Filter, ...] = (),
) -> None:
    """Configure the root logger for stdout.

    Args:
        level_name: debug/info/warning/error (LOG_LEVEL)
        json_format: emit JSON lines instead of text (LOG_JSON)
        filters: installed on the handler, so they see records from
            every logger that propagates to root
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())
    for f in filters:
        handler.addFilter(f)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in (
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpcore",
        "httpx",
        "stripe",
    ):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
