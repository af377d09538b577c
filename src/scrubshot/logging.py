"""Structured logging helpers (JSON).

Use `get_logger(__name__)` to emit JSON logs. Structured fields go through
``extra={"extra": {...}}`` and are merged into the emitted payload.
"""

from __future__ import annotations

import logging
import os

import orjson


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.args and isinstance(record.args, dict):
            payload.update(record.args)
        if hasattr(record, "extra") and isinstance(getattr(record, "extra"), dict):
            payload.update(getattr(record, "extra"))
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def get_logger(name: str = "scrubshot") -> logging.Logger:
    # Handler and level live on the package logger; module loggers propagate.
    logger = logging.getLogger("scrubshot")
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(JsonFormatter())
        logger.addHandler(h)
        level = getattr(logging, os.environ.get("SCRUBSHOT_LOG_LEVEL", "INFO").upper(), None)
        logger.setLevel(level if isinstance(level, int) else logging.INFO)
    return logging.getLogger(name)
