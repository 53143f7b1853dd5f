"""Structured JSON logging for Duet.

Every record is one JSON object per line. Loggers bound with ``bind_logger``
attach a ``context`` object (identity, collection, ...) to each record so
that two sessions writing to the same log can be told apart.
"""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .config import DEFAULT_LOG_PATH

# Chatty at DEBUG; kept at WARNING whatever the root level
_QUIET_LOGGERS = ("aiosqlite", "httpx", "httpcore", "uvicorn.access")

_MAX_LOG_BYTES = 10 * 1024 * 1024
_LOG_BACKUPS = 5


class JSONFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        context = getattr(record, "context", None)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class ContextAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its bound fields into ``extra["context"]``."""

    def process(self, msg, kwargs):
        extra = dict(kwargs.get("extra") or {})
        extra["context"] = {**self.extra, **extra.get("context", {})}
        kwargs["extra"] = extra
        return msg, kwargs


def bind_logger(logger: logging.Logger, **context: Any) -> ContextAdapter:
    """Logger whose records all carry ``context`` (e.g. ``identity="alice"``)."""
    return ContextAdapter(logger, context)


def _logging_dict(level: str, log_file: str) -> dict:
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        },
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "json",
            "filename": log_file,
            "maxBytes": _MAX_LOG_BYTES,
            "backupCount": _LOG_BACKUPS,
            "encoding": "utf-8",
        },
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JSONFormatter}},
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in _QUIET_LOGGERS},
        "root": {"level": level.upper(), "handlers": list(handlers)},
    }


def setup_logging(log_level: str | None = None, log_file: str | None = None) -> None:
    """Route all logging to stdout and a rotating file, as JSON.

    Args:
        log_level: Root level name. Defaults to the LOG_LEVEL env var, then INFO.
        log_file: Log file path. Defaults to 04_logs/app.log.
    """
    level = log_level or os.getenv("LOG_LEVEL", "INFO")
    path = Path(log_file) if log_file else DEFAULT_LOG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(_logging_dict(level, str(path)))


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``__name__``."""
    return logging.getLogger(name)
