"""Logging setup for the limiter.

Plain ``logging`` configured through ``dictConfig``. Admission details travel
on the record as attributes (pass ``extra=get_log_context(...)``), and are
rendered either inline by the structured text format or as top-level keys by
the JSON format.
"""

import json
import logging
import logging.config
import sys
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from redis_bucket.core.config import settings

# Attributes every LogRecord carries, plus the ones formatters add
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.NOTSET, "", 0, "", (), None))
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Admission fields become top-level keys; any other attribute passed via
    ``extra`` is grouped under ``"extra"``.

    Attributes:
        fields: Admission fields emitted at the top level
    """

    CONTEXT_FIELDS = (
        "request_id",
        "key",
        "cost",
        "allow",
        "wait",
        "tier_index",  # 1-based, slowest tier first
    )

    def __init__(
        self,
        fields: Optional[Iterable[str]] = None,
        datefmt: Optional[str] = None,
    ):
        super().__init__(datefmt=datefmt)
        self.fields = tuple(fields) if fields else self.CONTEXT_FIELDS

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)

        payload: Dict[str, Any] = {
            "timestamp": created.isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
            "source": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        extra: Dict[str, Any] = {}
        for name, value in vars(record).items():
            if name in _RECORD_ATTRS:
                continue
            if name in self.CONTEXT_FIELDS:
                if name in self.fields and value is not None:
                    payload[name] = value
            else:
                extra[name] = value
        if extra:
            payload["extra"] = extra

        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = traceback.format_exception(*record.exc_info)

        return json.dumps(payload, default=str, ensure_ascii=False)


class ContextFilter(logging.Filter):
    """Give every record the admission fields, None when not supplied.

    Lets the structured text format reference them unconditionally.
    """

    CONTEXT_DEFAULTS: Dict[str, Any] = dict.fromkeys(JSONFormatter.CONTEXT_FIELDS)

    def filter(self, record: logging.LogRecord) -> bool:
        for name, default in self.CONTEXT_DEFAULTS.items():
            if not hasattr(record, name):
                setattr(record, name, default)
        return True


def _console(stream: Any, level: str, formatter: str) -> Dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "stream": stream,
        "filters": ["context"],
    }


def get_logging_config() -> Dict[str, Any]:
    """Build the ``dictConfig`` mapping from the current settings.

    ``log_format`` selects ``standard`` (text), ``structured`` (text with
    admission fields) or ``json``; anything unknown falls back to text.
    """
    log_format = getattr(settings, "log_format", "text").lower()
    log_level = getattr(settings, "log_level", "INFO").upper()

    base = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatters: Dict[str, Any] = {
        "standard": {"format": base},
        "structured": {
            "format": base + " - key=%(key)s allow=%(allow)s wait=%(wait)s tier=%(tier_index)s"
        },
    }
    if log_format == "json":
        formatters["json"] = {"()": "redis_bucket.core.logging.JSONFormatter"}
        formatter = "json"
    elif log_format == "structured":
        formatter = "structured"
    else:
        formatter = "standard"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": {"context": {"()": "redis_bucket.core.logging.ContextFilter"}},
        "handlers": {
            "console": _console(sys.stdout, log_level, formatter),
            "error_console": _console(sys.stderr, "ERROR", formatter),
        },
        "loggers": {
            "redis_bucket": {
                "level": log_level,
                "handlers": ["console", "error_console"],
                "propagate": False,
            },
        },
        "root": {"level": log_level, "handlers": ["console"]},
    }


def setup_logging() -> None:
    """Apply the logging configuration and quiet the Redis client."""
    logging.config.dictConfig(get_logging_config())
    logging.getLogger("redis").setLevel(logging.WARNING)


def get_logger(name: str = "redis_bucket") -> logging.Logger:
    return logging.getLogger(name)


def get_log_context(
    request_id: Optional[str] = None,
    key: Optional[str] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Collect fields for a log call's ``extra``, dropping None values.

    Example:
        >>> logger.debug(
        ...     "Admission denied",
        ...     extra=get_log_context(key="user:1", allow=False, wait=4.0)
        ... )
    """
    context = {"request_id": request_id, "key": key, **extra}
    return {name: value for name, value in context.items() if value is not None}
