"""
Structured logging for the resolution service.

Request-scoped context (request id, organization id) lives in context
variables set by the HTTP layer; LogContextFilter stamps it onto every record
so service code only passes what is local to the call (category, timings).
"""
import logging
import json
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
organization_id_var: ContextVar[Optional[str]] = ContextVar("organization_id", default=None)

# Attributes copied into JSON lines when present on the record
_EXTRA_FIELDS = (
    "request_id", "organization_id", "category", "duration_ms",
    "http_method", "http_path", "http_status",
)

_QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "LiteLLM", "aiosqlite", "celery.redirected")


class LogContextFilter(logging.Filter):
    """Fills request_id / organization_id from the current context unless the call set them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get()
        if getattr(record, "organization_id", None) is None:
            record.organization_id = organization_id_var.get()
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line; context fields are omitted when unset."""

    def format(self, record):
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        for name in _EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Install a single stdout handler on the root logger."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(LogContextFilter())
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(name)s] %(levelname)s req=%(request_id)s org=%(organization_id)s: %(message)s"
        ))
    root.handlers = [handler]

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
