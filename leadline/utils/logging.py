"""
JSON log lines tagged with the current request's correlation ID.

The ID lives in a contextvar set by the HTTP middleware, so each concurrent
webhook logs under its own ID. A filter stamps it onto every record and the
formatter renders one JSON object per line.
"""
import json
import logging
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes passed via `extra=` that are copied into the JSON line
EXTRA_FIELDS = ("customer_id", "phone", "direction", "sender", "provider", "error_code")

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "twilio.http_client")


def get_correlation_id() -> Optional[str]:
    return correlation_id_ctx.get()


def set_correlation_id(cid: str) -> None:
    correlation_id_ctx.set(cid)


def generate_correlation_id() -> str:
    return uuid.uuid4().hex


class CorrelationIdFilter(logging.Filter):
    """Attach the active correlation ID to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "correlation_id", None) is None:
            record.correlation_id = correlation_id_ctx.get()
        return True


class StructuredJsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload = {
            "timestamp": created.isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
            "module": record.name,
            "message": record.getMessage(),
        }
        payload.update({
            key: getattr(record, key)
            for key in EXTRA_FIELDS
            if getattr(record, key, None) is not None
        })
        if record.exc_info and record.exc_info[0] is not None:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_structured_logging(log_level: str = "INFO") -> None:
    """Install a single JSON handler on the root logger. Safe to call more than once."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for existing in list(root.handlers):
        if getattr(existing, "_leadline_json", False):
            root.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())
    handler.addFilter(CorrelationIdFilter())
    handler._leadline_json = True
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
