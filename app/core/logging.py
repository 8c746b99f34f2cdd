"""Structured logging for the injection tracker.

Every record becomes one JSON line carrying the id of the HTTP request
being served. Credentials and personal health data passed through
``extra`` are redacted before any handler formats the record, including
values nested inside mappings and lists.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from app.core.config import LogSettings, settings

REDACTED = "[REDACTED]"

CREDENTIAL_KEYS = frozenset(
    {
        "api_key",
        "x_api_key",
        "app_api_keys",
        "authorization",
        "cookie",
        "set_cookie",
        "token",
        "secret",
        "password",
        "db_url",
        "database_url",
    }
)

# Who injected and what they measured. Counts and flags such as
# ``has_notes`` or ``filtered_by_user`` stay visible.
HEALTH_DATA_KEYS = frozenset(
    {
        "user_name",
        "notes",
        "blood_glucose_before",
        "blood_glucose_after",
        "carbs_grams",
    }
)

SENSITIVE_KEYS = CREDENTIAL_KEYS | HEALTH_DATA_KEYS

# Attributes every LogRecord has; whatever else is on a record came from ``extra``.
_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "request_id"}

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def _normalize_key(key: str) -> str:
    """``X-API-Key`` and ``x_api_key`` name the same field."""
    return key.lower().replace("-", "_")


def redact(value: Any, sensitive_keys: frozenset[str] = SENSITIVE_KEYS) -> Any:
    """Return ``value`` with sensitive mapping entries replaced at any depth."""
    if isinstance(value, Mapping):
        return {
            key: (
                REDACTED
                if isinstance(key, str) and _normalize_key(key) in sensitive_keys
                else redact(item, sensitive_keys)
            )
            for key, item in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(redact(item, sensitive_keys) for item in value)
    return value


def record_extras(record: LogRecord) -> dict[str, Any]:
    """Fields attached to ``record`` through ``extra``."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Stamp records with the current request id unless one was passed explicitly."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            record.request_id = get_request_id()
        return True


class SensitiveDataFilter(logging.Filter):
    """Replace sensitive ``extra`` values on the record in place."""

    def __init__(self, sensitive_keys: Iterable[str] | None = None) -> None:
        super().__init__()
        self.sensitive_keys = frozenset(
            _normalize_key(key) for key in (sensitive_keys or SENSITIVE_KEYS)
        )

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        record.__dict__.update(redact(record_extras(record), self.sensitive_keys))
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record: fixed fields first, then ``extra`` fields.

    Redaction is left to ``SensitiveDataFilter``, which ``configure_logging``
    installs on the same handler.
    """

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id
        payload.update(record_extras(record))

        if record.exc_info:
            exc_type = record.exc_info[0]
            payload["exc_type"] = exc_type.__name__ if exc_type else None
            payload["exc_text"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    path = Path(log_settings.file_path or "logs/injection-tracker.log")
    path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(path, encoding="utf-8")


def configure_logging(
    log_settings: LogSettings | None = None,
    *,
    debug: bool | None = None,
) -> None:
    """Install the single root handler used by the API.

    Args:
        log_settings: Defaults to ``settings.log``.
        debug: Force DEBUG level; defaults to ``settings.app.debug``.
    """
    cfg = log_settings or settings.log
    debug = settings.app.debug if debug is None else debug
    level = logging.DEBUG if debug else getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
    # SQL echo is controlled by DB_ECHO, not by the root level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
