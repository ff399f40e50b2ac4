"""Logging setup for the note store: JSON lines, scrubbing, request correlation.

Two classes of structured fields are scrubbed before anything is written:

- Redacted: note text and credentials are replaced by ``[REDACTED]``.
- Hashed: identifiers and client addresses are replaced by a truncated
  SHA-256 digest. Holding an identifier grants read access to a note, so the
  raw value never reaches a log line, but the digest still lets operators
  follow one client or one note across lines.

Scrubbing applies recursively to nested mappings and sequences.
"""

from __future__ import annotations

import hashlib
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

REDACTED_KEYS: frozenset[str] = frozenset(
    {
        "authorization",
        "cookie",
        "set-cookie",
        "password",
        "secret",
        "token",
        "narrative",
        "redis_url",
    }
)

HASHED_KEYS: frozenset[str] = frozenset(
    {
        "identifier",
        "note_id",
        "client_id",
        "client_ip",
        "x-forwarded-for",
        "x-real-ip",
    }
)

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> None:
    _request_id_var.set(request_id)


def get_request_id() -> str | None:
    return _request_id_var.get()


def clear_request_id() -> None:
    _request_id_var.set(None)


def hash_for_log(value: object) -> str:
    """Return the first 16 hex chars of the SHA-256 of ``value``."""

    return hashlib.sha256(str(value).encode("utf-8")).hexdigest()[:16]


def scrub(
    key: str,
    value: Any,
    *,
    redacted_keys: frozenset[str] = REDACTED_KEYS,
    hashed_keys: frozenset[str] = HASHED_KEYS,
) -> Any:
    """Scrub one structured field according to its key.

    Examples:
        >>> scrub("narrative", "dizzy since Monday")
        '[REDACTED]'
        >>> scrub("status", 200)
        200
    """

    lowered = key.lower()
    if lowered in redacted_keys:
        return REDACTED
    if lowered in hashed_keys:
        return None if value is None else hash_for_log(value)
    if isinstance(value, Mapping):
        return {
            k: scrub(str(k), v, redacted_keys=redacted_keys, hashed_keys=hashed_keys)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return type(value)(
            scrub("", v, redacted_keys=redacted_keys, hashed_keys=hashed_keys) for v in value
        )
    return value


def record_extras(
    record: LogRecord,
    *,
    redacted_keys: frozenset[str] = REDACTED_KEYS,
    hashed_keys: frozenset[str] = HASHED_KEYS,
) -> dict[str, Any]:
    """Return the ``extra`` fields of a record, scrubbed."""

    return {
        key: scrub(key, value, redacted_keys=redacted_keys, hashed_keys=hashed_keys)
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }


class RequestIdFilter(logging.Filter):
    """Attach request_id from context when absent on the record."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Scrub ``extra`` fields on the record in place.

    The record is marked as scrubbed so ``JsonFormatter`` does not hash the
    already-hashed fields a second time.
    """

    def __init__(
        self,
        redacted_keys: Iterable[str] | None = None,
        hashed_keys: Iterable[str] | None = None,
    ) -> None:
        super().__init__()
        self.redacted_keys = frozenset(k.lower() for k in (redacted_keys or REDACTED_KEYS))
        self.hashed_keys = frozenset(k.lower() for k in (hashed_keys or HASHED_KEYS))

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "_scrubbed", False):
            return True
        extras = record_extras(
            record, redacted_keys=self.redacted_keys, hashed_keys=self.hashed_keys
        )
        for key, value in extras.items():
            setattr(record, key, value)
        record._scrubbed = True
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; scrubs extras unless a filter already did."""

    def __init__(self, *, ensure_ascii: bool = True) -> None:
        super().__init__()
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        if getattr(record, "_scrubbed", False):
            extras = {
                key: value
                for key, value in vars(record).items()
                if key not in _RECORD_ATTRS and not key.startswith("_")
            }
        else:
            extras = record_extras(record)
        payload.update(extras)

        if record.exc_info:
            payload["exc_type"] = record.exc_info[0].__name__ if record.exc_info[0] else None

        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Return a stdout handler, or a (rotating) file handler for output=file."""

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/app.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if log_settings.max_bytes:
        return RotatingFileHandler(
            file_path,
            maxBytes=log_settings.max_bytes,
            backupCount=log_settings.backup_count,
            encoding="utf-8",
        )
    return logging.FileHandler(file_path, encoding="utf-8")


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single scrubbing handler on the root logger.

    Args:
        log_settings: Optional log settings; defaults to global settings if omitted.
    """

    cfg = log_settings or settings.log

    level = logging.DEBUG if settings.app.debug else getattr(logging, cfg.level.upper(), logging.INFO)

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())

    if cfg.format.lower() == "plain":
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # uvicorn installs its own handlers
    logging.getLogger("uvicorn").propagate = False
    logging.getLogger("uvicorn.access").propagate = False
