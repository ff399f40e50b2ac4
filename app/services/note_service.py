"""Note service: create and retrieve ephemeral notes.

This service is the core business logic of the note store. It handles:
- Narrative and identifier validation/normalization
- Writing notes with a fixed retention TTL
- Rate-limit admission and failed-lookup bookkeeping on retrieval
- Logical expiry checks independent of the store's own TTL
- Translating store failures into the application error taxonomy

It is the only layer that decides whether an error is retryable.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from pydantic import ValidationError

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.store.base import AbstractKeyValueStore, StoreDecodeError, StoreError
from app.core.errors import (
    CorruptDataAppError,
    ErrorDetails,
    ExpiredAppError,
    NotFoundAppError,
    RateLimitedAppError,
    StoreUnavailableAppError,
    ValidationAppError,
)
from app.core.logging import hash_for_log
from app.schemas.notes import NoteRecord
from app.utils.identifiers import generate_identifier, is_valid_identifier, normalize_identifier

logger = logging.getLogger(__name__)

RETENTION_SECONDS = 72 * 60 * 60


@dataclass(frozen=True)
class CreatedNote:
    """Outcome of a successful create."""

    id: str
    created_at: int
    expires_at: int


@dataclass(frozen=True)
class RetrievedNote:
    """Outcome of a successful retrieve.

    ``rate_limit`` is None when rate limiting is disabled.
    """

    id: str
    narrative: str
    created_at: int
    expires_at: int
    rate_limit: RateLimitResult | None = None


def _rate_limit_details(result: RateLimitResult | None) -> ErrorDetails:
    if result is None:
        return {}
    details: ErrorDetails = {
        "limit": result.limit,
        "remaining": result.remaining,
        "reset_at": result.reset_at,
    }
    if result.retry_after_seconds is not None:
        details["retry_after"] = result.retry_after_seconds
    if result.blocked:
        details["blocked"] = True
    return details


class NoteService:
    """Create/retrieve notes on top of a key-value store and a rate limiter."""

    def __init__(
        self,
        store: AbstractKeyValueStore,
        limiter: AbstractRateLimiter | None = None,
        *,
        namespace: str = "note",
        retention_seconds: int = RETENTION_SECONDS,
        max_narrative_chars: int = 20000,
        limit: int = 10,
        window_seconds: int = 60,
        failure_threshold: int = 100,
        ban_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the service.

        Args:
            store: Backing key-value store (owns the bytes).
            limiter: Rate limiter for retrievals; None disables limiting.
            namespace: Key prefix for notes.
            retention_seconds: Retention window, used both as store TTL and
                for the logical expiry check.
            max_narrative_chars: Maximum narrative length after trimming.
            limit: Retrievals allowed per window per client.
            window_seconds: Rate limit window size.
            failure_threshold: Failed lookups that trigger a ban.
            ban_seconds: Ban duration.
            clock: Time source function returning UNIX time in seconds.
        """
        if retention_seconds < 1:
            raise ValueError("retention_seconds must be >= 1")

        self._store = store
        self._limiter = limiter
        self._namespace = namespace
        self._retention_seconds = retention_seconds
        self._max_narrative_chars = max_narrative_chars
        self._limit = limit
        self._window_seconds = window_seconds
        self._failure_threshold = failure_threshold
        self._ban_seconds = ban_seconds
        self._clock = clock

    @property
    def retention_ms(self) -> int:
        return self._retention_seconds * 1000

    def note_key(self, identifier: str) -> str:
        """Build the storage key for an identifier (normalized first)."""
        return f"{self._namespace}:{normalize_identifier(identifier)}"

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def create(self, narrative: object, identifier: str | None = None) -> CreatedNote:
        """Store a new note.

        Writing to a live identifier silently overwrites it; callers wanting
        a fresh slot should omit ``identifier`` to get a generated one.

        Args:
            narrative: Note text; trimmed before storage.
            identifier: Identifier candidate, or None to generate one.

        Returns:
            CreatedNote with the canonical identifier and expiry (epoch ms).

        Raises:
            ValidationAppError: Empty/oversized narrative or malformed identifier.
            StoreUnavailableAppError: If the store write fails.
        """
        if not isinstance(narrative, str) or not narrative.strip():
            raise ValidationAppError(
                code="empty_narrative",
                message="Narrative must be a non-empty string",
            )
        trimmed = narrative.strip()
        if len(trimmed) > self._max_narrative_chars:
            raise ValidationAppError(
                code="narrative_too_long",
                message=f"Narrative exceeds {self._max_narrative_chars} characters",
                details={
                    "max_value": self._max_narrative_chars,
                    "actual_value": len(trimmed),
                },
            )

        if identifier is None:
            note_id = generate_identifier()
        elif is_valid_identifier(identifier):
            note_id = normalize_identifier(identifier)
        else:
            raise ValidationAppError(
                code="invalid_identifier",
                message="Identifier must be 8 characters from A-Z and 2-9 (excluding O and I)",
            )

        record = NoteRecord(narrative=trimmed, created_at=self._now_ms())
        try:
            self._store.set_with_expiry(
                self.note_key(note_id),
                record.model_dump_json(by_alias=True),
                self._retention_seconds,
            )
        except StoreError as exc:
            logger.error(
                "note.store_unavailable",
                extra={"operation": "create", "error_msg": str(exc)},
            )
            raise StoreUnavailableAppError(
                code="store_unavailable",
                message="Note storage is temporarily unavailable. Please try again in a moment.",
            ) from exc

        logger.info(
            "note.created",
            extra={
                "note_hash": hash_for_log(note_id),
                "char_count": len(trimmed),
                "generated_id": identifier is None,
            },
        )
        return CreatedNote(
            id=note_id,
            created_at=record.created_at,
            expires_at=record.created_at + self.retention_ms,
        )

    def retrieve(self, client_id: str, identifier: object) -> RetrievedNote:
        """Read a note on behalf of a client.

        Failed lookups (bad shape, unknown or expired identifier) count toward
        the client's ban; store outages and corrupt payloads do not.

        Args:
            client_id: Rate limiting subject (network origin).
            identifier: Identifier as typed by the user.

        Returns:
            RetrievedNote with narrative, timestamps and the rate-limit state.

        Raises:
            RateLimitedAppError: Over the window quota or banned.
            ValidationAppError: Malformed identifier.
            StoreUnavailableAppError: Store read failed (retryable).
            NotFoundAppError: No note under the identifier.
            CorruptDataAppError: Stored payload could not be parsed.
            ExpiredAppError: Note outlived the retention window.
        """
        admission = self._admit(client_id)
        hint = _rate_limit_details(admission)

        if admission is not None and not admission.allowed:
            if admission.blocked:
                raise RateLimitedAppError(
                    code="client_blocked",
                    message="Too many failed attempts. Access is temporarily blocked.",
                    details=hint,
                )
            raise RateLimitedAppError(
                code="rate_limited",
                message="Rate limit exceeded. Try again later.",
                details=hint,
            )

        if not is_valid_identifier(identifier):
            self._record_failure(client_id)
            raise ValidationAppError(
                code="invalid_identifier",
                message="Invalid identifier format. Must be 8 characters from A-Z and 2-9.",
                details=hint,
            )

        note_id = normalize_identifier(identifier)
        key = self.note_key(note_id)

        try:
            raw = self._store.get(key)
        except StoreDecodeError as exc:
            logger.error(
                "note.corrupt_payload",
                extra={"note_hash": hash_for_log(note_id), "error_msg": str(exc)},
            )
            raise CorruptDataAppError(
                code="corrupt_note",
                message="Stored note data is corrupted.",
                details=hint,
            ) from exc
        except StoreError as exc:
            logger.error(
                "note.store_unavailable",
                extra={"operation": "retrieve", "error_msg": str(exc)},
            )
            raise StoreUnavailableAppError(
                code="store_unavailable",
                message="Note storage is temporarily unavailable. Please try again in a moment.",
                details=hint,
            ) from exc

        if raw is None:
            self._record_failure(client_id)
            raise NotFoundAppError(
                code="note_not_found",
                message="Note not found or has expired.",
                details=hint,
            )

        try:
            record = NoteRecord.model_validate_json(raw)
        except ValidationError as exc:
            logger.error(
                "note.corrupt_payload",
                extra={"note_hash": hash_for_log(note_id), "error_count": exc.error_count()},
            )
            raise CorruptDataAppError(
                code="corrupt_note",
                message="Stored note data is corrupted.",
                details=hint,
            ) from exc

        if self._now_ms() - record.created_at > self.retention_ms:
            self._discard(key, note_id)
            self._record_failure(client_id)
            raise ExpiredAppError(
                code="note_expired",
                message="Note has expired.",
                details=hint,
            )

        self._record_success(client_id)
        logger.info("note.retrieved", extra={"note_hash": hash_for_log(note_id)})
        return RetrievedNote(
            id=note_id,
            narrative=record.narrative,
            created_at=record.created_at,
            expires_at=record.created_at + self.retention_ms,
            rate_limit=admission,
        )

    def _admit(self, client_id: str) -> RateLimitResult | None:
        if self._limiter is None:
            return None
        return self._limiter.check_and_consume(
            client_id, limit=self._limit, window_seconds=self._window_seconds
        )

    def _record_failure(self, client_id: str) -> None:
        if self._limiter is None:
            return
        self._limiter.record_failure(
            client_id, threshold=self._failure_threshold, ban_seconds=self._ban_seconds
        )

    def _record_success(self, client_id: str) -> None:
        if self._limiter is not None:
            self._limiter.record_success(client_id)

    def _discard(self, key: str, note_id: str) -> None:
        # Best effort: the note is reported expired whether or not this succeeds.
        try:
            self._store.delete(key)
        except StoreError as exc:
            logger.warning(
                "note.expired_delete_failed",
                extra={"note_hash": hash_for_log(note_id), "error_msg": str(exc)},
            )
