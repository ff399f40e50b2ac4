"""Dependency providers for the API layer.

Store and service instances are cached in-module so state (notes, counters)
persists across requests in the in-memory backend. Tests replace them via
``app.dependency_overrides`` or ``reset_dependencies()``.
"""

from __future__ import annotations

import logging

from app.adapters.rate_limit import StoreBackedRateLimiter
from app.adapters.store import AbstractKeyValueStore, create_store
from app.core.config import settings
from app.services.note_service import NoteService

logger = logging.getLogger(__name__)


_store: AbstractKeyValueStore | None = None
_note_service: NoteService | None = None


def get_store() -> AbstractKeyValueStore:
    """Return the process-wide key-value store."""

    global _store

    if _store is None:
        _store = create_store()
        logger.info("store.initialized", extra={"backend": settings.store.backend})
    return _store


def build_note_service(store: AbstractKeyValueStore) -> NoteService:
    """Build a NoteService wired from settings.

    Args:
        store: Store shared by notes and limiter state.

    Returns:
        NoteService: Configured service (no limiter when rate limiting is disabled).
    """

    limiter = None
    if settings.rate_limit.enabled:
        limiter = StoreBackedRateLimiter(
            store,
            namespace=settings.rate_limit.namespace,
            failure_window_seconds=settings.rate_limit.failure_window_seconds,
        )

    return NoteService(
        store,
        limiter,
        namespace=settings.notes.namespace,
        retention_seconds=settings.notes.retention_seconds,
        max_narrative_chars=settings.notes.max_narrative_chars,
        limit=settings.rate_limit.requests,
        window_seconds=settings.rate_limit.window_seconds,
        failure_threshold=settings.rate_limit.failure_threshold,
        ban_seconds=settings.rate_limit.ban_seconds,
    )


def get_note_service() -> NoteService:
    """Return the process-wide NoteService instance."""

    global _note_service

    if _note_service is None:
        _note_service = build_note_service(get_store())
    return _note_service


def reset_dependencies() -> None:
    """Drop cached instances so the next request rebuilds them from settings."""

    global _store, _note_service

    _store = None
    _note_service = None
