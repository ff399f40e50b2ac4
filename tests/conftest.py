"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment variables are set before any app import so settings resolve to
the in-memory store and default limits.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("RATE_LIMIT_ENABLED", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from app.adapters.rate_limit import StoreBackedRateLimiter
from app.adapters.store import (
    AbstractKeyValueStore,
    InMemoryKeyValueStore,
    StoreDecodeError,
    StoreError,
)
from app.api.dependencies import get_note_service, get_store, reset_dependencies
from app.main import app
from app.services.note_service import NoteService


class FakeClock:
    """Deterministic clock returning UNIX seconds; advanced manually."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


class FailingStore(AbstractKeyValueStore):
    """Store double whose every operation raises StoreError."""

    def __init__(self) -> None:
        self.calls: list[str] = []

    def _fail(self, operation: str):
        self.calls.append(operation)
        raise StoreError(f"{operation}: connection refused")

    def set_with_expiry(self, key, value, ttl_seconds):
        self._fail("set_with_expiry")

    def get(self, key):
        self._fail("get")

    def delete(self, key):
        self._fail("delete")

    def ttl_remaining(self, key):
        self._fail("ttl_remaining")

    def increment(self, key, ttl_seconds):
        self._fail("increment")

    def ping(self):
        self._fail("ping")


class UndecodableNoteStore(InMemoryKeyValueStore):
    """In-memory store whose note reads fail to decode, like non-UTF-8 bytes in Redis."""

    def get(self, key):
        if key.startswith("note:"):
            raise StoreDecodeError("get: value is not valid UTF-8 (invalid start byte)")
        return super().get(key)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(clock=clock)


@pytest.fixture
def limiter(store: InMemoryKeyValueStore, clock: FakeClock) -> StoreBackedRateLimiter:
    return StoreBackedRateLimiter(store, clock=clock)


@pytest.fixture
def service(
    store: InMemoryKeyValueStore, limiter: StoreBackedRateLimiter, clock: FakeClock
) -> NoteService:
    return NoteService(store, limiter, limit=10, window_seconds=60, clock=clock)


@pytest.fixture
def client(store: InMemoryKeyValueStore, service: NoteService) -> Iterator[TestClient]:
    """TestClient wired to the fixture store/service (deterministic clock)."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_note_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        reset_dependencies()


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def undecodable_store(clock: FakeClock) -> UndecodableNoteStore:
    return UndecodableNoteStore(clock=clock)
