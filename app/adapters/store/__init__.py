"""Ephemeral key-value store adapters.

Higher layers depend on ``AbstractKeyValueStore`` only, so the in-process
store used in development and tests can be swapped for Redis in production.
"""

from __future__ import annotations

from app.adapters.store.base import AbstractKeyValueStore, StoreDecodeError, StoreError
from app.adapters.store.factory import create_store
from app.adapters.store.in_memory import InMemoryKeyValueStore
from app.adapters.store.redis_store import RedisKeyValueStore

__all__ = [
    "AbstractKeyValueStore",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "StoreDecodeError",
    "StoreError",
    "create_store",
]
