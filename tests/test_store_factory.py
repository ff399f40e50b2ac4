"""Tests for store backend selection."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from app.adapters.store import InMemoryKeyValueStore, RedisKeyValueStore, create_store
from app.core.config import StoreSettings
from app.core.errors import ValidationAppError


def test_memory_backend():
    store = create_store(StoreSettings(backend="memory", max_entries=5))

    assert isinstance(store, InMemoryKeyValueStore)


def test_redis_backend_uses_configured_url():
    cfg = StoreSettings(backend="Redis", redis_url="redis://cache:6379/1", timeout_seconds=0.5)

    with patch("app.adapters.store.redis_store.redis.Redis.from_url") as from_url:
        store = create_store(cfg)

    assert isinstance(store, RedisKeyValueStore)
    from_url.assert_called_once_with(
        "redis://cache:6379/1",
        decode_responses=True,
        socket_timeout=0.5,
        socket_connect_timeout=0.5,
    )


def test_redis_backend_requires_url():
    with pytest.raises(ValidationAppError) as exc_info:
        create_store(StoreSettings(backend="redis", redis_url=None))

    assert exc_info.value.code == "store_missing_redis_url"


def test_unknown_backend_rejected():
    with pytest.raises(ValidationAppError) as exc_info:
        create_store(StoreSettings(backend="memcached"))

    assert exc_info.value.code == "store_unknown_backend"
