"""In-memory TTL key-value store.

Designed for development and tests: no external dependencies, thread-safe,
and behaviorally aligned with the Redis adapter (string values, whole-second
TTLs, atomic increment-with-expiry).

Notes:
- Per-process only: running multiple workers gives each its own notes and
  its own rate-limit counters.
"""

from __future__ import annotations

import logging
import math
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable

from app.adapters.store.base import AbstractKeyValueStore, StoreError

logger = logging.getLogger(__name__)


@dataclass
class StoreItem:
    """Container for stored values with expiration metadata."""

    value: str
    expires_at: float


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Thread-safe, in-memory TTL store with optional LRU capacity bound.

    Attributes:
        max_entries: Maximum number of stored keys (None for unlimited).
    """

    def __init__(
        self,
        *,
        max_entries: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the store.

        Args:
            max_entries: Capacity bound; least recently used keys are evicted
                beyond it.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If max_entries is invalid.
        """
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, StoreItem] = OrderedDict()
        self._lock = threading.RLock()
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryKeyValueStore(max_entries={self._max_entries}, "
            f"size={len(self._store)}, evictions={self._evictions})"
        )

    def __len__(self) -> int:
        with self._lock:
            self._evict_expired_locked()
            return len(self._store)

    def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        with self._lock:
            self._evict_expired_locked()
            self._store[key] = StoreItem(value=value, expires_at=self._clock() + ttl_seconds)
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

    def get(self, key: str) -> str | None:
        with self._lock:
            item = self._get_live_locked(key)
            if item is None:
                return None
            self._store.move_to_end(key)  # mark as recently used
            return item.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)

    def ttl_remaining(self, key: str) -> int | None:
        with self._lock:
            item = self._get_live_locked(key)
            if item is None:
                return None
            return max(1, int(math.ceil(item.expires_at - self._clock())))

    def increment(self, key: str, ttl_seconds: int) -> int:
        if ttl_seconds < 1:
            raise ValueError("ttl_seconds must be >= 1")

        with self._lock:
            item = self._get_live_locked(key)
            current = 0
            if item is not None:
                try:
                    current = int(item.value)
                except ValueError as exc:
                    raise StoreError(f"value at {key!r} is not an integer") from exc

            new_value = current + 1
            self._store[key] = StoreItem(
                value=str(new_value),
                expires_at=self._clock() + ttl_seconds,
            )
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()
            return new_value

    def ping(self) -> None:
        return None

    def clear(self) -> None:
        """Remove all stored entries."""

        with self._lock:
            self._store.clear()
            self._evictions = 0

    def _get_live_locked(self, key: str) -> StoreItem | None:
        item = self._store.get(key)
        if item is None:
            return None
        if self._is_expired(item):
            self._evict_single(key)
            return None
        return item

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_expired_locked(self) -> None:
        now = self._clock()
        expired_keys = [k for k, item in self._store.items() if item.expires_at <= now]
        for key in expired_keys:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            key, _ = self._store.popitem(last=False)
            self._evictions += 1
            logger.debug("store.evicted", extra={"reason": "capacity", "size": len(self._store)})

    def _is_expired(self, item: StoreItem) -> bool:
        return self._clock() >= item.expires_at
