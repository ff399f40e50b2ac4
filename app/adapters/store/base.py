"""Key-value store interface.

The note service and the rate limiter depend on this abstraction (not a
concrete client) so the backing store can be replaced without touching them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class StoreError(Exception):
    """Raised when the backing store is unreachable or erroring.

    Distinct from "key not found", which every read reports as ``None``.
    """


class StoreDecodeError(StoreError):
    """Raised when a stored value exists but is not valid UTF-8 text."""


class AbstractKeyValueStore(ABC):
    """Interface for TTL-capable key-value stores.

    Every operation is a potential network call and may raise ``StoreError``.
    No ordering guarantee is assumed between calls (last write wins).
    """

    @abstractmethod
    def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``, overwriting any previous value."""
        raise NotImplementedError

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the value stored under ``key`` or None if absent/expired.

        Raises:
            StoreDecodeError: If the stored bytes are not valid UTF-8.
        """
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Deleting a missing key is not an error."""
        raise NotImplementedError

    @abstractmethod
    def ttl_remaining(self, key: str) -> int | None:
        """Return whole seconds until ``key`` expires.

        Returns:
            Remaining seconds, or None when the key is absent or has no expiry.
        """
        raise NotImplementedError

    @abstractmethod
    def increment(self, key: str, ttl_seconds: int) -> int:
        """Atomically increment an integer counter and refresh its TTL.

        A missing key starts at zero.

        Returns:
            The post-increment value.
        """
        raise NotImplementedError

    @abstractmethod
    def ping(self) -> None:
        """Check connectivity, raising ``StoreError`` when unavailable."""
        raise NotImplementedError
