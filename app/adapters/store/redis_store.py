"""Redis-backed key-value store.

Uses redis-py's synchronous client with string decoding. Every
``redis.exceptions.RedisError`` (connection refused, timeout, wrong type...)
is re-raised as ``StoreError`` so callers never depend on the client library.
"""

from __future__ import annotations

import logging
from typing import Any

import redis
from redis.exceptions import RedisError

from app.adapters.store.base import AbstractKeyValueStore, StoreDecodeError, StoreError

logger = logging.getLogger(__name__)


class RedisKeyValueStore(AbstractKeyValueStore):
    """Store adapter over a Redis server."""

    def __init__(self, client: Any) -> None:
        """Wrap an existing Redis client.

        Args:
            client: ``redis.Redis`` instance created with ``decode_responses=True``.
        """
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, timeout_seconds: float = 2.0) -> "RedisKeyValueStore":
        """Build a store from a Redis URL.

        Args:
            url: Connection URL (e.g. ``redis://localhost:6379/0``).
            timeout_seconds: Socket connect and read timeout.

        Returns:
            Configured store. No connection is opened until the first command.
        """
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client)

    def set_with_expiry(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            self._client.setex(key, ttl_seconds, value)
        except RedisError as exc:
            raise self._wrap("setex", exc) from exc

    def get(self, key: str) -> str | None:
        try:
            value = self._client.get(key)
            if isinstance(value, bytes):
                value = value.decode("utf-8")
        except RedisError as exc:
            raise self._wrap("get", exc) from exc
        except UnicodeDecodeError as exc:
            # raised inside the client itself when decode_responses=True
            logger.warning("store.redis_undecodable_value", extra={"error_msg": str(exc)})
            raise StoreDecodeError(f"get: value is not valid UTF-8 ({exc.reason})") from exc
        return value

    def delete(self, key: str) -> None:
        try:
            self._client.delete(key)
        except RedisError as exc:
            raise self._wrap("delete", exc) from exc

    def ttl_remaining(self, key: str) -> int | None:
        try:
            ttl = self._client.ttl(key)
        except RedisError as exc:
            raise self._wrap("ttl", exc) from exc
        # -2: key does not exist, -1: key has no expiry
        if ttl is None or ttl < 0:
            return None
        return int(ttl)

    def increment(self, key: str, ttl_seconds: int) -> int:
        try:
            with self._client.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.expire(key, ttl_seconds)
                count, _ = pipe.execute()
        except RedisError as exc:
            raise self._wrap("incr", exc) from exc
        return int(count)

    def ping(self) -> None:
        try:
            self._client.ping()
        except RedisError as exc:
            raise self._wrap("ping", exc) from exc

    @staticmethod
    def _wrap(operation: str, exc: RedisError) -> StoreError:
        logger.warning(
            "store.redis_error",
            extra={
                "operation": operation,
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
            },
        )
        return StoreError(f"redis {operation} failed: {exc}")
