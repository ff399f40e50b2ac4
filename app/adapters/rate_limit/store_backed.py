"""Store-backed window rate limiter with automatic bans.

Three pieces of state per client, all kept in the key-value store:

- ``<namespace>:window:<client>``: request counter, TTL = window
- ``<namespace>:fails:<client>``: cumulative failed lookups, TTL = 24h
- ``<namespace>:block:<client>``: ban flag, TTL = ban duration

Notes:
- Fails open: any ``StoreError`` admits the request (or turns failure
  bookkeeping into a no-op). An outage of the limiting substrate must not
  deny legitimate traffic.
- Counts are only as precise as the store's per-key atomicity; under races
  without it they become approximate.
"""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.store.base import AbstractKeyValueStore, StoreError
from app.core.logging import hash_for_log

logger = logging.getLogger(__name__)

WINDOW_KIND = "window"
FAILURES_KIND = "fails"
BLOCK_KIND = "block"


class StoreBackedRateLimiter(AbstractRateLimiter):
    """Rate limiter keeping window, failure and ban state in a key-value store."""

    def __init__(
        self,
        store: AbstractKeyValueStore,
        *,
        namespace: str = "rate_limit",
        failure_window_seconds: int = 86400,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Backing key-value store.
            namespace: Key prefix for all limiter state.
            failure_window_seconds: TTL of the cumulative failure counter.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If namespace or failure_window_seconds are invalid.
        """
        if not namespace:
            raise ValueError("namespace must be a non-empty string")
        if failure_window_seconds < 1:
            raise ValueError("failure_window_seconds must be >= 1")

        self._store = store
        self._namespace = namespace
        self._failure_window_seconds = failure_window_seconds
        self._clock = clock

    def _key(self, kind: str, client_id: str) -> str:
        return f"{self._namespace}:{kind}:{client_id}"

    def check_and_consume(
        self, client_id: str, *, limit: int, window_seconds: int
    ) -> RateLimitResult:
        """Check the ban flag and window counter, consuming one unit when allowed.

        A denied request never increments the counter, so ``reset_at`` stays
        stable while the client keeps retrying.

        Raises:
            ValueError: If client_id is empty or limit/window are invalid.
        """
        if not client_id:
            raise ValueError("client_id must be a non-empty string")
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        now = self._clock()

        try:
            block_key = self._key(BLOCK_KIND, client_id)
            if self._store.get(block_key) is not None:
                # A flag without expiry still blocks; the window is the retry hint
                block_ttl = self._store.ttl_remaining(block_key) or window_seconds
                return self._build_denied_result(
                    now=now, limit=limit, wait_seconds=block_ttl, blocked=True
                )

            window_key = self._key(WINDOW_KIND, client_id)
            current = self._read_counter(window_key)
            if current >= limit:
                window_ttl = self._store.ttl_remaining(window_key) or window_seconds
                return self._build_denied_result(
                    now=now, limit=limit, wait_seconds=window_ttl, blocked=False
                )

            count = self._store.increment(window_key, window_seconds)
        except StoreError as exc:
            logger.warning(
                "rate_limit.fail_open",
                extra={
                    "operation": "check_and_consume",
                    "client_hash": hash_for_log(client_id),
                    "error_msg": str(exc),
                },
            )
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=limit,
                reset_at=int(math.ceil(now + window_seconds)),
                retry_after_seconds=None,
            )

        return RateLimitResult(
            allowed=True,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=int(math.ceil(now + window_seconds)),
            retry_after_seconds=None,
        )

    def record_failure(
        self, client_id: str, *, threshold: int = 100, ban_seconds: int = 86400
    ) -> None:
        """Count a failed lookup and ban the client once ``threshold`` is reached."""
        if not client_id:
            raise ValueError("client_id must be a non-empty string")
        if threshold < 1:
            raise ValueError("threshold must be >= 1")
        if ban_seconds < 1:
            raise ValueError("ban_seconds must be >= 1")

        try:
            failures = self._store.increment(
                self._key(FAILURES_KIND, client_id), self._failure_window_seconds
            )
            if failures >= threshold:
                self._store.set_with_expiry(self._key(BLOCK_KIND, client_id), "1", ban_seconds)
                logger.warning(
                    "rate_limit.client_blocked",
                    extra={
                        "client_hash": hash_for_log(client_id),
                        "failures": failures,
                        "threshold": threshold,
                        "ban_s": ban_seconds,
                    },
                )
        except StoreError as exc:
            logger.warning(
                "rate_limit.fail_open",
                extra={
                    "operation": "record_failure",
                    "client_hash": hash_for_log(client_id),
                    "error_msg": str(exc),
                },
            )

    def record_success(self, client_id: str) -> None:
        """Delete the failure counter so earlier typos do not drift toward a ban."""
        if not client_id:
            raise ValueError("client_id must be a non-empty string")

        try:
            self._store.delete(self._key(FAILURES_KIND, client_id))
        except StoreError as exc:
            logger.warning(
                "rate_limit.fail_open",
                extra={
                    "operation": "record_success",
                    "client_hash": hash_for_log(client_id),
                    "error_msg": str(exc),
                },
            )

    def _read_counter(self, key: str) -> int:
        raw = self._store.get(key)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError as exc:
            raise StoreError(f"counter at {key!r} is not an integer") from exc

    @staticmethod
    def _build_denied_result(
        *, now: float, limit: int, wait_seconds: int, blocked: bool
    ) -> RateLimitResult:
        """Build a RateLimitResult for a denied request."""
        return RateLimitResult(
            allowed=False,
            limit=limit,
            remaining=0,
            reset_at=int(math.ceil(now + wait_seconds)),
            retry_after_seconds=max(0, int(wait_seconds)),
            blocked=blocked,
        )
