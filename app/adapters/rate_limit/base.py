"""Rate limiter interfaces.

The note service depends on this abstraction (not the concrete
implementation) so the limiting strategy can change without touching it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit check/consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when denied).
        reset_at: UNIX epoch seconds when the window (or ban) resets.
        retry_after_seconds: Suggested wait time in seconds when denied.
        blocked: True when denial comes from an active ban, not the window.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None
    blocked: bool = False


class AbstractRateLimiter(ABC):
    """Interface for rate limiters with failure-driven bans."""

    @abstractmethod
    def check_and_consume(
        self, client_id: str, *, limit: int, window_seconds: int
    ) -> RateLimitResult:
        """Check admission for a client and consume one unit when allowed.

        Args:
            client_id: Rate limiting subject (e.g., client IP address).
            limit: Max requests per window.
            window_seconds: Window size in seconds.

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError

    @abstractmethod
    def record_failure(
        self, client_id: str, *, threshold: int = 100, ban_seconds: int = 86400
    ) -> None:
        """Record a failed lookup, banning the client once ``threshold`` is reached."""
        raise NotImplementedError

    @abstractmethod
    def record_success(self, client_id: str) -> None:
        """Forgive all previously recorded failures for a client."""
        raise NotImplementedError
