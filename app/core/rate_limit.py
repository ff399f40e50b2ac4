"""HTTP-side helpers for rate limiting.

This module wires the rate limiting adapter into the HTTP layer:

- Resolves the rate limiting subject (client id) from the request's network
  origin.
- Renders rate limit state as X-RateLimit-* / Retry-After headers.

Client id resolution order:
- First entry of X-Forwarded-For (when proxy headers are trusted)
- X-Real-IP (when proxy headers are trusted)
- Direct connection address
- "unknown"
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fastapi import Request

from app.adapters.rate_limit.base import RateLimitResult
from app.core.config import settings

UNKNOWN_CLIENT = "unknown"


def resolve_client_id(request: Request, *, trust_proxy_headers: bool | None = None) -> str:
    """Derive the rate limiting subject for a request.

    Args:
        request: FastAPI request.
        trust_proxy_headers: Override for ``settings.app.trust_proxy_headers``.

    Returns:
        str: Client address, or "unknown" when none can be determined.
    """

    trust = settings.app.trust_proxy_headers if trust_proxy_headers is None else trust_proxy_headers

    if trust:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            first = forwarded_for.split(",")[0].strip()
            if first:
                return first

        real_ip = request.headers.get("x-real-ip", "").strip()
        if real_ip:
            return real_ip

    if request.client and request.client.host:
        return request.client.host

    return UNKNOWN_CLIENT


def build_rate_limit_headers(
    *,
    limit: int | None,
    remaining: int | None,
    reset_at: int | None,
    retry_after: int | None = None,
) -> dict[str, str]:
    """Render rate limit state as response headers.

    Returns an empty dict when headers are disabled or no state is known.
    """

    if not settings.rate_limit.include_headers or limit is None:
        return {}

    headers: dict[str, str] = {"X-RateLimit-Limit": str(limit)}
    if remaining is not None:
        headers["X-RateLimit-Remaining"] = str(remaining)
    if reset_at is not None:
        headers["X-RateLimit-Reset"] = str(reset_at)
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return headers


def headers_from_result(result: RateLimitResult | None) -> dict[str, str]:
    """Build headers from a limiter result (successful retrievals)."""

    if result is None:
        return {}
    return build_rate_limit_headers(
        limit=result.limit,
        remaining=result.remaining,
        reset_at=result.reset_at,
        retry_after=result.retry_after_seconds,
    )


def headers_from_details(details: Mapping[str, Any] | None) -> dict[str, str]:
    """Build headers from the rate limit hint attached to error details."""

    if not details:
        return {}
    return build_rate_limit_headers(
        limit=details.get("limit"),
        remaining=details.get("remaining"),
        reset_at=details.get("reset_at"),
        retry_after=details.get("retry_after"),
    )
