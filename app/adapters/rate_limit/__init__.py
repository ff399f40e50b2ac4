"""Rate limiting adapters.

This package provides a small abstraction layer over per-client admission
control. State lives in the key-value store so limits hold across workers
when the store is shared (e.g. Redis).
"""

from __future__ import annotations

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.store_backed import StoreBackedRateLimiter

__all__ = ["AbstractRateLimiter", "RateLimitResult", "StoreBackedRateLimiter"]
