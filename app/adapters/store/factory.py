"""Factory pattern for creating key-value store instances."""

from app.adapters.store.base import AbstractKeyValueStore
from app.adapters.store.in_memory import InMemoryKeyValueStore
from app.adapters.store.redis_store import RedisKeyValueStore
from app.core.config import StoreSettings, settings
from app.core.errors import ValidationAppError


def create_store(store_settings: StoreSettings | None = None) -> AbstractKeyValueStore:
    """Factory function to instantiate the configured store backend.

    Reads configuration from app.core.config.settings (Pydantic Settings)
    unless explicit settings are passed.

    Returns:
        AbstractKeyValueStore: Configured store instance.

    Raises:
        ValidationAppError: If backend-specific requirements are not met.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryKeyValueStore(max_entries=cfg.max_entries)

    if backend == "redis":
        if not cfg.redis_url:
            raise ValidationAppError(
                code="store_missing_redis_url",
                message="Redis store backend requires STORE_REDIS_URL environment variable",
            )
        return RedisKeyValueStore.from_url(cfg.redis_url, timeout_seconds=cfg.timeout_seconds)

    raise ValidationAppError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, redis",
    )
