"""Stores backing the idempotent request cache.

All stores implement the IdempotencyStore protocol defined in base.py.

Available Stores:
    - MemoryIdempotencyStore: In-process storage with asyncio concurrency
    - RedisIdempotencyStore: Redis-based storage shared across instances
"""

from idempotent_cache.config import IdempotencyConfig
from idempotent_cache.storage.base import IdempotencyStore
from idempotent_cache.storage.memory import MemoryIdempotencyStore
from idempotent_cache.storage.redis import RedisIdempotencyStore


def create_store(config: IdempotencyConfig) -> IdempotencyStore:
    """Build the store selected by ``config.store_backend``.

    Call once per process and pass the result to the interceptor.

    Args:
        config: Process configuration.

    Returns:
        A store instance.
    """
    if config.store_backend == "redis":
        return RedisIdempotencyStore.from_url(config.redis_url, namespace=config.namespace)
    return MemoryIdempotencyStore()


__all__ = [
    "IdempotencyStore",
    "MemoryIdempotencyStore",
    "RedisIdempotencyStore",
    "create_store",
]
