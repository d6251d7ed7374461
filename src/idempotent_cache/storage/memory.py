"""In-memory idempotency store with asyncio concurrency control.

This module provides an in-process implementation of the IdempotencyStore
protocol. Entries are held in serialized (JSON) form, so the object a caller
passed to put() and the objects later returned by get() never share state:
an entry cannot be modified after it is written.

The MemoryIdempotencyStore is suitable for:
    - Single-process applications
    - Development and testing

For multi-instance deployments use RedisIdempotencyStore.

Expiry:
    - TTL is measured on the store's own monotonic clock
    - Expired entries are invisible to get() immediately
    - cleanup_expired() reclaims their memory (see core.cleanup)

Examples:
    Basic usage::

        from idempotent_cache.storage.memory import MemoryIdempotencyStore

        store = MemoryIdempotencyStore()
        await store.put("order-1", entry, ttl_seconds=300)
        entry = await store.get("order-1")

    Deterministic clock for tests::

        now = [0.0]
        store = MemoryIdempotencyStore(clock=lambda: now[0])
        await store.put("k", entry, ttl_seconds=1)
        now[0] = 1.5
        assert await store.get("k") is None
"""

import asyncio
import time
from collections.abc import Callable

from idempotent_cache.models import StoreEntry
from idempotent_cache.storage.base import IdempotencyStore


class MemoryIdempotencyStore(IdempotencyStore):
    """In-memory store with per-entry TTL.

    Attributes:
        _entries: Mapping of key to (serialized entry, expiry deadline).
        _lock: Lock making put_if_absent() check-and-set atomic.
        _clock: Monotonic time source in seconds.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        """Initialize an empty store.

        Args:
            clock: Monotonic time source in seconds. Override in tests.
        """
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock

    def _live(self, key: str, now: float) -> str | None:
        item = self._entries.get(key)
        if item is None:
            return None
        raw, deadline = item
        if deadline <= now:
            return None
        return raw

    async def get(self, key: str) -> StoreEntry | None:
        """Retrieve the live entry for a key.

        Args:
            key: The idempotency key to look up.

        Returns:
            A fresh copy of the entry, or None if missing or expired.
        """
        raw = self._live(key, self._clock())
        if raw is None:
            return None
        return StoreEntry.model_validate_json(raw)

    async def put(self, key: str, entry: StoreEntry, ttl_seconds: int) -> None:
        """Unconditionally write an entry.

        Args:
            key: The idempotency key.
            entry: The entry to store.
            ttl_seconds: Time-to-live in seconds.
        """
        async with self._lock:
            self._entries[key] = (entry.model_dump_json(), self._clock() + ttl_seconds)

    async def put_if_absent(self, key: str, entry: StoreEntry, ttl_seconds: int) -> bool:
        """Write an entry only if no live entry exists for the key.

        Race Condition Handling:
            The existence check and the write happen under one lock, so
            among concurrent callers exactly one sees True.

        Args:
            key: The idempotency key.
            entry: The entry to store.
            ttl_seconds: Time-to-live in seconds.

        Returns:
            True if written, False if a live entry already existed.
        """
        async with self._lock:
            now = self._clock()
            if self._live(key, now) is not None:
                return False
            self._entries[key] = (entry.model_dump_json(), now + ttl_seconds)
            return True

    async def remove(self, key: str) -> bool:
        """Remove the entry for a key.

        Returns:
            True if a live entry was removed.
        """
        async with self._lock:
            live = self._live(key, self._clock()) is not None
            self._entries.pop(key, None)
            return live

    async def size(self) -> int:
        """Return the number of live entries."""
        now = self._clock()
        return sum(1 for _, deadline in self._entries.values() if deadline > now)

    async def clear(self) -> int:
        """Remove every entry.

        Returns:
            The number of live entries that were removed.
        """
        async with self._lock:
            count = await self.size()
            self._entries.clear()
            return count

    async def cleanup_expired(self) -> int:
        """Drop expired entries from memory.

        Returns:
            The number of entries removed.
        """
        async with self._lock:
            now = self._clock()
            expired = [key for key, (_, deadline) in self._entries.items() if deadline <= now]
            for key in expired:
                del self._entries[key]
            return len(expired)
