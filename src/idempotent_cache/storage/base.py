"""Store protocol for the idempotent request cache.

The interception layer consumes its store only through this interface: a
namespaced key-value store with per-entry TTL. Implementations can target
Redis, Memcached, a SQL table or process memory.

Examples:
    Implementing a custom store::

        from idempotent_cache.models import StoreEntry

        class MyStore:
            async def get(self, key: str) -> StoreEntry | None:
                data = await self.backend.get(key)
                if data is None:
                    return None
                return StoreEntry.model_validate_json(data)

            async def put(self, key: str, entry: StoreEntry, ttl_seconds: int) -> None:
                await self.backend.set(key, entry.model_dump_json(), ttl=ttl_seconds)

            ...

Contract requirements:
    All IdempotencyStore implementations MUST guarantee:

    1. **Store-owned expiry**: entries become invisible to get() once their
       TTL has elapsed on the store's own clock. Callers never check expiry.

    2. **Immutable entries**: an entry is returned exactly as written. put()
       replaces the whole entry; nothing updates fields in place.

    3. **Atomic insert**: put_if_absent() writes only when no live entry
       exists for the key, and reports whether it wrote. Two concurrent
       calls for the same key must never both return True.

    4. **Namespace isolation**: keys are scoped so that size() and clear()
       only see idempotency entries, never unrelated data.

    5. **Error translation**: backend failures surface as
       StoreUnavailableError, never as backend-specific exceptions.
"""

from typing import Protocol, runtime_checkable

from idempotent_cache.models import StoreEntry


@runtime_checkable
class IdempotencyStore(Protocol):
    """Protocol defining the interface for idempotency stores.

    All methods are async and must be safe to call concurrently from many
    tasks and, for shared backends, from many processes.

    Error Handling:
        Methods raise StoreUnavailableError when the backend cannot be
        reached or returns unusable data.
    """

    async def get(self, key: str) -> StoreEntry | None:
        """Retrieve the live entry for a key.

        Args:
            key: The idempotency key to look up.

        Returns:
            The entry if present and not expired, None otherwise.
        """
        ...

    async def put(self, key: str, entry: StoreEntry, ttl_seconds: int) -> None:
        """Unconditionally write an entry (last write wins).

        Args:
            key: The idempotency key.
            entry: The entry to store.
            ttl_seconds: Time-to-live enforced by the store.
        """
        ...

    async def put_if_absent(self, key: str, entry: StoreEntry, ttl_seconds: int) -> bool:
        """Atomically write an entry only if no live entry exists.

        Args:
            key: The idempotency key.
            entry: The entry to store.
            ttl_seconds: Time-to-live enforced by the store.

        Returns:
            True if the entry was written, False if one already existed.
        """
        ...

    async def remove(self, key: str) -> bool:
        """Remove the entry for a key.

        Args:
            key: The idempotency key.

        Returns:
            True if an entry was removed, False if none existed.
        """
        ...

    async def size(self) -> int:
        """Return the number of live entries in the namespace."""
        ...

    async def clear(self) -> int:
        """Remove every entry in the namespace.

        Returns:
            The number of entries removed.
        """
        ...
