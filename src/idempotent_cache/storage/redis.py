"""Redis-backed idempotency store.

Entries are stored as JSON strings under ``{namespace}:{key}`` with the TTL
set by Redis (``EX``), so expiry is enforced by the server clock and shared
by every service instance. ``put_if_absent`` uses ``SET ... NX EX``, which
makes the check-and-set a single atomic command.

Examples:
    Creating a store::

        from redis.asyncio import Redis
        from idempotent_cache.storage.redis import RedisIdempotencyStore

        store = RedisIdempotencyStore(Redis.from_url("redis://localhost:6379/0"))

        # or
        store = RedisIdempotencyStore.from_url("redis://localhost:6379/0", namespace="orders")

    Key layout::

        idempotency:order-1  ->  {"key": "order-1", "envelope": {...}, ...}
"""

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from idempotent_cache.exceptions import StoreUnavailableError
from idempotent_cache.models import StoreEntry
from idempotent_cache.observability.logging import get_logger
from idempotent_cache.storage.base import IdempotencyStore

logger = get_logger(__name__)


class RedisIdempotencyStore(IdempotencyStore):
    """Idempotency store on top of a redis-py asyncio client.

    Attributes:
        _redis: The Redis client. Owned by the caller unless built by from_url().
        _namespace: Prefix for every key this store touches.
    """

    def __init__(self, redis: Redis, namespace: str = "idempotency") -> None:
        """Initialize the store.

        Args:
            redis: Redis client instance
            namespace: Prefix for Redis keys
        """
        self._redis = redis
        self._namespace = namespace

    @classmethod
    def from_url(cls, url: str, namespace: str = "idempotency") -> "RedisIdempotencyStore":
        """Build a store with its own client from a connection URL."""
        return cls(Redis.from_url(url), namespace=namespace)

    def _make_key(self, key: str) -> str:
        """Build Redis key.

        Format: {namespace}:{key}
        """
        return f"{self._namespace}:{key}"

    async def get(self, key: str) -> StoreEntry | None:
        """Retrieve the entry for a key.

        Raises:
            StoreUnavailableError: On connection failure or an unreadable entry.
        """
        try:
            raw = await self._redis.get(self._make_key(key))
        except RedisError as e:
            raise StoreUnavailableError(
                message=f"Failed to read idempotency key from Redis: {e}",
                cause=e,
            ) from e

        if raw is None:
            return None

        try:
            return StoreEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "idempotency.corrupted_entry",
                key=key,
                error=str(e),
            )
            raise StoreUnavailableError(
                message=f"Stored idempotency entry for {key} is unreadable",
                cause=e,
            ) from e

    async def put(self, key: str, entry: StoreEntry, ttl_seconds: int) -> None:
        """Write an entry, overwriting any existing value.

        Raises:
            StoreUnavailableError: On connection failure.
        """
        try:
            await self._redis.set(self._make_key(key), entry.model_dump_json(), ex=ttl_seconds)
        except RedisError as e:
            raise StoreUnavailableError(
                message=f"Failed to write idempotency key to Redis: {e}",
                cause=e,
            ) from e

    async def put_if_absent(self, key: str, entry: StoreEntry, ttl_seconds: int) -> bool:
        """Write an entry only if the key does not exist.

        Uses SET with NX (only if not exists) and EX (expiry) for atomicity.

        Raises:
            StoreUnavailableError: On connection failure.
        """
        try:
            written = await self._redis.set(
                self._make_key(key),
                entry.model_dump_json(),
                ex=ttl_seconds,
                nx=True,
            )
        except RedisError as e:
            raise StoreUnavailableError(
                message=f"Failed to write idempotency key to Redis: {e}",
                cause=e,
            ) from e
        return bool(written)

    async def remove(self, key: str) -> bool:
        """Delete the entry for a key.

        Raises:
            StoreUnavailableError: On connection failure.
        """
        try:
            deleted = await self._redis.delete(self._make_key(key))
        except RedisError as e:
            raise StoreUnavailableError(
                message=f"Failed to delete idempotency key from Redis: {e}",
                cause=e,
            ) from e
        return deleted > 0

    async def size(self) -> int:
        """Count keys in the namespace with SCAN.

        Raises:
            StoreUnavailableError: On connection failure.
        """
        try:
            count = 0
            async for _ in self._redis.scan_iter(match=f"{self._namespace}:*"):
                count += 1
            return count
        except RedisError as e:
            raise StoreUnavailableError(
                message=f"Failed to scan idempotency namespace: {e}",
                cause=e,
            ) from e

    async def clear(self) -> int:
        """Delete every key in the namespace.

        Raises:
            StoreUnavailableError: On connection failure.
        """
        try:
            names = [name async for name in self._redis.scan_iter(match=f"{self._namespace}:*")]
            if not names:
                return 0
            return int(await self._redis.delete(*names))
        except RedisError as e:
            raise StoreUnavailableError(
                message=f"Failed to clear idempotency namespace: {e}",
                cause=e,
            ) from e

    async def close(self) -> None:
        """Close the underlying client's connections."""
        await self._redis.aclose()
