"""Unit tests for RedisIdempotencyStore with a mocked Redis client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from idempotent_cache.exceptions import StoreUnavailableError
from idempotent_cache.storage.redis import RedisIdempotencyStore


@pytest.fixture
def redis_mock():
    """Create a mock Redis client."""
    return AsyncMock()


@pytest.fixture
def redis_store(redis_mock):
    """Create a store over the mock client."""
    return RedisIdempotencyStore(redis_mock, namespace="test")


def _scan(names):
    async def scan_iter(match=None):
        for name in names:
            yield name

    return MagicMock(side_effect=scan_iter)


# ============================================================================
# get
# ============================================================================


@pytest.mark.asyncio
async def test_get_missing(redis_store, redis_mock):
    redis_mock.get.return_value = None

    assert await redis_store.get("order-1") is None
    redis_mock.get.assert_called_once_with("test:order-1")


@pytest.mark.asyncio
async def test_get_returns_entry(redis_store, redis_mock, sample_entry):
    redis_mock.get.return_value = sample_entry.model_dump_json().encode("utf-8")

    assert await redis_store.get("order-1") == sample_entry


@pytest.mark.asyncio
async def test_get_corrupted_entry_raises(redis_store, redis_mock):
    redis_mock.get.return_value = b"not json"

    with pytest.raises(StoreUnavailableError, match="unreadable"):
        await redis_store.get("order-1")


@pytest.mark.asyncio
async def test_get_connection_error_translated(redis_store, redis_mock):
    redis_mock.get.side_effect = RedisConnectionError("refused")

    with pytest.raises(StoreUnavailableError) as exc_info:
        await redis_store.get("order-1")

    assert isinstance(exc_info.value.cause, RedisConnectionError)


# ============================================================================
# put / put_if_absent
# ============================================================================


@pytest.mark.asyncio
async def test_put_sets_with_expiry(redis_store, redis_mock, sample_entry):
    await redis_store.put("order-1", sample_entry, ttl_seconds=60)

    redis_mock.set.assert_called_once_with("test:order-1", sample_entry.model_dump_json(), ex=60)


@pytest.mark.asyncio
async def test_put_connection_error_translated(redis_store, redis_mock, sample_entry):
    redis_mock.set.side_effect = RedisConnectionError("refused")

    with pytest.raises(StoreUnavailableError):
        await redis_store.put("order-1", sample_entry, ttl_seconds=60)


@pytest.mark.asyncio
async def test_put_if_absent_uses_nx(redis_store, redis_mock, sample_entry):
    redis_mock.set.return_value = True

    assert await redis_store.put_if_absent("order-1", sample_entry, ttl_seconds=60) is True
    redis_mock.set.assert_called_once_with(
        "test:order-1", sample_entry.model_dump_json(), ex=60, nx=True
    )


@pytest.mark.asyncio
async def test_put_if_absent_existing(redis_store, redis_mock, sample_entry):
    redis_mock.set.return_value = None

    assert await redis_store.put_if_absent("order-1", sample_entry, ttl_seconds=60) is False


# ============================================================================
# remove / size / clear
# ============================================================================


@pytest.mark.asyncio
async def test_remove(redis_store, redis_mock):
    redis_mock.delete.return_value = 1

    assert await redis_store.remove("order-1") is True
    redis_mock.delete.assert_called_once_with("test:order-1")


@pytest.mark.asyncio
async def test_remove_missing(redis_store, redis_mock):
    redis_mock.delete.return_value = 0

    assert await redis_store.remove("order-1") is False


@pytest.mark.asyncio
async def test_size_scans_namespace(redis_store, redis_mock):
    redis_mock.scan_iter = _scan([b"test:a", b"test:b", b"test:c"])

    assert await redis_store.size() == 3
    redis_mock.scan_iter.assert_called_once_with(match="test:*")


@pytest.mark.asyncio
async def test_clear_deletes_namespace(redis_store, redis_mock):
    redis_mock.scan_iter = _scan([b"test:a", b"test:b"])
    redis_mock.delete.return_value = 2

    assert await redis_store.clear() == 2
    redis_mock.delete.assert_called_once_with(b"test:a", b"test:b")


@pytest.mark.asyncio
async def test_clear_empty_namespace(redis_store, redis_mock):
    redis_mock.scan_iter = _scan([])

    assert await redis_store.clear() == 0
    redis_mock.delete.assert_not_called()


@pytest.mark.asyncio
async def test_close(redis_store, redis_mock):
    await redis_store.close()

    redis_mock.aclose.assert_awaited_once()


def test_from_url_builds_client():
    store = RedisIdempotencyStore.from_url("redis://localhost:6379/3", namespace="orders")

    assert store._make_key("k") == "orders:k"
