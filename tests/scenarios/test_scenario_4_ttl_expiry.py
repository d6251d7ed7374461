"""Scenario 4: TTL Expiry Conformance Tests

This module tests entry lifetime:
- Within the TTL, calls replay the stored outcome
- Once the TTL elapses, the next call executes again and stores a new entry
- Per-operation TTL overrides the configured default
- A real one-second TTL expires on the wall clock as well
"""

import asyncio

import pytest

from idempotent_cache.config import IdempotencyConfig
from idempotent_cache.core.interceptor import IdempotencyInterceptor
from idempotent_cache.keys import key_from_argument
from idempotent_cache.models import OperationResult
from idempotent_cache.storage.memory import MemoryIdempotencyStore


@pytest.fixture
def config() -> IdempotencyConfig:
    return IdempotencyConfig(default_ttl_seconds=60)


@pytest.mark.asyncio
async def test_replay_within_ttl(interceptor, clock):
    calls = []

    async def op():
        calls.append(1)
        return OperationResult(payload={"n": len(calls)})

    await interceptor.execute("k", op)
    clock.advance(59)
    replay = await interceptor.execute("k", op)

    assert replay.from_cache is True
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_execute_again_after_ttl(interceptor, store, clock):
    calls = []

    async def op():
        calls.append(1)
        return OperationResult(payload={"n": len(calls)})

    first = await interceptor.execute("k", op)
    clock.advance(60)
    second = await interceptor.execute("k", op)

    assert second.from_cache is False
    assert second.result_payload == {"n": 2}
    assert not second.same_response(first)
    assert (await store.get("k")).envelope.result_payload == {"n": 2}


@pytest.mark.asyncio
async def test_operation_ttl_overrides_default(interceptor, clock):
    calls = []

    @interceptor.idempotent(key_from_argument("request_id"), ttl_seconds=5)
    async def short_lived(request_id: str) -> OperationResult:
        calls.append(request_id)
        return OperationResult(payload={"n": len(calls)})

    await short_lived("r-1")
    clock.advance(5)
    again = await short_lived("r-1")

    assert again.from_cache is False
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_conflicting_payload_allowed_after_expiry(interceptor, clock):
    async def op():
        return OperationResult(payload={"ok": True})

    await interceptor.execute("k", op, fingerprint="a" * 64)
    clock.advance(61)
    envelope = await interceptor.execute("k", op, fingerprint="b" * 64)

    assert envelope.from_cache is False


@pytest.mark.asyncio
async def test_real_clock_one_second_ttl():
    interceptor = IdempotencyInterceptor(MemoryIdempotencyStore())
    calls = []

    async def op():
        calls.append(1)
        return OperationResult(payload={"n": len(calls)})

    await interceptor.execute("k", op, ttl_seconds=1)
    assert (await interceptor.execute("k", op, ttl_seconds=1)).from_cache is True

    await asyncio.sleep(1.1)

    assert (await interceptor.execute("k", op, ttl_seconds=1)).from_cache is False
    assert len(calls) == 2
