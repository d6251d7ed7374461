"""Scenario 7: Store Outage Conformance Tests

This module tests behavior when the idempotency store is unreachable:
- fail_open=True: the operation executes unprotected on every call
- fail_open=False: calls are rejected with StoreUnavailableError and the
  operation never executes
- A write failure after execution still returns the fresh outcome
- Once the store recovers, protection resumes
"""

import pytest

from idempotent_cache.config import IdempotencyConfig
from idempotent_cache.core.interceptor import IdempotencyInterceptor
from idempotent_cache.exceptions import StoreUnavailableError
from idempotent_cache.models import OperationResult, StoreEntry
from idempotent_cache.storage.memory import MemoryIdempotencyStore


class FlakyStore(MemoryIdempotencyStore):
    """Memory store that can be switched offline."""

    def __init__(self) -> None:
        super().__init__()
        self.offline = False
        self.writes_offline = False

    def _check(self, writing: bool = False) -> None:
        if self.offline or (writing and self.writes_offline):
            raise StoreUnavailableError("store offline")

    async def get(self, key: str) -> StoreEntry | None:
        self._check()
        return await super().get(key)

    async def put(self, key: str, entry: StoreEntry, ttl_seconds: int) -> None:
        self._check(writing=True)
        await super().put(key, entry, ttl_seconds)

    async def put_if_absent(self, key: str, entry: StoreEntry, ttl_seconds: int) -> bool:
        self._check(writing=True)
        return await super().put_if_absent(key, entry, ttl_seconds)


class Ledger:
    def __init__(self) -> None:
        self.charges = 0

    async def charge(self) -> OperationResult:
        self.charges += 1
        return OperationResult(payload={"charge": self.charges}, status_code=201)


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


@pytest.mark.asyncio
async def test_fail_open_executes_unprotected(flaky_store):
    interceptor = IdempotencyInterceptor(flaky_store, IdempotencyConfig(fail_open=True))
    ledger = Ledger()
    flaky_store.offline = True

    first = await interceptor.execute("pay-1", ledger.charge)
    second = await interceptor.execute("pay-1", ledger.charge)

    assert ledger.charges == 2
    assert first.from_cache is False
    assert second.from_cache is False


@pytest.mark.asyncio
async def test_fail_closed_rejects(flaky_store):
    interceptor = IdempotencyInterceptor(flaky_store, IdempotencyConfig(fail_open=False))
    ledger = Ledger()
    flaky_store.offline = True

    with pytest.raises(StoreUnavailableError):
        await interceptor.execute("pay-1", ledger.charge)

    assert ledger.charges == 0


@pytest.mark.asyncio
async def test_write_failure_returns_fresh_outcome(flaky_store):
    interceptor = IdempotencyInterceptor(flaky_store, IdempotencyConfig(fail_open=False))
    ledger = Ledger()
    flaky_store.writes_offline = True

    envelope = await interceptor.execute("pay-1", ledger.charge)

    assert envelope.from_cache is False
    assert envelope.result_payload == {"charge": 1}
    assert await MemoryIdempotencyStore.get(flaky_store, "pay-1") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("write_mode", ["insert_if_absent", "overwrite"])
async def test_protection_resumes_after_recovery(flaky_store, write_mode):
    interceptor = IdempotencyInterceptor(flaky_store, IdempotencyConfig(write_mode=write_mode))
    ledger = Ledger()

    flaky_store.offline = True
    await interceptor.execute("pay-1", ledger.charge)

    flaky_store.offline = False
    fresh = await interceptor.execute("pay-1", ledger.charge)
    replay = await interceptor.execute("pay-1", ledger.charge)

    assert ledger.charges == 2
    assert fresh.from_cache is False
    assert replay.from_cache is True
    assert replay.same_response(fresh)
