"""
Pytest configuration and shared fixtures for idempotent_cache tests.
"""

from datetime import UTC, datetime

import pytest

from idempotent_cache.config import IdempotencyConfig
from idempotent_cache.core.interceptor import IdempotencyInterceptor
from idempotent_cache.models import ResponseEnvelope, StoreEntry
from idempotent_cache.storage.memory import MemoryIdempotencyStore


class ManualClock:
    """Monotonic clock driven by the test."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    """Provide a manually advanced clock."""
    return ManualClock()


@pytest.fixture
def store(clock: ManualClock) -> MemoryIdempotencyStore:
    """Provide a fresh memory store on the manual clock."""
    return MemoryIdempotencyStore(clock=clock)


@pytest.fixture
def config() -> IdempotencyConfig:
    """Provide the default configuration."""
    return IdempotencyConfig()


@pytest.fixture
def interceptor(store: MemoryIdempotencyStore, config: IdempotencyConfig) -> IdempotencyInterceptor:
    """Provide an interceptor over the memory store."""
    return IdempotencyInterceptor(store, config)


@pytest.fixture
def sample_idempotency_key() -> str:
    """Provide a sample idempotency key for tests."""
    return "order-1"


@pytest.fixture
def sample_entry(sample_idempotency_key: str) -> StoreEntry:
    """Provide a stored entry for an order creation."""
    return StoreEntry(
        key=sample_idempotency_key,
        envelope=ResponseEnvelope(
            result_payload={"order_id": "ord_1", "amount": 100},
            status_code=201,
            captured_at=datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
        ),
        request_fingerprint="a" * 64,
        ttl_seconds=60,
    )
