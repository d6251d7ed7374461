"""Core type definitions and models for the idempotent request cache.

This module provides the data structures shared by the key deriver, the
stores and the interception layer: the cacheable outcome shape returned by
guarded operations, the replayable response envelope and the immutable store
entry.

Examples:
    Returning a cacheable outcome from a guarded operation::

        from idempotent_cache.models import OperationResult

        async def create_order(order_id: str, amount: int) -> OperationResult:
            order = await orders.create(order_id, amount)
            return OperationResult(payload=order.model_dump(), status_code=201)

    Building a store entry::

        from datetime import UTC, datetime

        envelope = ResponseEnvelope(
            result_payload={"order_id": "order-1", "amount": 100},
            status_code=201,
            captured_at=datetime.now(UTC),
        )
        entry = StoreEntry(
            key="order-1",
            envelope=envelope,
            request_fingerprint="a" * 64,
            ttl_seconds=86400,
        )
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class CacheOutcome(str, Enum):
    """How a guarded call was resolved by the interception layer.

    Attributes:
        BYPASS: No key was derived (or the store was down and the layer
            failed open); the operation ran unprotected.
        MISS: No entry existed; the operation ran and its outcome was stored.
        REPLAY: An entry existed; its envelope was replayed.
        CONFLICT: An entry existed with a different request fingerprint.
        UNCACHEABLE: The operation ran but returned something that cannot be
            stored; it was passed through as-is.
    """

    BYPASS = "bypass"
    MISS = "miss"
    REPLAY = "replay"
    CONFLICT = "conflict"
    UNCACHEABLE = "uncacheable"


class OperationResult(BaseModel):
    """The recognized cacheable shape for a guarded operation's outcome.

    Guarded operations that want their results replayed return this (or a
    ``ResponseEnvelope``). Any other return value is handed back to the caller
    unchanged and never stored.

    Attributes:
        payload: JSON-representable result body.
        status_code: Status code of the outcome (HTTP semantics).
    """

    payload: Any = Field(
        default=None,
        description="JSON-representable result body",
        examples=[{"order_id": "order-1", "amount": 100}],
    )
    status_code: int = Field(
        default=200,
        description="Status code of the outcome",
        ge=100,
        le=599,
        examples=[200, 201, 202],
    )

    model_config = {"frozen": True}


class ResponseEnvelope(BaseModel):
    """Captured, replayable representation of a call's outcome.

    ``captured_at`` is set once, when the outcome is first captured. The
    envelope held by the store always has ``from_cache=False``; only the copy
    handed to a caller on the replay path carries ``from_cache=True``.

    Attributes:
        result_payload: JSON-normalized result body.
        status_code: Status code of the original outcome.
        captured_at: When the outcome was captured (UTC).
        from_cache: True only when this envelope is a replay.

    Examples:
        >>> envelope = ResponseEnvelope(
        ...     result_payload={"id": 1},
        ...     status_code=201,
        ...     captured_at=datetime(2024, 1, 1),
        ... )
        >>> envelope.as_replay().from_cache
        True
        >>> envelope.from_cache
        False
    """

    result_payload: Any = Field(
        default=None,
        description="JSON-normalized result body",
    )
    status_code: int = Field(
        ...,
        description="Status code of the original outcome",
        ge=100,
        le=599,
        examples=[200, 201],
    )
    captured_at: datetime = Field(
        ...,
        description="Timestamp when the outcome was captured",
        examples=["2024-01-01T10:30:00Z"],
    )
    from_cache: bool = Field(
        default=False,
        description="True only on the replay path",
    )

    model_config = {"frozen": True}

    def as_replay(self) -> "ResponseEnvelope":
        """Return a copy of this envelope marked as served from cache."""
        return self.model_copy(update={"from_cache": True})

    def same_response(self, other: "ResponseEnvelope") -> bool:
        """Compare payload, status and capture time, ignoring the replay marker.

        Args:
            other: Envelope to compare against.

        Returns:
            True if both envelopes describe the same captured outcome.
        """
        return self.model_dump_json(exclude={"from_cache"}) == other.model_dump_json(
            exclude={"from_cache"}
        )


class StoreEntry(BaseModel):
    """Immutable record written to the idempotency store for one key.

    Attributes:
        key: The idempotency key the entry is stored under.
        envelope: The captured outcome, always with ``from_cache=False``.
        request_fingerprint: SHA-256 hex fingerprint of the call arguments, or
            None when the operation does not record one.
        ttl_seconds: Lifetime the entry was written with.
    """

    key: str = Field(
        ...,
        description="Idempotency key",
        min_length=1,
        examples=["order-1", "user-42-generate"],
    )
    envelope: ResponseEnvelope = Field(
        ...,
        description="Captured outcome of the first successful execution",
    )
    request_fingerprint: str | None = Field(
        default=None,
        description="SHA-256 hash of the canonicalized call arguments (64 hex characters)",
        examples=["a" * 64],
    )
    ttl_seconds: int = Field(
        ...,
        description="Time-to-live the entry was written with",
        ge=1,
        examples=[300, 86400],
    )

    model_config = {"frozen": True}

    @field_validator("request_fingerprint")
    @classmethod
    def validate_fingerprint(cls, v: str | None) -> str | None:
        """Validate that the fingerprint, when present, is a SHA-256 hex string.

        Args:
            v: The fingerprint string to validate.

        Returns:
            The validated fingerprint.

        Raises:
            ValueError: If the fingerprint is not exactly 64 lowercase hex characters.
        """
        if v is None:
            return v
        if len(v) != 64:
            raise ValueError(f"Fingerprint must be exactly 64 characters, got {len(v)}")
        if not all(c in "0123456789abcdef" for c in v):
            raise ValueError("Fingerprint must contain only lowercase hex characters")
        return v

    @field_validator("envelope")
    @classmethod
    def validate_envelope_not_replay(cls, v: ResponseEnvelope) -> ResponseEnvelope:
        """Reject envelopes that are already marked as replays.

        Args:
            v: The envelope to store.

        Returns:
            The validated envelope.

        Raises:
            ValueError: If ``from_cache`` is set on the envelope.
        """
        if v.from_cache:
            raise ValueError("Stored envelopes must not be marked from_cache")
        return v
