"""Outcome capture and replay for the idempotent request cache.

Capture turns a guarded operation's return value into a ``ResponseEnvelope``
ready to be stored. Replay turns a stored entry back into the envelope handed
to a caller. The payload is JSON-normalized at capture time, so the fresh
envelope and every later replay carry identical payloads regardless of the
store's serialization.

Examples:
    Capturing a result::

        from idempotent_cache.core.replay import capture_outcome
        from idempotent_cache.models import OperationResult

        envelope = capture_outcome(OperationResult(payload={"id": 1}, status_code=201))
        # envelope.from_cache is False

    Replaying an entry::

        envelope = replay_entry(entry)
        # envelope.from_cache is True, everything else as captured
"""

from datetime import UTC, datetime
from typing import Any

from pydantic_core import PydanticSerializationError, to_jsonable_python

from idempotent_cache.models import OperationResult, ResponseEnvelope, StoreEntry


def capture_outcome(outcome: Any, captured_at: datetime | None = None) -> ResponseEnvelope | None:
    """Wrap a guarded operation's outcome in a fresh envelope.

    Args:
        outcome: The value the guarded operation returned.
        captured_at: Capture timestamp; defaults to now (UTC).

    Returns:
        A ``ResponseEnvelope`` with ``from_cache=False``, or None if the
        outcome is not of a cacheable shape or its payload is not
        JSON-representable.

    Examples:
        >>> capture_outcome("plain string") is None
        True
        >>> capture_outcome(OperationResult(payload=(1, 2))).result_payload
        [1, 2]
    """
    if isinstance(outcome, ResponseEnvelope):
        payload, status_code = outcome.result_payload, outcome.status_code
    elif isinstance(outcome, OperationResult):
        payload, status_code = outcome.payload, outcome.status_code
    else:
        return None

    try:
        normalized = to_jsonable_python(payload)
    except PydanticSerializationError:
        return None

    return ResponseEnvelope(
        result_payload=normalized,
        status_code=status_code,
        captured_at=captured_at or datetime.now(UTC),
        from_cache=False,
    )


def replay_entry(entry: StoreEntry) -> ResponseEnvelope:
    """Reconstruct the caller-facing envelope from a stored entry.

    The stored envelope itself is left untouched; a copy with
    ``from_cache=True`` is returned.

    Args:
        entry: The entry found in the store.

    Returns:
        The replayed envelope.
    """
    return entry.envelope.as_replay()
