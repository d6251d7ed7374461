"""Interception layer: the lookup / execute / store protocol.

This module orchestrates the idempotency flow around a guarded operation:

    START -> (no key) -> EXECUTE -> RETURN
    START -> (key) -> LOOKUP -> HIT  -> [VALIDATE] -> REPLAY -> RETURN
                              -> MISS -> EXECUTE -> CAPTURE -> STORE -> RETURN

The portable entry point is ``execute(key, invoke, ...)``, which works for any
call site that can supply a key and a zero-argument callable. ``call()`` adds
argument binding, key derivation and fingerprinting on top of it, and
``idempotent()`` turns that into a decorator.

Failure semantics:
    - An exception from the guarded operation propagates unchanged and
      nothing is stored; a retry with the same key executes again.
    - Cancellation between EXECUTE and STORE leaves no entry behind.
    - A store failure on lookup either bypasses the cache (fail_open) or
      raises StoreUnavailableError before executing.
    - A store failure on write is logged and the fresh outcome returned.

Examples:
    Guarding a coroutine with a decorator::

        from idempotent_cache import IdempotencyInterceptor, MemoryIdempotencyStore
        from idempotent_cache.keys import key_from_argument
        from idempotent_cache.models import OperationResult

        interceptor = IdempotencyInterceptor(MemoryIdempotencyStore())

        @interceptor.idempotent(key_from_argument("request_id"), ttl_seconds=300)
        async def create_order(request_id: str, amount: int) -> OperationResult:
            order = await orders.create(amount)
            return OperationResult(payload=order, status_code=201)

        first = await create_order("order-1", 100)   # executes
        second = await create_order("order-1", 100)  # replays, second.from_cache is True

    Using the portable wrapper directly::

        envelope = await interceptor.execute(
            "order-1",
            lambda: create_order_unguarded(100),
            fingerprint=compute_fingerprint({"amount": 100}),
        )
"""

import functools
import inspect
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from idempotent_cache.config import IdempotencyConfig, KeyFunction, OperationPolicy
from idempotent_cache.core.replay import capture_outcome, replay_entry
from idempotent_cache.exceptions import PayloadConflictError, StoreUnavailableError
from idempotent_cache.fingerprint import compute_fingerprint
from idempotent_cache.keys import bind_arguments, derive_key
from idempotent_cache.models import CacheOutcome, ResponseEnvelope, StoreEntry
from idempotent_cache.observability.logging import get_logger
from idempotent_cache.observability.metrics import (
    record_call,
    record_eviction,
    record_execution_time,
    record_store_error,
)
from idempotent_cache.storage.base import IdempotencyStore

logger = get_logger(__name__)


async def _invoke(invoke: Callable[[], Any]) -> Any:
    result = invoke()
    if inspect.isawaitable(result):
        result = await result
    return result


class IdempotencyInterceptor:
    """Deduplicates guarded operations through a shared idempotency store.

    The store is an injected dependency: build it once per process (see
    ``storage.create_store``) and share it between interceptors.

    Attributes:
        store: Store holding captured outcomes.
        config: Process-wide configuration.
    """

    def __init__(self, store: IdempotencyStore, config: IdempotencyConfig | None = None) -> None:
        """Initialize the interceptor.

        Args:
            store: Idempotency store
            config: Configuration (uses defaults if not provided)
        """
        self.store = store
        self.config = config or IdempotencyConfig()

    async def execute(
        self,
        key: str | None,
        invoke: Callable[[], Any],
        *,
        fingerprint: str | None = None,
        ttl_seconds: int | None = None,
        validate_payload: bool = True,
        operation: str = "operation",
    ) -> Any:
        """Run ``invoke`` at most once per live key.

        Args:
            key: Derived idempotency key, or None to run unprotected. An
                empty key or one longer than ``config.max_key_length`` is
                logged and treated as None.
            invoke: Zero-argument callable running the guarded operation. It
                may return a value or an awaitable.
            fingerprint: Fingerprint of the current request, stored with the
                entry on a miss and compared on a hit.
            ttl_seconds: Entry lifetime; defaults to the config TTL.
            validate_payload: Compare fingerprints on a hit.
            operation: Operation name for logs and metrics.

        Returns:
            A ``ResponseEnvelope`` when the outcome has a cacheable shape
            (``from_cache`` tells replays apart), otherwise the operation's
            return value unchanged.

        Raises:
            PayloadConflictError: The key was reused with a different payload.
            StoreUnavailableError: The store is unreachable and the
                configuration fails closed.
            ValueError: ``ttl_seconds`` is below 1. Raised before executing.
            Exception: Whatever the guarded operation raises, unchanged.
        """
        ttl = ttl_seconds if ttl_seconds is not None else self.config.default_ttl_seconds
        if ttl < 1:
            raise ValueError(f"ttl_seconds must be at least 1, got {ttl}")

        key = self._usable_key(key, operation)
        if key is None:
            record_call(operation, CacheOutcome.BYPASS.value)
            return self._wrap_uncached(await _invoke(invoke))

        try:
            entry = await self.store.get(key)
        except StoreUnavailableError as e:
            record_store_error(operation, "lookup")
            if not self.config.fail_open:
                logger.error(
                    "idempotency.store_unavailable",
                    key=key,
                    operation=operation,
                    phase="lookup",
                    error=e.message,
                )
                raise
            logger.warning(
                "idempotency.store_unavailable",
                key=key,
                operation=operation,
                phase="lookup",
                error=e.message,
                fallback="execute_unprotected",
            )
            record_call(operation, CacheOutcome.BYPASS.value)
            return self._wrap_uncached(await _invoke(invoke))

        if entry is not None:
            return self._replay(entry, key, fingerprint, validate_payload, operation)

        logger.debug("idempotency.miss", key=key, operation=operation)
        return await self._execute_and_store(
            key=key,
            invoke=invoke,
            fingerprint=fingerprint,
            ttl_seconds=ttl,
            validate_payload=validate_payload,
            operation=operation,
        )

    async def call(
        self,
        policy: OperationPolicy,
        func: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Guard a single call of ``func`` according to ``policy``.

        Binds the arguments by parameter name, derives the key, fingerprints
        the arguments and delegates to ``execute``.

        Args:
            policy: The operation's idempotency policy.
            func: The guarded function (sync or async).
            *args: Positional arguments for ``func``.
            **kwargs: Keyword arguments for ``func``.

        Returns:
            See ``execute``.
        """
        arguments = bind_arguments(func, args, kwargs)
        key = derive_key(
            policy.key_fn,
            arguments,
            operation=policy.name,
            max_length=self.config.max_key_length,
        )

        fingerprint = None
        if key is not None:
            fingerprint = self._fingerprint(arguments, policy.fingerprint_exclude, key, policy.name)

        return await self.execute(
            key,
            lambda: func(*args, **kwargs),
            fingerprint=fingerprint,
            ttl_seconds=policy.resolve_ttl(self.config),
            validate_payload=policy.validate_payload,
            operation=policy.name,
        )

    def idempotent(
        self,
        key_fn: KeyFunction,
        *,
        ttl_seconds: int | None = None,
        validate_payload: bool | None = None,
        fingerprint_exclude: Iterable[str] = (),
        name: str | None = None,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator guarding every call of the decorated function.

        The decorated function becomes a coroutine function regardless of
        whether the original was sync or async. The resulting policy is
        exposed as ``wrapper.idempotency_policy``.

        Args:
            key_fn: Key function over the named call arguments.
            ttl_seconds: Entry lifetime; None uses the config default.
            validate_payload: Fingerprint validation; None uses the config default.
            fingerprint_exclude: Argument names left out of the fingerprint.
            name: Operation name; defaults to the function's qualified name.

        Returns:
            The decorator.
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            policy = OperationPolicy(
                name=name or func.__qualname__,
                key_fn=key_fn,
                ttl_seconds=ttl_seconds,
                validate_payload=(
                    self.config.validate_payload if validate_payload is None else validate_payload
                ),
                fingerprint_exclude=frozenset(fingerprint_exclude),
            )

            @functools.wraps(func)
            async def wrapper(*args: Any, **kwargs: Any) -> Any:
                return await self.call(policy, func, *args, **kwargs)

            wrapper.idempotency_policy = policy  # type: ignore[attr-defined]
            return wrapper

        return decorator

    async def evict(self, key: str) -> bool:
        """Administratively remove the entry for a key.

        This is the only path on which the layer deletes entries.

        Args:
            key: The idempotency key to evict.

        Returns:
            True if an entry was removed.

        Raises:
            StoreUnavailableError: If the store cannot be reached.
        """
        try:
            removed = await self.store.remove(key)
        except StoreUnavailableError:
            record_store_error("admin", "evict")
            raise

        if removed:
            record_eviction()
        logger.info("idempotency.evicted", key=key, removed=removed)
        return removed

    async def cache_size(self) -> int:
        """Return the number of live entries in the store namespace."""
        return await self.store.size()

    async def clear_cache(self) -> int:
        """Remove every entry in the store namespace (use with caution).

        Returns:
            The number of entries removed.
        """
        removed = await self.store.clear()
        logger.warning("idempotency.cache_cleared", removed=removed)
        return removed

    def _usable_key(self, key: str | None, operation: str) -> str | None:
        if key is None:
            return None
        if not key:
            logger.debug("idempotency.no_key", operation=operation)
            return None
        if len(key) > self.config.max_key_length:
            logger.warning(
                "idempotency.key_too_long",
                operation=operation,
                key_length=len(key),
                max_length=self.config.max_key_length,
            )
            return None
        return key

    def _fingerprint(
        self,
        arguments: Mapping[str, Any],
        exclude: Iterable[str],
        key: str,
        operation: str,
    ) -> str | None:
        try:
            return compute_fingerprint(arguments, exclude=exclude)
        except TypeError as e:
            logger.warning(
                "idempotency.fingerprint_failed",
                key=key,
                operation=operation,
                error=str(e),
            )
            return None

    def _replay(
        self,
        entry: StoreEntry,
        key: str,
        fingerprint: str | None,
        validate_payload: bool,
        operation: str,
    ) -> ResponseEnvelope:
        stored = entry.request_fingerprint
        if validate_payload and stored is not None and fingerprint is not None and stored != fingerprint:
            record_call(operation, CacheOutcome.CONFLICT.value)
            logger.warning(
                "idempotency.conflict",
                key=key,
                operation=operation,
                stored_fingerprint=stored,
                request_fingerprint=fingerprint,
            )
            raise PayloadConflictError(
                message=f"Idempotency key {key} was already used with a different request payload",
                key=key,
                stored_fingerprint=stored,
                request_fingerprint=fingerprint,
            )

        record_call(operation, CacheOutcome.REPLAY.value)
        logger.info(
            "idempotency.replay",
            key=key,
            operation=operation,
            captured_at=entry.envelope.captured_at.isoformat(),
        )
        return replay_entry(entry)

    async def _execute_and_store(
        self,
        key: str,
        invoke: Callable[[], Any],
        fingerprint: str | None,
        ttl_seconds: int,
        validate_payload: bool,
        operation: str,
    ) -> Any:
        start_time = time.perf_counter()
        try:
            outcome = await _invoke(invoke)
        except Exception as e:
            record_call(operation, "error")
            logger.info(
                "idempotency.operation_failed",
                key=key,
                operation=operation,
                error_type=type(e).__name__,
            )
            raise

        execution_time_ms = int((time.perf_counter() - start_time) * 1000)
        record_execution_time(execution_time_ms)

        envelope = capture_outcome(outcome)
        if envelope is None:
            record_call(operation, CacheOutcome.UNCACHEABLE.value)
            logger.warning(
                "idempotency.uncacheable_outcome",
                key=key,
                operation=operation,
                outcome_type=type(outcome).__name__,
            )
            return outcome

        entry = StoreEntry(
            key=key,
            envelope=envelope,
            request_fingerprint=fingerprint,
            ttl_seconds=ttl_seconds,
        )

        try:
            if self.config.write_mode == "insert_if_absent":
                written = await self.store.put_if_absent(key, entry, ttl_seconds)
                if not written:
                    winner = await self.store.get(key)
                    if winner is not None:
                        logger.info("idempotency.lost_race", key=key, operation=operation)
                        return self._replay(winner, key, fingerprint, validate_payload, operation)
                    # The winning entry vanished between the two calls
                    await self.store.put(key, entry, ttl_seconds)
            else:
                await self.store.put(key, entry, ttl_seconds)
        except StoreUnavailableError as e:
            record_store_error(operation, "write")
            record_call(operation, CacheOutcome.MISS.value)
            logger.error(
                "idempotency.store_unavailable",
                key=key,
                operation=operation,
                phase="write",
                error=e.message,
            )
            return envelope

        record_call(operation, CacheOutcome.MISS.value)
        logger.info(
            "idempotency.stored",
            key=key,
            operation=operation,
            ttl_seconds=ttl_seconds,
            execution_time_ms=execution_time_ms,
        )
        return envelope

    @staticmethod
    def _wrap_uncached(outcome: Any) -> Any:
        envelope = capture_outcome(outcome)
        return envelope if envelope is not None else outcome
