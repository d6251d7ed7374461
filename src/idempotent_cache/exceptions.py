"""Custom exceptions for the idempotent request cache.

This module defines the exception hierarchy used throughout the package to
signal key reuse conflicts and store outages.
Exceptions raised by a guarded operation are never wrapped in any of these:
they reach the caller unchanged.

Examples:
    Handling a payload conflict::

        from idempotent_cache.exceptions import PayloadConflictError

        try:
            envelope = await interceptor.call(policy, create_order, order)
        except PayloadConflictError as e:
            # Same key, different request payload
            logger.warning("idempotency.conflict", key=e.key)
            return Response(status_code=409)

    Handling an unreachable store (fail-closed configuration)::

        from idempotent_cache.exceptions import StoreUnavailableError

        try:
            envelope = await interceptor.call(policy, create_order, order)
        except StoreUnavailableError as e:
            logger.error("idempotency.store_unavailable", error=str(e))
            return Response(status_code=503)
"""


class IdempotencyError(Exception):
    """Base exception for all idempotency-related errors.

    All exceptions raised by the cache itself inherit from this base class,
    allowing callers to catch all package-specific errors with a single
    except clause.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize the exception with a message.

        Args:
            message: Human-readable error description.
        """
        self.message = message
        super().__init__(message)


class PayloadConflictError(IdempotencyError):
    """Same idempotency key presented with a different request payload.

    Raised on a cache hit when payload validation is enabled for the operation
    and the fingerprint of the current call does not match the fingerprint
    stored with the entry. The guarded operation is not executed and the
    existing entry is left untouched.

    Attributes:
        message: Human-readable error description.
        key: The idempotency key that conflicted.
        stored_fingerprint: The fingerprint stored with the entry.
        request_fingerprint: The fingerprint of the current call.

    Examples:
        Raising a conflict error::

            if entry.request_fingerprint != fingerprint:
                raise PayloadConflictError(
                    message=f"Request payload mismatch for key {key}",
                    key=key,
                    stored_fingerprint=entry.request_fingerprint,
                    request_fingerprint=fingerprint,
                )
    """

    def __init__(
        self,
        message: str,
        key: str,
        stored_fingerprint: str,
        request_fingerprint: str,
    ) -> None:
        """Initialize the conflict error with details.

        Args:
            message: Human-readable error description.
            key: The idempotency key that conflicted.
            stored_fingerprint: The fingerprint stored with the entry.
            request_fingerprint: The fingerprint of the current call.
        """
        super().__init__(message)
        self.key = key
        self.stored_fingerprint = stored_fingerprint
        self.request_fingerprint = request_fingerprint


class StoreUnavailableError(IdempotencyError):
    """The idempotency store could not complete an operation.

    Store implementations translate backend failures (connection refused,
    timeouts, corrupted payloads) into this exception so that the
    interception layer can decide between failing open and failing closed
    without knowing the backend.

    Attributes:
        message: Human-readable error description.
        cause: The underlying exception, if any.

    Examples:
        Raising from a backend::

            try:
                raw = await self._redis.get(name)
            except RedisError as e:
                raise StoreUnavailableError(
                    message=f"Failed to read key from Redis: {e}",
                    cause=e,
                ) from e
    """

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        """Initialize the store error with details.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused the store error.
        """
        super().__init__(message)
        self.cause = cause

