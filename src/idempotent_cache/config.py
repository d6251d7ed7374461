"""Configuration module for the idempotent request cache.

This module provides two models:

- ``IdempotencyConfig``: process-wide settings (store backend, namespace,
  default TTL, failure policy, write mode).
- ``OperationPolicy``: per-operation settings (key function, TTL, payload
  validation).

Example:
    Basic usage with defaults:

        >>> config = IdempotencyConfig()
        >>> config.default_ttl_seconds
        86400

    Custom configuration:

        >>> config = IdempotencyConfig(
        ...     store_backend="redis",
        ...     redis_url="redis://cache:6379/1",
        ...     namespace="orders-idempotency",
        ...     fail_open=False,
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['IDEMPOTENCY_STORE_BACKEND'] = 'redis'
        >>> os.environ['IDEMPOTENCY_DEFAULT_TTL_SECONDS'] = '3600'
        >>> config = IdempotencyConfig.from_env()

    A per-operation policy:

        >>> policy = OperationPolicy(
        ...     name="create_order",
        ...     key_fn=lambda args: args["order_id"],
        ...     ttl_seconds=300,
        ... )
"""

import os
from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Upper bound for any TTL (7 days)
MAX_TTL_SECONDS = 604800

KeyFunction = Callable[[Mapping[str, Any]], Any]


def _validate_ttl(v: int, field_name: str) -> int:
    if not (1 <= v <= MAX_TTL_SECONDS):
        raise ValueError(
            f"{field_name} must be between 1 and {MAX_TTL_SECONDS} (7 days), got {v}"
        )
    return v


class IdempotencyConfig(BaseModel):
    """Process-wide configuration for the idempotent request cache.

    Attributes:
        default_ttl_seconds: TTL used by operations that do not set their own.
            Must be between 1 and 604800 (7 days). Default is 86400 (24 hours).
        validate_payload: Default for ``OperationPolicy.validate_payload`` when
            policies are built through the decorator. Default is True.
        store_backend: Store implementation built by ``create_store``.
            Options: "memory", "redis". Default is "memory".
        redis_url: Connection URL for the Redis store.
        namespace: Prefix isolating idempotency entries from unrelated data in
            a shared store. Must be non-empty and contain no whitespace.
        fail_open: When the store cannot be read, execute the operation
            without caching (True) or raise StoreUnavailableError (False).
        write_mode: "insert_if_absent" writes misses atomically and lets the
            first writer win; "overwrite" is plain last-write-wins.
        max_key_length: Keys longer than this are treated as absent.
        key_header: Request header the ASGI adapter reads the key from.
        replay_header: Response header marking replays in the ASGI adapter.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    default_ttl_seconds: int = Field(
        default=86400,
        description="Default time-to-live in seconds for store entries (1-604800)",
    )
    validate_payload: bool = Field(
        default=True,
        description="Default payload validation toggle for new policies",
    )
    store_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="Store implementation backing the cache",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis store",
    )
    namespace: str = Field(
        default="idempotency",
        description="Key prefix isolating idempotency entries in the store",
    )
    fail_open: bool = Field(
        default=True,
        description="Execute unprotected when the store is unreachable",
    )
    write_mode: Literal["overwrite", "insert_if_absent"] = Field(
        default="insert_if_absent",
        description="How the miss path writes new entries",
    )
    max_key_length: int = Field(
        default=255,
        description="Maximum accepted idempotency key length (1-1024)",
    )
    key_header: str = Field(
        default="X-Request-ID",
        description="HTTP header carrying the idempotency key",
    )
    replay_header: str = Field(
        default="X-Idempotent-Replayed",
        description="HTTP header marking replayed responses",
    )

    model_config = {"frozen": True}

    @field_validator("default_ttl_seconds")
    @classmethod
    def validate_default_ttl_seconds(cls, v: int) -> int:
        """Validate TTL is within acceptable range.

        Raises:
            ValueError: If TTL is not between 1 and 604800 (7 days).
        """
        return _validate_ttl(v, "default_ttl_seconds")

    @field_validator("namespace")
    @classmethod
    def validate_namespace(cls, v: str) -> str:
        """Validate the store namespace.

        Raises:
            ValueError: If the namespace is empty or contains whitespace.
        """
        if not v or any(ch.isspace() for ch in v):
            raise ValueError(f"namespace must be non-empty and contain no whitespace, got {v!r}")
        return v

    @field_validator("max_key_length")
    @classmethod
    def validate_max_key_length(cls, v: int) -> int:
        """Validate the key length limit.

        Raises:
            ValueError: If the limit is not between 1 and 1024.
        """
        if not (1 <= v <= 1024):
            raise ValueError(f"max_key_length must be between 1 and 1024, got {v}")
        return v

    @field_validator("key_header", "replay_header")
    @classmethod
    def validate_header_name(cls, v: str) -> str:
        """Validate header names are usable.

        Raises:
            ValueError: If the header name is empty.
        """
        v = v.strip()
        if not v:
            raise ValueError("header names must not be empty")
        return v

    @classmethod
    def from_env(cls, prefix: str = "IDEMPOTENCY_") -> "IdempotencyConfig":
        """Create configuration from environment variables.

        Variable names are uppercase field names with the prefix, e.g.
        ``IDEMPOTENCY_DEFAULT_TTL_SECONDS``. Missing variables fall back to
        the defaults defined on the model.

        Args:
            prefix: Prefix for environment variable names. Default is "IDEMPOTENCY_".

        Returns:
            IdempotencyConfig instance populated from environment variables.

        Example:
            >>> import os
            >>> os.environ['IDEMPOTENCY_FAIL_OPEN'] = 'false'
            >>> IdempotencyConfig.from_env().fail_open
            False
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "default_ttl_seconds": int,
            "validate_payload": bool,
            "store_backend": str,
            "redis_url": str,
            "namespace": str,
            "fail_open": bool,
            "write_mode": str,
            "max_key_length": int,
            "key_header": str,
            "replay_header": str,
        }

        for field_name, field_type in field_types.items():
            env_var = f"{prefix}{field_name.upper()}"
            env_value = os.environ.get(env_var)

            if env_value is not None:
                if field_type is int:
                    config_dict[field_name] = int(env_value)
                elif field_type is bool:
                    config_dict[field_name] = env_value.strip().lower() in ("1", "true", "yes", "on")
                else:
                    config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "IdempotencyConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)


class OperationPolicy(BaseModel):
    """Idempotency settings for one guarded operation.

    The key function replaces an embedded expression language: it receives
    the call's arguments bound by parameter name and returns the key, or
    None when the call should run unprotected. Composite keys are the key
    function's business, e.g. ``lambda a: f"{a['user_id']}-{a['action']}"``.

    Attributes:
        name: Operation name used in logs and metrics.
        key_fn: Callable mapping named arguments to a key (or None).
        ttl_seconds: Entry lifetime; None means the config default.
        validate_payload: Compare request fingerprints on cache hits.
        fingerprint_exclude: Argument names left out of the fingerprint.

    Example:
        >>> policy = OperationPolicy(
        ...     name="generate",
        ...     key_fn=lambda a: f"{a['user_id']}-{a['action']}",
        ...     ttl_seconds=300,
        ...     validate_payload=False,
        ... )
        >>> policy.resolve_ttl(IdempotencyConfig())
        300
    """

    name: str = Field(
        default="operation",
        description="Operation name used in logs and metrics",
        min_length=1,
    )
    key_fn: KeyFunction = Field(
        ...,
        description="Derives the idempotency key from named call arguments",
    )
    ttl_seconds: int | None = Field(
        default=None,
        description="Entry time-to-live in seconds (1-604800); None uses the config default",
    )
    validate_payload: bool = Field(
        default=True,
        description="Reject key reuse with a different payload",
    )
    fingerprint_exclude: frozenset[str] = Field(
        default_factory=frozenset,
        description="Argument names excluded from the request fingerprint",
    )

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @field_validator("ttl_seconds")
    @classmethod
    def validate_ttl_seconds(cls, v: int | None) -> int | None:
        """Validate TTL is within acceptable range when set.

        Raises:
            ValueError: If TTL is not between 1 and 604800 (7 days).
        """
        if v is None:
            return v
        return _validate_ttl(v, "ttl_seconds")

    @field_validator("fingerprint_exclude", mode="before")
    @classmethod
    def validate_fingerprint_exclude(cls, v: Any) -> frozenset[str]:
        """Accept any iterable of names, or a comma-separated string."""
        if isinstance(v, str):
            v = [name.strip() for name in v.split(",") if name.strip()]
        return frozenset(v)

    def resolve_ttl(self, config: IdempotencyConfig) -> int:
        """Return the TTL this operation writes entries with."""
        return self.ttl_seconds if self.ttl_seconds is not None else config.default_ttl_seconds
