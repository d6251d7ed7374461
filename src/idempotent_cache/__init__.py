"""
Idempotent request cache for Python services.

This package lets callers retry write operations safely: the first successful
outcome for an idempotency key is captured and replayed to every later call
with the same key until its TTL expires.
"""

from idempotent_cache.config import IdempotencyConfig, OperationPolicy
from idempotent_cache.core.interceptor import IdempotencyInterceptor
from idempotent_cache.exceptions import (
    IdempotencyError,
    PayloadConflictError,
    StoreUnavailableError,
)
from idempotent_cache.fingerprint import compute_fingerprint
from idempotent_cache.keys import derive_key, key_from_argument, key_from_header
from idempotent_cache.models import OperationResult, ResponseEnvelope, StoreEntry
from idempotent_cache.storage import (
    IdempotencyStore,
    MemoryIdempotencyStore,
    RedisIdempotencyStore,
    create_store,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "IdempotencyConfig",
    "IdempotencyError",
    "IdempotencyInterceptor",
    "IdempotencyStore",
    "MemoryIdempotencyStore",
    "OperationPolicy",
    "OperationResult",
    "PayloadConflictError",
    "RedisIdempotencyStore",
    "ResponseEnvelope",
    "StoreEntry",
    "StoreUnavailableError",
    "compute_fingerprint",
    "create_store",
    "derive_key",
    "key_from_argument",
    "key_from_header",
]
