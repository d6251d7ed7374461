"""Core logic of the idempotent request cache.

This package contains the framework-agnostic parts of the cache:
- Interceptor: lookup / execute / store protocol around a guarded operation
- Replay: capture of outcomes into envelopes and replay of stored entries
- Cleanup: periodic purge of expired entries for in-process stores

Adapters for specific frameworks wrap the interceptor (see adapters.asgi).
"""

from idempotent_cache.core.cleanup import ExpiredEntryPurger
from idempotent_cache.core.interceptor import IdempotencyInterceptor
from idempotent_cache.core.replay import capture_outcome, replay_entry

__all__ = ["ExpiredEntryPurger", "IdempotencyInterceptor", "capture_outcome", "replay_entry"]
