"""Observability utilities for the idempotent request cache.

This package provides monitoring and debugging capabilities:
- Prometheus metrics for hit/miss/conflict tracking
- Structured logging with contextual information
"""

from idempotent_cache.observability.logging import configure_logging, get_logger
from idempotent_cache.observability.metrics import (
    record_call,
    record_cleanup,
    record_eviction,
    record_execution_time,
    record_store_error,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "record_call",
    "record_cleanup",
    "record_eviction",
    "record_execution_time",
    "record_store_error",
]
