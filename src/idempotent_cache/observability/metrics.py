"""Prometheus metrics for the idempotent request cache.

Metrics include:

- Guarded call counters by operation and outcome (bypass, miss, replay, ...)
- Execution time histogram for misses
- Store error counters by phase (lookup, write, evict)
- Eviction and cleanup tracking

Examples:
    Recording a replayed call::

        from idempotent_cache.observability.metrics import record_call

        record_call(operation="create_order", result="replay")

    Recording execution time::

        from idempotent_cache.observability.metrics import record_execution_time

        record_execution_time(exec_time_ms=150)
"""

from prometheus_client import Counter, Histogram

# Labels: operation, result (bypass, miss, replay, conflict, uncacheable, error)
calls_total = Counter(
    "idempotency_calls_total",
    "Total number of guarded calls handled by the idempotency layer",
    ["operation", "result"],
)

# Only tracks misses, never replays
execution_time_ms = Histogram(
    "idempotency_execution_time_ms",
    "Guarded operation execution time in milliseconds (misses only)",
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],  # 10ms to 10s
)

# Labels: operation, phase (lookup, write, evict)
store_errors_total = Counter(
    "idempotency_store_errors_total",
    "Total number of idempotency store failures",
    ["operation", "phase"],
)

evictions_total = Counter(
    "idempotency_evictions_total",
    "Total number of entries explicitly evicted",
)

cleanup_operations = Counter(
    "idempotency_cleanup_operations_total",
    "Total number of cleanup operations performed",
)

cleanup_records_removed = Counter(
    "idempotency_cleanup_records_removed_total",
    "Total number of expired entries removed by cleanup",
)


def record_call(operation: str, result: str) -> None:
    """Record a guarded call in metrics.

    Args:
        operation: Name of the guarded operation
        result: The outcome (bypass, miss, replay, conflict, uncacheable, error)

    Examples:
        >>> record_call("create_order", "replay")
    """
    calls_total.labels(operation=operation, result=result).inc()


def record_execution_time(exec_time_ms: int) -> None:
    """Record guarded operation execution time.

    This should only be called for misses, not replays.

    Args:
        exec_time_ms: Execution time in milliseconds
    """
    execution_time_ms.observe(exec_time_ms)


def record_store_error(operation: str, phase: str) -> None:
    """Record a store failure.

    Args:
        operation: Name of the guarded operation ("admin" for eviction)
        phase: Where the failure happened (lookup, write, evict)
    """
    store_errors_total.labels(operation=operation, phase=phase).inc()


def record_eviction() -> None:
    """Record an explicit eviction."""
    evictions_total.inc()


def record_cleanup(records_removed: int) -> None:
    """Record a cleanup operation.

    Args:
        records_removed: Number of expired entries removed

    Examples:
        >>> record_cleanup(42)
    """
    cleanup_operations.inc()
    cleanup_records_removed.inc(records_removed)
