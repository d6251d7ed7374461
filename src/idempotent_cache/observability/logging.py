"""Structured logging for the idempotent request cache.

Every module logs through structlog with dotted event names and the
idempotency key and operation as fields, so a key can be followed from
lookup to replay across processes:

    idempotency.miss               lookup found nothing; executing
    idempotency.stored             outcome captured and written
    idempotency.replay             stored outcome handed back
    idempotency.conflict           key reused with a different payload
    idempotency.lost_race          another writer stored first
    idempotency.store_unavailable  store failed (phase=lookup|write)
    idempotency.key_too_long       key rejected by length
    idempotency.key_derivation_failed
    idempotency.uncacheable_outcome
    idempotency.fingerprint_failed
    idempotency.evicted

Context bound with ``structlog.contextvars`` (the ASGI adapter binds
``trace_id``) is merged into every event.

Example::

    configure_logging(level="INFO", json_output=True)
    get_logger(__name__).info("idempotency.replay", key="order-1", operation="create_order")
    # {"key": "order-1", "operation": "create_order", "event": "idempotency.replay", "level": "info", "timestamp": "..."}
"""

import logging
import sys
from typing import Any

import structlog


def _processors(json_output: bool) -> list[Any]:
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Set up the structlog pipeline once, at process startup.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_output: Emit one JSON object per line; otherwise a colored
            console format meant for development.
    """
    numeric_level = getattr(logging, level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)

    structlog.configure(
        processors=_processors(json_output),
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Return a structlog logger for a module (pass ``__name__``)."""
    return structlog.get_logger(name)
