"""Background purge of expired entries for in-process stores.

Expiry is always enforced by the store itself: an expired entry is invisible
to ``get`` the moment its TTL elapses. Stores that keep entries in process
memory still need that memory reclaimed. Stores with server-side TTL (Redis
``EX``) need no purger.

Examples:
    Tie the purger to the application lifespan::

        from idempotent_cache.core.cleanup import ExpiredEntryPurger

        purger = ExpiredEntryPurger(store, interval_seconds=300)

        @asynccontextmanager
        async def lifespan(app):
            purger.start()
            yield
            await purger.stop()
"""

import asyncio
from typing import Protocol

from idempotent_cache.observability.logging import get_logger
from idempotent_cache.observability.metrics import record_cleanup

logger = get_logger(__name__)


class SupportsCleanup(Protocol):
    """A store that can drop its expired entries on demand."""

    async def cleanup_expired(self) -> int: ...


async def purge_once(store: SupportsCleanup) -> int:
    """Run a single purge and record it.

    Returns:
        The number of entries removed.
    """
    removed = await store.cleanup_expired()
    record_cleanup(removed)
    if removed:
        logger.info("cleanup.completed", records_removed=removed)
    return removed


class ExpiredEntryPurger:
    """Periodically purges a store until stopped.

    A failing run is logged and the next run happens on schedule.

    Attributes:
        store: Store to purge.
        interval_seconds: Pause between runs.
    """

    def __init__(self, store: SupportsCleanup, interval_seconds: float = 300) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start purging in a background task. Must run inside an event loop."""
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self, timeout: float = 5.0) -> None:
        """Ask the loop to finish, cancelling it after ``timeout`` seconds."""
        if self._task is None:
            return
        self._stopping.set()
        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("cleanup.stop_timeout", timeout=timeout)
        finally:
            self._task = None

    async def _run(self) -> None:
        logger.info("cleanup.started", interval_seconds=self.interval_seconds)
        while not self._stopping.is_set():
            try:
                await purge_once(self.store)
            except Exception as e:
                logger.error("cleanup.failed", error=str(e), error_type=type(e).__name__)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue
        logger.info("cleanup.stopped")
