"""Periodic durable sync and shutdown handling for the counter."""

import asyncio
import contextlib
import json
import logging
import os
import signal
import time
from datetime import UTC, datetime

from shared_counter.persistence.base import DurableLog
from shared_counter.persistence.batch import BatchPersistenceWriter
from shared_counter.store.base import CounterStore
from shared_counter.store.fallback import FallbackCounterStore

logger = logging.getLogger(__name__)


class SyncScheduler:
    """Background task writing the counter to the durable log on an interval.

    Every ``interval`` seconds the current counter value is appended to the log
    directly, bypassing the batch writer, so the log keeps tracking the counter
    even when nobody is clicking. ``shutdown()`` performs the final write and
    releases the store and the log.

    When ``reconnect_interval`` is positive and the store is a
    :class:`FallbackCounterStore`, a second task retries a degraded backend.

    Args:
        store: Counter store to read from.
        log: Durable log to append to.
        key: Counter key.
        batch_writer: Batch writer to flush before the final write.
        interval: Seconds between syncs. Default 30.
        reconnect_interval: Seconds between reconnect attempts. Default 0 (off).
    """

    def __init__(
        self,
        store: CounterStore,
        log: DurableLog,
        key: str,
        batch_writer: BatchPersistenceWriter | None = None,
        interval: float | None = None,
        reconnect_interval: float | None = None,
    ) -> None:
        self._store = store
        self._log = log
        self._key = key
        self._batch_writer = batch_writer
        self._interval = (
            interval if interval is not None else float(os.getenv("SYNC_INTERVAL", "30.0"))
        )
        if self._interval <= 0:
            raise ValueError("interval must be positive")
        self._reconnect_interval = (
            reconnect_interval
            if reconnect_interval is not None
            else float(os.getenv("RECONNECT_INTERVAL", "0"))
        )

        self._running = False
        self._sync_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._shutdown_done = False

        self._sync_count = 0
        self._failed_syncs = 0
        self._last_synced_value: int | None = None
        self._last_sync_time: float | None = None

    @property
    def is_running(self) -> bool:
        """Check if the periodic tasks are active."""
        return self._running

    @property
    def interval(self) -> float:
        """Seconds between periodic syncs."""
        return self._interval

    @property
    def sync_count(self) -> int:
        """Number of successful direct writes."""
        return self._sync_count

    @property
    def last_synced_value(self) -> int | None:
        """Counter value of the last successful direct write."""
        return self._last_synced_value

    async def sync_now(self) -> bool:
        """Append the current counter value to the durable log.

        Failures are logged and reported through the return value; they never
        propagate.

        Returns:
            bool: True if the value was written.
        """
        try:
            value = await self._store.get(self._key)
            await self._log.append(value)
        except Exception as exc:
            self._failed_syncs += 1
            logger.error(f"Error syncing to durable log: {exc}")
            return False

        self._sync_count += 1
        self._last_synced_value = value
        self._last_sync_time = time.time()
        logger.debug(f"Synced count {value} to durable log")
        return True

    async def _sync_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._interval)
            await self.sync_now()

    async def _reconnect_loop(self, store: FallbackCounterStore) -> None:
        while self._running:
            await asyncio.sleep(self._reconnect_interval)
            if not store.is_healthy:
                await store.reconnect()

    def start(self) -> None:
        """Start the periodic sync (and reconnect) tasks."""
        if self._running:
            return

        self._running = True
        self._sync_task = asyncio.create_task(self._sync_loop())
        if self._reconnect_interval > 0 and isinstance(self._store, FallbackCounterStore):
            self._reconnect_task = asyncio.create_task(self._reconnect_loop(self._store))
        logger.info(f"Sync scheduler started (interval: {self._interval}s)")

    async def stop_async(self) -> None:
        """Cancel the periodic tasks and wait for them to finish."""
        if not self._running:
            return

        self._running = False

        for task in (self._sync_task, self._reconnect_task):
            if task is not None:
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._sync_task = None
        self._reconnect_task = None

        logger.info("Sync scheduler stopped")

    async def shutdown(self) -> bool:
        """Final flush and resource release before process exit.

        Stops the periodic tasks, drains the batch writer, writes the current
        counter value directly, then closes the store and the log. Resources are
        released even when the final write fails.

        Returns:
            bool: True if the final write succeeded.
        """
        if self._shutdown_done:
            return True
        self._shutdown_done = True

        await self.stop_async()

        if self._batch_writer is not None:
            await self._batch_writer.close()

        logger.info("Final durable log sync...")
        ok = await self.sync_now()
        log_entry = {
            "event": "final_sync",
            "success": ok,
            "count": self._last_synced_value if ok else None,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        if ok:
            logger.info(json.dumps(log_entry))
        else:
            logger.error(json.dumps(log_entry))

        try:
            await self._store.close()
        except Exception as exc:
            logger.error(f"Error closing counter store: {exc}")
        try:
            await self._log.close()
        except Exception as exc:
            logger.error(f"Error closing durable log: {exc}")

        return ok

    def install_signal_handlers(self, stop_event: asyncio.Event) -> None:
        """Set ``stop_event`` on SIGINT or SIGTERM.

        The caller awaits the event and then calls :meth:`shutdown`.
        """
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_event.set)
            except NotImplementedError:
                logger.warning(f"Signal handler for {sig.name} not supported on this platform")
