"""Batched persistence of counter snapshots to the durable log."""

import asyncio
import json
import logging
import os
from collections.abc import Coroutine
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from shared_counter.persistence.base import DurableLog

logger = logging.getLogger(__name__)


@dataclass
class BatchWriterMetrics:
    """Metrics for tracking batch persistence."""

    batches_written: int
    records_written: int
    individual_writes: int
    dropped_records: int
    pending_records: int
    failed_batches: int = field(default=0)


class BatchPersistenceWriter:
    """Collapse many counter snapshots into few durable writes.

    Snapshots are buffered and written to the log as one multi-row insert when
    either ``batch_size`` snapshots are pending or ``batch_timeout`` seconds
    have passed since the first snapshot of the batch. A failed batch write is
    retried once per value; a value that fails again is dropped and counted.

    Taking the pending batch and replacing it with an empty one happens before
    any await, so racing size and timer triggers never write the same snapshot
    twice: the loser finds an empty batch and does nothing.

    Args:
        log: Durable log receiving the snapshots.
        batch_size: Snapshots per batch. Default 10.
        batch_timeout: Seconds before a partial batch is flushed. Default 5.

    Example:
        ```python
        writer = BatchPersistenceWriter(log, batch_size=10, batch_timeout=5.0)
        writer.record(await store.increment("lizard:count"))
        ...
        await writer.close()
        ```
    """

    def __init__(
        self,
        log: DurableLog,
        batch_size: int | None = None,
        batch_timeout: float | None = None,
    ) -> None:
        self._log = log
        self._batch_size = (
            batch_size if batch_size is not None else int(os.getenv("BATCH_SIZE", "10"))
        )
        self._batch_timeout = (
            batch_timeout
            if batch_timeout is not None
            else float(os.getenv("BATCH_TIMEOUT", "5.0"))
        )
        if self._batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self._batch_timeout <= 0:
            raise ValueError("batch_timeout must be positive")

        self._pending: list[int] = []
        self._timer: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

        # Metrics
        self._batches_written = 0
        self._records_written = 0
        self._individual_writes = 0
        self._dropped_records = 0
        self._failed_batches = 0

    @property
    def batch_size(self) -> int:
        """Snapshots per size-triggered flush."""
        return self._batch_size

    @property
    def batch_timeout(self) -> float:
        """Seconds before a partial batch is flushed."""
        return self._batch_timeout

    @property
    def pending(self) -> list[int]:
        """Copy of the snapshots waiting for the next flush."""
        return list(self._pending)

    @property
    def timer_active(self) -> bool:
        """Check if a timeout flush is scheduled."""
        return self._timer is not None

    def record(self, value: int) -> None:
        """Queue a counter snapshot.

        Must be called from the event loop thread. A full batch is handed to a
        background write immediately; otherwise a timeout flush is scheduled
        if none is pending.

        Args:
            value: Counter value to persist.

        Raises:
            RuntimeError: If the writer has been closed.
        """
        if self._closed:
            raise RuntimeError("Cannot record to a closed writer")

        self._pending.append(value)

        if len(self._pending) >= self._batch_size:
            self._cancel_timer()
            self._spawn(self._write(self._take_batch()))
        elif self._timer is None:
            self._timer = self._spawn(self._flush_after_timeout())

    def _take_batch(self) -> list[int]:
        batch, self._pending = self._pending, []
        return batch

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def _flush_after_timeout(self) -> None:
        await asyncio.sleep(self._batch_timeout)
        self._timer = None
        await self.flush()

    async def flush(self) -> int:
        """Write all pending snapshots now.

        Returns:
            int: Number of snapshots taken from the pending batch.
        """
        batch = self._take_batch()
        self._cancel_timer()
        if batch:
            await self._write(batch)
        return len(batch)

    async def _write(self, batch: list[int]) -> None:
        """Write one batch, falling back to per-value writes on failure."""
        try:
            await self._log.append_many(batch)
        except Exception as exc:
            self._failed_batches += 1
            logger.error(
                json.dumps(
                    {
                        "event": "batch_write_failed",
                        "size": len(batch),
                        "error": str(exc),
                        "timestamp": datetime.now(UTC).isoformat(),
                    }
                )
            )
            await self._write_individually(batch)
            return

        self._batches_written += 1
        self._records_written += len(batch)
        logger.debug(f"Batch wrote {len(batch)} records to durable log")

    async def _write_individually(self, batch: list[int]) -> None:
        for value in batch:
            try:
                await self._log.append(value)
            except Exception as exc:
                self._dropped_records += 1
                logger.error(f"Dropped counter snapshot {value}: {exc}")
            else:
                self._individual_writes += 1
                self._records_written += 1

    async def drain(self) -> None:
        """Wait for background writes in flight.

        A timeout flush that is still sleeping is not waited for.
        """
        current = asyncio.current_task()
        while True:
            tasks = [
                task
                for task in self._tasks
                if task is not current and task is not self._timer and not task.done()
            ]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Flush pending snapshots and wait for in-flight writes.

        Does not close the underlying log.
        """
        if self._closed:
            return
        self._closed = True
        await self.flush()
        await self.drain()

    def get_metrics(self) -> BatchWriterMetrics:
        """Get current writer metrics.

        Returns:
            BatchWriterMetrics: Current metrics.
        """
        return BatchWriterMetrics(
            batches_written=self._batches_written,
            records_written=self._records_written,
            individual_writes=self._individual_writes,
            dropped_records=self._dropped_records,
            pending_records=len(self._pending),
            failed_batches=self._failed_batches,
        )
