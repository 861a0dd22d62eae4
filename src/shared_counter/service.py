"""Counter service tying the store, durable log and background tasks together."""

import dataclasses
import logging
import time

from shared_counter.config import ServiceConfig
from shared_counter.models import CounterReading, HealthReport, StatsReport, utc_timestamp
from shared_counter.persistence.base import DurableLog
from shared_counter.persistence.batch import BatchPersistenceWriter
from shared_counter.persistence.factory import create_log
from shared_counter.scheduler import SyncScheduler
from shared_counter.store.base import CounterStore
from shared_counter.store.factory import create_store
from shared_counter.store.fallback import BackendState, FallbackCounterStore

logger = logging.getLogger(__name__)


class CounterService:
    """The shared counter: increments, reads and durable persistence.

    Reads never touch the durable log. Each increment is queued to the batch
    writer; the scheduler also writes the value periodically and at shutdown.

    Args:
        config: Service configuration.
        store: Counter store override. Built from ``config`` when omitted.
        log: Durable log override. Built from ``config`` when omitted.
    """

    def __init__(
        self,
        config: ServiceConfig | None = None,
        store: CounterStore | None = None,
        log: DurableLog | None = None,
    ) -> None:
        self._config = config or ServiceConfig()
        self._key = self._config.counter_key
        self._store = store or create_store(self._config)
        self._log = log or create_log(self._config)
        self._batch_writer = BatchPersistenceWriter(
            self._log,
            batch_size=self._config.batch_size,
            batch_timeout=self._config.batch_timeout,
        )
        self._scheduler = SyncScheduler(
            self._store,
            self._log,
            self._key,
            batch_writer=self._batch_writer,
            interval=self._config.sync_interval,
            reconnect_interval=self._config.reconnect_interval,
        )
        self._started_at: float | None = None

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def store(self) -> CounterStore:
        return self._store

    @property
    def log(self) -> DurableLog:
        return self._log

    @property
    def batch_writer(self) -> BatchPersistenceWriter:
        return self._batch_writer

    @property
    def scheduler(self) -> SyncScheduler:
        return self._scheduler

    @property
    def source(self) -> str:
        """Identifier of the store answering requests right now."""
        if isinstance(self._store, FallbackCounterStore):
            return self._store.source
        return self._store.name

    @property
    def backend_state(self) -> BackendState:
        if isinstance(self._store, FallbackCounterStore):
            return self._store.state
        return BackendState.HEALTHY

    async def start(self) -> int:
        """Recover the counter from the durable log and start background sync.

        A durable log that cannot be opened or read is not fatal: the counter
        starts at 0 and a warning is logged.

        Returns:
            int: The value the counter was seeded with.
        """
        seed = 0
        try:
            await self._log.open()
            seed = await self._log.max_count()
        except Exception as exc:
            logger.warning(f"Durable log unavailable, starting counter at 0: {exc}")

        if isinstance(self._store, FallbackCounterStore):
            await self._store.initialize(self._key, seed)
        else:
            await self._store.set(self._key, seed)

        self._scheduler.start()
        self._started_at = time.monotonic()
        logger.info(
            f"Counter service started (cache: {self._store.name}, "
            f"source: {self.source}, count: {seed}, batch size: {self._batch_writer.batch_size})"
        )
        return seed

    async def read(self) -> CounterReading:
        """Current counter value."""
        if isinstance(self._store, FallbackCounterStore):
            count, source = await self._store.get_with_source(self._key)
        else:
            count, source = await self._store.get(self._key), self._store.name
        return CounterReading(count=count, timestamp=utc_timestamp(), source=source)

    async def increment(self) -> CounterReading:
        """Add one to the counter and queue the new value for persistence."""
        if isinstance(self._store, FallbackCounterStore):
            count, source = await self._store.increment_with_source(self._key)
        else:
            count, source = await self._store.increment(self._key), self._store.name
        self._batch_writer.record(count)
        return CounterReading(count=count, timestamp=utc_timestamp(), source=source)

    async def health(self) -> HealthReport:
        count = await self._store.get(self._key)
        state = self.backend_state
        uptime = time.monotonic() - self._started_at if self._started_at is not None else 0.0
        return HealthReport(
            status="healthy",
            uptime=round(uptime, 3),
            backend_status=state.value,
            cache_status=state.connection_label,
            cache_type=self._store.name,
            current_count=count,
            timestamp=utc_timestamp(),
        )

    async def stats(self) -> StatsReport:
        """In-memory count, durable log aggregates and backend flags.

        Raises:
            Exception: Whatever the durable log raises when it cannot be queried.
        """
        count = await self._store.get(self._key)
        log_stats = await self._log.stats()
        fallback_counter = None
        if isinstance(self._store, FallbackCounterStore):
            fallback_counter = self._store.get_metrics().fallback_value
        return StatsReport(
            current_memory_count=count,
            database_stats=log_stats.to_dict(),
            cache_type=self._store.name,
            cache_available=self.backend_state is BackendState.HEALTHY,
            fallback_counter=fallback_counter,
            batch_writer=dataclasses.asdict(self._batch_writer.get_metrics()),
        )

    async def shutdown(self) -> bool:
        """Run the shutdown hook: final write, then release resources.

        Returns:
            bool: True if the final durable write succeeded.
        """
        return await self._scheduler.shutdown()
