"""Shared counter service.

A single named counter incremented by many concurrent clients, held in a
pluggable cache backend and persisted to an append-only durable log in batches.
"""

from shared_counter.config import ServiceConfig
from shared_counter.models import CounterReading, HealthReport, StatsReport
from shared_counter.persistence import (
    BatchPersistenceWriter,
    JsonlCounterLog,
    SqliteCounterLog,
)
from shared_counter.scheduler import SyncScheduler
from shared_counter.service import CounterService
from shared_counter.store import (
    BackendState,
    BackendUnavailableError,
    CounterStore,
    FallbackCounterStore,
    InMemoryCounterStore,
    MemcachedCounterStore,
    RedisCounterStore,
)

__version__ = "0.1.0"

__all__ = [
    "BackendState",
    "BackendUnavailableError",
    "BatchPersistenceWriter",
    "CounterReading",
    "CounterService",
    "CounterStore",
    "FallbackCounterStore",
    "HealthReport",
    "InMemoryCounterStore",
    "JsonlCounterLog",
    "MemcachedCounterStore",
    "RedisCounterStore",
    "ServiceConfig",
    "SqliteCounterLog",
    "StatsReport",
    "SyncScheduler",
]
