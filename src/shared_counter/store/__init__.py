"""Counter store backends."""

from shared_counter.store.base import BackendUnavailableError, CounterStore
from shared_counter.store.factory import create_store
from shared_counter.store.fallback import (
    FALLBACK_SOURCE,
    BackendState,
    FallbackCounterStore,
    FallbackMetrics,
)
from shared_counter.store.memcached_store import MemcachedCounterStore
from shared_counter.store.memory import InMemoryCounterStore
from shared_counter.store.redis_store import RedisCounterStore

__all__ = [
    "FALLBACK_SOURCE",
    "BackendState",
    "BackendUnavailableError",
    "CounterStore",
    "FallbackCounterStore",
    "FallbackMetrics",
    "InMemoryCounterStore",
    "MemcachedCounterStore",
    "RedisCounterStore",
    "create_store",
]
