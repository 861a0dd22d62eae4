"""Counter store selection from configuration."""

from shared_counter.config import ServiceConfig
from shared_counter.store.base import CounterStore
from shared_counter.store.fallback import FallbackCounterStore
from shared_counter.store.memcached_store import MemcachedCounterStore
from shared_counter.store.memory import InMemoryCounterStore
from shared_counter.store.redis_store import RedisCounterStore


def create_store(config: ServiceConfig) -> CounterStore:
    """Build the counter store selected by ``config.backend``.

    Networked backends are wrapped in a :class:`FallbackCounterStore`; the
    in-process store is returned as is.
    """
    if config.backend == "redis":
        return FallbackCounterStore(
            RedisCounterStore(
                host=config.redis_host,
                port=config.redis_port,
                password=config.redis_password,
                timeout=config.backend_timeout,
            )
        )
    if config.backend == "memcached":
        return FallbackCounterStore(
            MemcachedCounterStore(
                host=config.memcached_host,
                port=config.memcached_port,
                timeout=config.backend_timeout,
            )
        )
    return InMemoryCounterStore()
