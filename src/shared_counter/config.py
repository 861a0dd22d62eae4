"""Service configuration loaded from the process environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

BACKENDS = ("memory", "redis", "memcached")
DURABLE_LOGS = ("sqlite", "jsonl")


@dataclass(frozen=True, slots=True)
class ServiceConfig:
    """Configuration for the counter service.

    Attributes:
        backend: Counter store variant ("memory", "redis" or "memcached").
        counter_key: Key under which the counter is stored.
        redis_host: Redis host name.
        redis_port: Redis port.
        redis_password: Optional Redis password.
        memcached_host: Memcached host name.
        memcached_port: Memcached port.
        backend_timeout: Seconds before a networked backend call is abandoned.
        durable_log: Durable log kind ("sqlite" or "jsonl").
        durable_log_path: Path of the durable log file.
        batch_size: Snapshots buffered before a size-triggered flush.
        batch_timeout: Seconds before a partial batch is flushed.
        sync_interval: Seconds between periodic direct syncs.
        reconnect_interval: Seconds between reconnect attempts on a degraded backend (0 disables).
        host: Address the HTTP server binds to.
        port: Port the HTTP server listens on.
        log_level: Root logging level name.
    """

    backend: str = "memory"
    counter_key: str = "lizard:count"
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    memcached_host: str = "localhost"
    memcached_port: int = 11211
    backend_timeout: float = 1.0
    durable_log: str = "sqlite"
    durable_log_path: Path = Path("clicks.db")
    batch_size: int = 10
    batch_timeout: float = 5.0
    sync_interval: float = 30.0
    reconnect_interval: float = 0.0
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown counter backend {self.backend!r}; expected one of {BACKENDS}")
        if self.durable_log not in DURABLE_LOGS:
            raise ValueError(
                f"Unknown durable log {self.durable_log!r}; expected one of {DURABLE_LOGS}"
            )
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        for name in ("backend_timeout", "batch_timeout", "sync_interval"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")
        if self.reconnect_interval < 0:
            raise ValueError("reconnect_interval must not be negative")
        for name in ("redis_port", "memcached_port", "port"):
            if not 0 <= getattr(self, name) <= 65535:
                raise ValueError(f"{name} out of range")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServiceConfig:
        """Build a configuration from environment variables.

        Args:
            environ: Mapping to read from. Defaults to ``os.environ``.

        Returns:
            ServiceConfig populated from the environment, falling back to defaults.
        """
        env = os.environ if environ is None else environ
        return cls(
            backend=env.get("COUNTER_BACKEND", "memory").lower(),
            counter_key=env.get("COUNTER_KEY", "lizard:count"),
            redis_host=env.get("REDIS_HOST", "localhost"),
            redis_port=int(env.get("REDIS_PORT", "6379")),
            redis_password=env.get("REDIS_PASSWORD") or None,
            memcached_host=env.get("MEMCACHED_HOST", "localhost"),
            memcached_port=int(env.get("MEMCACHED_PORT", "11211")),
            backend_timeout=float(env.get("BACKEND_TIMEOUT", "1.0")),
            durable_log=env.get("DURABLE_LOG", "sqlite").lower(),
            durable_log_path=Path(env.get("DURABLE_LOG_PATH", "clicks.db")),
            batch_size=int(env.get("BATCH_SIZE", "10")),
            batch_timeout=float(env.get("BATCH_TIMEOUT", "5.0")),
            sync_interval=float(env.get("SYNC_INTERVAL", "30.0")),
            reconnect_interval=float(env.get("RECONNECT_INTERVAL", "0")),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "3000")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )
