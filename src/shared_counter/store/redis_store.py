"""Redis-backed counter store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from shared_counter.store.base import BackendUnavailableError, CounterStore

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RedisCounterStore(CounterStore):
    """Counter store delegating to the Redis ``INCR`` primitive.

    Atomicity comes from Redis itself; no client-side locking is done. Every
    failure is surfaced as :class:`BackendUnavailableError`.

    Args:
        host: Redis host name.
        port: Redis port.
        password: Optional password.
        timeout: Seconds allowed for connecting and for each command.
        client: Pre-built ``redis.asyncio.Redis`` client (used by tests).
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: str | None = None,
        timeout: float = 1.0,
        client: Any | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = client or aioredis.Redis(
            host=host,
            port=port,
            password=password,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )

    @property
    def name(self) -> str:
        """Backend identifier."""
        return "redis"

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except (RedisError, OSError, TimeoutError) as exc:
            reason = str(exc) or type(exc).__name__
            raise BackendUnavailableError(self.name, operation, reason) from exc

    async def get(self, key: str) -> int:
        raw = await self._call("get", self._client.get(key))
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError as exc:
            raise BackendUnavailableError(self.name, "get", f"non-integer value {raw!r}") from exc

    async def set(self, key: str, value: int) -> None:
        await self._call("set", self._client.set(key, value))

    async def increment(self, key: str) -> int:
        return int(await self._call("incr", self._client.incr(key)))

    async def ping(self) -> None:
        await self._call("ping", self._client.ping())

    async def close(self) -> None:
        try:
            await self._client.aclose()
        except (RedisError, OSError) as exc:
            logger.warning(f"Error closing Redis connection: {exc}")
