"""Memcached-backed counter store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

import aiomcache
from aiomcache.exceptions import ClientException

from shared_counter.store.base import BackendUnavailableError, CounterStore

T = TypeVar("T")

logger = logging.getLogger(__name__)


class MemcachedCounterStore(CounterStore):
    """Counter store using the Memcached ``incr`` command.

    Memcached refuses to ``incr`` a key that does not exist yet. On a miss the
    key is created with ``add`` (which never overwrites a concurrent writer) and
    the native ``incr`` is issued once more. The miss path is serialized by an
    ``asyncio.Lock`` so concurrent first increments do not race on ``add``.

    Args:
        host: Memcached host name.
        port: Memcached port.
        timeout: Seconds allowed for each command.
        client: Pre-built ``aiomcache.Client`` (used by tests).
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 11211,
        timeout: float = 1.0,
        client: Any | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = client or aiomcache.Client(host, port)
        self._init_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        """Backend identifier."""
        return "memcached"

    @staticmethod
    def _encode_key(key: str) -> bytes:
        return key.encode("utf-8")

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.CancelledError:
            await self._drop_pooled_connections()
            raise
        except (ClientException, OSError, TimeoutError) as exc:
            if isinstance(exc, TimeoutError):
                await self._drop_pooled_connections()
            reason = str(exc) or type(exc).__name__
            raise BackendUnavailableError(self.name, operation, reason) from exc

    async def _drop_pooled_connections(self) -> None:
        # aiomcache pools a cancelled connection with its reply still unread
        try:
            await self._client.close()
        except (ClientException, OSError) as exc:
            logger.warning(f"Error resetting Memcached connections: {exc}")

    async def get(self, key: str) -> int:
        raw = await self._call("get", self._client.get(self._encode_key(key)))
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError as exc:
            raise BackendUnavailableError(self.name, "get", f"non-integer value {raw!r}") from exc

    async def set(self, key: str, value: int) -> None:
        stored = await self._call(
            "set", self._client.set(self._encode_key(key), str(value).encode("ascii"))
        )
        if stored is False:
            raise BackendUnavailableError(self.name, "set", "value not stored")

    async def increment(self, key: str) -> int:
        encoded = self._encode_key(key)
        value = await self._call("incr", self._client.incr(encoded))
        if value is not None:
            return int(value)

        async with self._init_lock:
            await self._call("add", self._client.add(encoded, b"0"))
            value = await self._call("incr", self._client.incr(encoded))
        if value is None:
            raise BackendUnavailableError(self.name, "incr", "key vanished after initialization")
        return int(value)

    async def ping(self) -> None:
        await self._call("version", self._client.version())

    async def close(self) -> None:
        try:
            await self._client.close()
        except (ClientException, OSError) as exc:
            logger.warning(f"Error closing Memcached connection: {exc}")
