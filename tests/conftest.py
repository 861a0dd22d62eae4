"""Pytest configuration and fixtures for shared-counter tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from shared_counter.store.base import BackendUnavailableError


class FakeNetworkBackend:
    """Networked counter store stand-in with an on/off failure switch.

    Every call yields to the event loop once, like a real round trip, and the
    increment is atomic on the "server" side.
    """

    def __init__(self, name: str = "redis") -> None:
        self._name = name
        self.values: dict[str, int] = {}
        self.fail = False
        self.calls: list[str] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self._name

    async def _round_trip(self, operation: str) -> None:
        self.calls.append(operation)
        await asyncio.sleep(0)
        if self.fail:
            raise BackendUnavailableError(self._name, operation, "connection refused")

    async def get(self, key: str) -> int:
        await self._round_trip("get")
        return self.values.get(key, 0)

    async def set(self, key: str, value: int) -> None:
        await self._round_trip("set")
        self.values[key] = value

    async def increment(self, key: str) -> int:
        await self._round_trip("incr")
        self.values[key] = self.values.get(key, 0) + 1
        return self.values[key]

    async def ping(self) -> None:
        await self._round_trip("ping")

    async def close(self) -> None:
        self.closed = True


@pytest.fixture()
def network_backend() -> FakeNetworkBackend:
    """Provide a healthy fake networked backend."""
    return FakeNetworkBackend()


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    """Provide a path for a fresh SQLite durable log."""
    return tmp_path / "clicks.db"


@pytest.fixture()
def jsonl_path(tmp_path: Path) -> Path:
    """Provide a path for a fresh JSONL durable log."""
    return tmp_path / "clicks.jsonl"
