"""In-process counter store."""

import threading

from shared_counter.store.base import CounterStore


class InMemoryCounterStore(CounterStore):
    """Counter store backed by a dict living in this process.

    None of the methods suspend between reading and writing the slot, so the
    increment is a single step on the event loop. The lock also keeps it safe
    when the store is shared with worker threads.

    Example:
        ```python
        store = InMemoryCounterStore()
        await store.set("lizard:count", 41)
        assert await store.increment("lizard:count") == 42
        ```
    """

    def __init__(self, name: str = "map") -> None:
        self._name = name
        self._values: dict[str, int] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def name(self) -> str:
        """Backend identifier."""
        return self._name

    def get_nowait(self, key: str) -> int:
        """Read the value without going through the event loop."""
        with self._lock:
            return self._values.get(key, 0)

    def increment_nowait(self, key: str) -> int:
        """Add one and return the new value without yielding."""
        with self._lock:
            value = self._values.get(key, 0) + 1
            self._values[key] = value
            return value

    def set_nowait(self, key: str, value: int) -> None:
        """Overwrite the value without yielding."""
        if value < 0:
            raise ValueError("Counter values cannot be negative")
        with self._lock:
            self._values[key] = value

    async def get(self, key: str) -> int:
        return self.get_nowait(key)

    async def set(self, key: str, value: int) -> None:
        self.set_nowait(key, value)

    async def increment(self, key: str) -> int:
        return self.increment_nowait(key)

    async def ping(self) -> None:
        if self._closed:
            raise RuntimeError("Store is closed")

    async def close(self) -> None:
        self._closed = True
