"""Base protocol and errors for counter stores."""

from typing import Protocol, runtime_checkable


class BackendUnavailableError(Exception):
    """Raised when a networked backend cannot complete an operation."""

    def __init__(self, backend: str, operation: str, reason: str) -> None:
        super().__init__(f"{backend} {operation} failed: {reason}")
        self.backend = backend
        self.operation = operation
        self.reason = reason


@runtime_checkable
class CounterStore(Protocol):
    """Protocol for key to integer stores holding the shared counter.

    Implementations must make ``increment`` linearizable: N concurrent calls on
    the same key return N distinct, consecutive values.
    """

    @property
    def name(self) -> str:
        """Backend identifier reported as the response ``source``."""
        ...

    async def get(self, key: str) -> int:
        """Return the current value, or 0 when the key is absent."""
        ...

    async def set(self, key: str, value: int) -> None:
        """Unconditionally overwrite the value. Used to seed the store."""
        ...

    async def increment(self, key: str) -> int:
        """Atomically add one and return the new value."""
        ...

    async def ping(self) -> None:
        """Check the backend is reachable."""
        ...

    async def close(self) -> None:
        """Release connections held by the store."""
        ...
