"""Base protocols and records for the durable counter log."""

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One immutable row of the durable log.

    Attributes:
        id: Sequence id assigned by the log.
        count: Counter value recorded.
        timestamp: When the row was written ("YYYY-MM-DD HH:MM:SS", UTC).
    """

    id: int
    count: int
    timestamp: str


@dataclass(frozen=True, slots=True)
class LogStats:
    """Aggregate statistics over the durable log."""

    total_records: int
    max_count: int | None
    first_record: str | None
    last_record: str | None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the shape reported by the stats endpoint."""
        return {
            "total_records": self.total_records,
            "max_count": self.max_count,
            "first_record": self.first_record,
            "last_record": self.last_record,
        }


class DurableLog(Protocol):
    """Protocol for append-only counter logs."""

    async def open(self) -> None:
        """Open the log, creating it if needed."""
        ...

    async def append(self, count: int) -> None:
        """Append a single counter snapshot."""
        ...

    async def append_many(self, counts: list[int]) -> int:
        """Append several snapshots in one write. Returns count written."""
        ...

    async def max_count(self) -> int:
        """Largest recorded value, 0 when the log is empty."""
        ...

    async def stats(self) -> LogStats:
        """Aggregate statistics over all entries."""
        ...

    async def entries(self) -> list[LogEntry]:
        """All entries in sequence order."""
        ...

    async def close(self) -> None:
        """Close the log and release resources."""
        ...
