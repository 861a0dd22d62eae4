"""Response models for the counter service.

Each model is immutable and serializes to the JSON shape returned by the HTTP
endpoints via ``to_dict()``.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string with millisecond precision and ``Z`` suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class CounterReading:
    """Counter value returned by the read and write endpoints.

    Attributes:
        count: Counter value (post-increment for writes).
        timestamp: ISO-8601 time the value was produced.
        source: Identifier of the store that answered.
    """

    count: int
    timestamp: str
    source: str

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True, slots=True)
class HealthReport:
    """Liveness report for the health endpoint.

    Attributes:
        status: Always "healthy" while the process can answer.
        uptime: Seconds since the service started.
        backend_status: "healthy" or "degraded".
        cache_status: "connected" or "disconnected".
        cache_type: Configured backend name.
        current_count: Counter value at report time.
        timestamp: ISO-8601 report time.
    """

    status: str
    uptime: float
    backend_status: str
    cache_status: str
    cache_type: str
    current_count: int
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True, slots=True)
class StatsReport:
    """In-memory and durable-log statistics for the stats endpoint."""

    current_memory_count: int
    database_stats: dict[str, Any]
    cache_type: str
    cache_available: bool
    fallback_counter: int | None
    batch_writer: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)
