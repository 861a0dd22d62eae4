#!/usr/bin/env python3
"""Click Benchmark Scenarios for the shared counter service.

Both scenarios drive ``POST /api/clicks`` over HTTP and compare how far the
counter moved against how many clicks the server acknowledged.

Features:
- Race bursts: N concurrent clicks fired at once, checked for lost updates
- Load scenarios: clicks spread evenly over a window at increasing volume
- Duplicate detection: every acknowledged click must return a distinct count
- Throughput and latency reporting

Usage:
    async with aiohttp.ClientSession() as session:
        result = await run_burst(session, base_url, requests=100)
        print(f"Lost clicks: {result.lost_clicks}, RPS: {result.rps:.1f}")
"""

from __future__ import annotations

import asyncio
import time
from collections import Counter
from dataclasses import dataclass, field
from statistics import mean
from typing import Any

import aiohttp


@dataclass(frozen=True, slots=True)
class LoadScenario:
    """Clicks spread evenly over ``spread_seconds``."""

    name: str
    requests: int
    spread_seconds: float


LOAD_SCENARIOS = (
    LoadScenario("light", 50, 1.0),
    LoadScenario("medium", 200, 2.0),
    LoadScenario("heavy", 500, 5.0),
    LoadScenario("extreme", 1000, 10.0),
)


@dataclass
class ClickResult:
    """Outcome of one ``POST /api/clicks``."""

    success: bool
    latency_ms: float
    count: int | None = None
    source: str | None = None
    error: str | None = None


@dataclass
class RoundResult:
    """Results from one burst or load scenario."""

    name: str
    requested: int
    initial_count: int
    final_count: int
    duration_sec: float
    clicks: list[ClickResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for click in self.clicks if click.success)

    @property
    def error_count(self) -> int:
        return len(self.clicks) - self.success_count

    @property
    def actual_increment(self) -> int:
        return self.final_count - self.initial_count

    @property
    def lost_clicks(self) -> int:
        """Acknowledged clicks that did not move the counter."""
        return self.success_count - self.actual_increment

    @property
    def duplicate_counts(self) -> int:
        """Acknowledged clicks that returned a count another click also got."""
        seen = Counter(click.count for click in self.clicks if click.success)
        return sum(n - 1 for n in seen.values() if n > 1)

    @property
    def intact(self) -> bool:
        return self.lost_clicks == 0 and self.duplicate_counts == 0

    @property
    def rps(self) -> float:
        return self.success_count / self.duration_sec if self.duration_sec > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        latencies = [click.latency_ms for click in self.clicks if click.success]
        return {
            "name": self.name,
            "requested": self.requested,
            "successful_requests": self.success_count,
            "failed_requests": self.error_count,
            "initial_count": self.initial_count,
            "final_count": self.final_count,
            "actual_increment": self.actual_increment,
            "lost_clicks": self.lost_clicks,
            "duplicate_counts": self.duplicate_counts,
            "intact": self.intact,
            "duration_sec": self.duration_sec,
            "rps": self.rps,
            "sources": dict(Counter(click.source for click in self.clicks if click.success)),
            "latency_stats": {
                "min_ms": min(latencies) if latencies else 0,
                "max_ms": max(latencies) if latencies else 0,
                "mean_ms": mean(latencies) if latencies else 0,
            },
        }


async def read_count(session: aiohttp.ClientSession, base_url: str) -> int:
    """Current counter value from ``GET /api/clicks``."""
    async with session.get(f"{base_url}/api/clicks") as response:
        response.raise_for_status()
        data = await response.json()
    return int(data["count"])


async def post_click(
    session: aiohttp.ClientSession, base_url: str, delay: float = 0.0
) -> ClickResult:
    """Send one click after ``delay`` seconds; errors are recorded, not raised."""
    if delay > 0:
        await asyncio.sleep(delay)
    start = time.perf_counter()
    try:
        async with session.post(f"{base_url}/api/clicks") as response:
            response.raise_for_status()
            data = await response.json()
    except (aiohttp.ClientError, TimeoutError) as exc:
        latency_ms = (time.perf_counter() - start) * 1000
        return ClickResult(success=False, latency_ms=latency_ms, error=str(exc) or type(exc).__name__)

    latency_ms = (time.perf_counter() - start) * 1000
    return ClickResult(
        success=True, latency_ms=latency_ms, count=int(data["count"]), source=data.get("source")
    )


async def _run_clicks(
    session: aiohttp.ClientSession,
    base_url: str,
    name: str,
    delays: list[float],
) -> RoundResult:
    initial = await read_count(session, base_url)
    start = time.perf_counter()
    clicks = await asyncio.gather(*(post_click(session, base_url, delay) for delay in delays))
    duration = time.perf_counter() - start
    final = await read_count(session, base_url)
    return RoundResult(
        name=name,
        requested=len(delays),
        initial_count=initial,
        final_count=final,
        duration_sec=duration,
        clicks=list(clicks),
    )


async def run_burst(
    session: aiohttp.ClientSession,
    base_url: str,
    requests: int = 100,
    name: str = "race",
) -> RoundResult:
    """Fire ``requests`` clicks concurrently and measure the counter delta.

    Args:
        session: Client session used for every request.
        base_url: Server base URL, e.g. ``http://127.0.0.1:3000``.
        requests: Number of concurrent clicks.
        name: Label for the round.

    Returns:
        RoundResult: Delta, duplicates and throughput for the burst.
    """
    return await _run_clicks(session, base_url, name, [0.0] * requests)


async def run_spread(
    session: aiohttp.ClientSession,
    base_url: str,
    scenario: LoadScenario,
) -> RoundResult:
    """Send the scenario's clicks at evenly spaced offsets over its window."""
    step = scenario.spread_seconds / scenario.requests if scenario.requests else 0.0
    delays = [step * i for i in range(scenario.requests)]
    return await _run_clicks(session, base_url, scenario.name, delays)
