#!/usr/bin/env python3
"""Race and Load Runner for the shared counter service.

Fires concurrent clicks at a running server (or one started in-process) and
checks that the counter advanced by exactly the number of acknowledged clicks.
Results are printed and written as JSON.

Usage:
    python -m benchmarks.runner [--url URL] [--mode race|load] [--requests N] [--rounds N]

Options:
    --url URL       Server to test (default: start an in-process server)
    --mode MODE     "race" for concurrent bursts, "load" for staged scenarios
    --requests N    Clicks per race round (default: 100)
    --rounds N      Race rounds (default: 3)
    --output FILE   Output JSON file (default: click_benchmark.json)
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import sys
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from pathlib import Path

import aiohttp

from benchmarks.scenarios.clicks import LOAD_SCENARIOS, RoundResult, run_burst, run_spread
from shared_counter.api.server import CounterServer
from shared_counter.config import BACKENDS, ServiceConfig
from shared_counter.service import CounterService


@asynccontextmanager
async def local_server(backend: str = "memory") -> AsyncIterator[str]:
    """Run a throwaway service on a free port and yield its base URL."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        config = dataclasses.replace(
            ServiceConfig.from_env(),
            backend=backend,
            durable_log="sqlite",
            durable_log_path=Path(tmp_dir) / "clicks.db",
            host="127.0.0.1",
            port=0,
        )
        service = CounterService(config)
        await service.start()
        try:
            async with CounterServer(service, host=config.host, port=config.port) as server:
                yield server.base_url
        finally:
            await service.shutdown()


async def run_rounds(
    base_url: str,
    mode: str,
    requests: int = 100,
    rounds: int = 3,
    pause: float = 0.0,
    verbose: bool = False,
) -> list[RoundResult]:
    """Run every round of the selected mode against ``base_url``.

    Args:
        base_url: Server base URL.
        mode: "race" or "load".
        requests: Clicks per race round.
        rounds: Number of race rounds.
        pause: Seconds to wait between rounds.
        verbose: Print each round as it finishes.

    Returns:
        List of round results in execution order.
    """
    results: list[RoundResult] = []
    connector = aiohttp.TCPConnector(limit=0)
    async with aiohttp.ClientSession(connector=connector) as session:
        if mode == "race":
            plans = [f"race-{i + 1}" for i in range(rounds)]
        else:
            plans = [scenario.name for scenario in LOAD_SCENARIOS]

        for index, name in enumerate(plans):
            if mode == "race":
                result = await run_burst(session, base_url, requests=requests, name=name)
            else:
                result = await run_spread(session, base_url, LOAD_SCENARIOS[index])
            results.append(result)
            if verbose:
                print(
                    f"  {name}: {result.success_count}/{result.requested} ok, "
                    f"delta {result.actual_increment}, {result.rps:.1f} RPS"
                )
            if pause > 0 and index < len(plans) - 1:
                await asyncio.sleep(pause)
    return results


def format_results(mode: str, base_url: str, results: list[RoundResult]) -> dict:
    """Build the JSON report for a run."""
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "mode": mode,
        "base_url": base_url,
        "rounds": [result.to_dict() for result in results],
        "intact": all(result.intact for result in results),
        "total_lost_clicks": sum(result.lost_clicks for result in results),
    }


async def _run(args: argparse.Namespace) -> list[RoundResult]:
    if args.url:
        return await run_rounds(
            args.url.rstrip("/"), args.mode, args.requests, args.rounds, args.pause, args.verbose
        )
    async with local_server(args.backend) as base_url:
        args.url = base_url
        return await run_rounds(
            base_url, args.mode, args.requests, args.rounds, args.pause, args.verbose
        )


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the click runner.

    Returns:
        Exit code (0 when no click was lost or duplicated, 1 otherwise or on error).
    """
    parser = argparse.ArgumentParser(
        description="Race and load runner for the shared counter service"
    )
    parser.add_argument("--url", type=str, help="Base URL of a running server")
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default="memory",
        help="Backend for the in-process server when --url is not given (default: memory)",
    )
    parser.add_argument(
        "--mode",
        choices=("race", "load"),
        default="race",
        help="race: concurrent bursts; load: staged scenarios (default: race)",
    )
    parser.add_argument(
        "--requests",
        type=int,
        default=100,
        help="Concurrent clicks per race round (default: 100)",
    )
    parser.add_argument("--rounds", type=int, default=3, help="Race rounds (default: 3)")
    parser.add_argument(
        "--pause",
        type=float,
        default=0.0,
        help="Seconds between rounds (default: 0)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="click_benchmark.json",
        help="Output JSON file (default: click_benchmark.json)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    args = parser.parse_args(argv)
    if args.requests < 1 or args.rounds < 1:
        print("Error: --requests and --rounds must be at least 1", file=sys.stderr)
        return 1

    try:
        results = asyncio.run(_run(args))
    except (aiohttp.ClientError, OSError, ValueError) as e:
        print(f"Error running benchmark: {e}", file=sys.stderr)
        return 1

    report = format_results(args.mode, args.url, results)
    output_path = Path(args.output)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(report, f, indent=2)

    print("=" * 50)
    print(f"CLICK {args.mode.upper()} RESULTS")
    print("=" * 50)
    for result in results:
        status = "OK" if result.intact else "FAILED"
        print(
            f"{result.name:<10} {result.success_count}/{result.requested} ok  "
            f"expected +{result.success_count}  actual +{result.actual_increment}  "
            f"{result.rps:.1f} RPS  [{status}]"
        )
    print(f"Results saved to: {output_path}")
    print("=" * 50)

    return 0 if report["intact"] else 1


if __name__ == "__main__":
    sys.exit(main())
