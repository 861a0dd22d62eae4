"""Command-line entry point for the counter service.

Usage:
    python -m shared_counter [--host HOST] [--port PORT] [--backend NAME] [--log-level LEVEL]

Configuration is read from the environment (see ``ServiceConfig.from_env``);
command-line options override it.
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from pathlib import Path

from shared_counter.api.server import CounterServer
from shared_counter.config import BACKENDS, DURABLE_LOGS, ServiceConfig
from shared_counter.service import CounterService

logger = logging.getLogger("shared_counter")


async def serve(config: ServiceConfig) -> bool:
    """Run the service until SIGINT or SIGTERM, then shut it down.

    Args:
        config: Service configuration.

    Returns:
        bool: True if the final durable write succeeded.
    """
    service = CounterService(config)
    await service.start()

    stop_event = asyncio.Event()
    service.scheduler.install_signal_handlers(stop_event)

    try:
        async with CounterServer(service, host=config.host, port=config.port):
            await stop_event.wait()
            logger.info("Termination signal received")
    finally:
        ok = await service.shutdown()
    return ok


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Shared counter service")
    parser.add_argument("--host", type=str, help="Address to bind (env: HOST)")
    parser.add_argument("--port", type=int, help="Port to listen on (env: PORT)")
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        help="Counter backend (env: COUNTER_BACKEND)",
    )
    parser.add_argument(
        "--durable-log",
        choices=DURABLE_LOGS,
        help="Durable log kind (env: DURABLE_LOG)",
    )
    parser.add_argument(
        "--durable-log-path",
        type=Path,
        help="Durable log file (env: DURABLE_LOG_PATH)",
    )
    parser.add_argument("--log-level", type=str, help="Logging level (env: LOG_LEVEL)")
    return parser


def load_config(argv: list[str] | None = None) -> ServiceConfig:
    """Merge command-line overrides onto the environment configuration."""
    args = build_parser().parse_args(argv)
    config = ServiceConfig.from_env()
    overrides = {
        "host": args.host,
        "port": args.port,
        "backend": args.backend,
        "durable_log": args.durable_log,
        "durable_log_path": args.durable_log_path,
        "log_level": args.log_level.upper() if args.log_level else None,
    }
    return dataclasses.replace(
        config, **{name: value for name, value in overrides.items() if value is not None}
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Returns:
        Exit code (0 for a clean shutdown, 1 if the final write failed or startup failed).
    """
    try:
        config = load_config(argv)
    except ValueError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 1

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        ok = asyncio.run(serve(config))
    except OSError as exc:
        logger.error(f"Failed to start server: {exc}")
        return 1
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
