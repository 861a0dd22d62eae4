"""Durable log selection from configuration."""

from shared_counter.config import ServiceConfig
from shared_counter.persistence.base import DurableLog
from shared_counter.persistence.jsonl import JsonlCounterLog
from shared_counter.persistence.sqlite import SqliteCounterLog


def create_log(config: ServiceConfig) -> DurableLog:
    """Build the durable log selected by ``config.durable_log``."""
    if config.durable_log == "jsonl":
        return JsonlCounterLog(config.durable_log_path)
    return SqliteCounterLog(config.durable_log_path)
