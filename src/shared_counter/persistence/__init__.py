"""Durable counter log and batched persistence."""

from shared_counter.persistence.base import DurableLog, LogEntry, LogStats
from shared_counter.persistence.batch import BatchPersistenceWriter, BatchWriterMetrics
from shared_counter.persistence.factory import create_log
from shared_counter.persistence.jsonl import JsonlCounterLog
from shared_counter.persistence.sqlite import SqliteCounterLog

__all__ = [
    "BatchPersistenceWriter",
    "BatchWriterMetrics",
    "DurableLog",
    "JsonlCounterLog",
    "LogEntry",
    "LogStats",
    "SqliteCounterLog",
    "create_log",
]
