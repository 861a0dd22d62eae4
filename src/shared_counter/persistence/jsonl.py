"""JSONL append log for counter snapshots using aiofiles."""

import asyncio
import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Self

import aiofiles

from shared_counter.persistence.base import DurableLog, LogEntry, LogStats

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


class JsonlCounterLog(DurableLog):
    """Append-only JSON Lines file of counter snapshots.

    Each line is ``{"id": ..., "count": ..., "timestamp": ...}``. The file is
    opened in append mode and fsynced after every write. On open, existing
    lines are scanned to resume the sequence and rebuild the aggregates;
    unparseable lines are skipped with a warning.
    """

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._file: Any = None
        self._closed = False
        self._lock = asyncio.Lock()
        self._next_id = 1
        self._total = 0
        self._max: int | None = None
        self._first: str | None = None
        self._last: str | None = None

    @property
    def path(self) -> Path:
        """Location of the log file."""
        return self._file_path

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def open(self) -> None:
        """Scan existing entries and open the file for appending."""
        if self._closed:
            raise RuntimeError("Cannot reopen a closed log")
        if self._file is not None:
            return
        for entry in await self._read_entries():
            self._track(entry)
        self._file = await aiofiles.open(
            self._file_path, mode="a", encoding="utf-8", newline="\n"
        )
        if await self._has_torn_tail():
            # partial line left by a crash
            await self._file.write("\n")
            await self._file.flush()

    async def _has_torn_tail(self) -> bool:
        if not self._file_path.exists() or self._file_path.stat().st_size == 0:
            return False
        async with aiofiles.open(self._file_path, mode="rb") as handle:
            await handle.seek(-1, os.SEEK_END)
            return await handle.read(1) != b"\n"

    async def _read_entries(self) -> list[LogEntry]:
        if not self._file_path.exists():
            return []
        entries: list[LogEntry] = []
        async with aiofiles.open(self._file_path, encoding="utf-8") as handle:
            async for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    data = json.loads(line)
                    entry = LogEntry(
                        id=int(data["id"]),
                        count=int(data["count"]),
                        timestamp=str(data["timestamp"]),
                    )
                except (ValueError, KeyError, TypeError) as exc:
                    logger.warning(f"Skipping malformed log line in {self._file_path}: {exc}")
                    continue
                entries.append(entry)
        return entries

    def _track(self, entry: LogEntry) -> None:
        self._next_id = max(self._next_id, entry.id + 1)
        self._total += 1
        if self._max is None or entry.count > self._max:
            self._max = entry.count
        if self._first is None or entry.timestamp < self._first:
            self._first = entry.timestamp
        if self._last is None or entry.timestamp > self._last:
            self._last = entry.timestamp

    def _handle(self) -> Any:
        if self._closed:
            raise RuntimeError("Cannot use a closed log")
        if self._file is None:
            raise RuntimeError("Log file not open")
        return self._file

    async def append(self, count: int) -> None:
        await self.append_many([count])

    async def append_many(self, counts: list[int]) -> int:
        """Write all snapshots with one buffered write and a single fsync."""
        if not counts:
            return 0
        handle = self._handle()
        async with self._lock:
            timestamp = datetime.now(UTC).strftime(TIMESTAMP_FORMAT)
            entries = [
                LogEntry(id=self._next_id + offset, count=count, timestamp=timestamp)
                for offset, count in enumerate(counts)
            ]
            payload = "".join(
                json.dumps({"id": e.id, "count": e.count, "timestamp": e.timestamp}) + "\n"
                for e in entries
            )
            await handle.write(payload)
            await handle.flush()
            os.fsync(handle.fileno())
            for entry in entries:
                self._track(entry)
        return len(entries)

    async def max_count(self) -> int:
        self._handle()
        return self._max or 0

    async def stats(self) -> LogStats:
        self._handle()
        return LogStats(
            total_records=self._total,
            max_count=self._max,
            first_record=self._first,
            last_record=self._last,
        )

    async def entries(self) -> list[LogEntry]:
        self._handle()
        return await self._read_entries()

    async def close(self) -> None:
        """Close the file handle. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._file is not None:
            await self._file.close()
            self._file = None
