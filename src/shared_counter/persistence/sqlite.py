"""SQLite append log for counter snapshots using aiosqlite."""

import asyncio
import contextlib
import sqlite3
from pathlib import Path
from typing import Any, Self

import aiosqlite

from shared_counter.persistence.base import DurableLog, LogEntry, LogStats


class SqliteCounterLog(DurableLog):
    """Append-only ``clicks`` table holding counter snapshots.

    Rows are never updated or deleted. A batch is written as one multi-row
    ``INSERT`` inside a single transaction; a failed batch is rolled back so
    the caller can retry its values one by one.

    Example:
        ```python
        async with SqliteCounterLog(Path("clicks.db")) as log:
            await log.append_many([41, 42])
            assert await log.max_count() == 42
        ```
    """

    def __init__(self, db_path: Path, table_name: str = "clicks") -> None:
        """Initialize the log.

        Args:
            db_path: Path to the SQLite database file.
            table_name: Name of the append table.
        """
        self._db_path = db_path
        self._table = table_name
        self._db: aiosqlite.Connection | None = None
        self._closed = False
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        """Location of the database file."""
        return self._db_path

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def open(self) -> None:
        """Open the database connection and ensure the schema exists."""
        if self._closed:
            raise RuntimeError("Cannot reopen a closed log")
        if self._db is not None:
            return
        self._db = await aiosqlite.connect(self._db_path, isolation_level=None)
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute("PRAGMA synchronous = NORMAL")
        await self._ensure_schema()

    async def _ensure_schema(self) -> None:
        """Create the table and index if they don't exist."""
        db = self._connection()
        await db.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self._table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                count INTEGER NOT NULL,
                timestamp DATETIME DEFAULT CURRENT_TIMESTAMP
            )
            """
        )
        await db.execute(
            f"CREATE INDEX IF NOT EXISTS idx_{self._table}_count ON {self._table}(count)"
        )

    def _connection(self) -> aiosqlite.Connection:
        if self._closed:
            raise RuntimeError("Cannot use a closed log")
        if self._db is None:
            raise RuntimeError("Database connection not open")
        return self._db

    async def append(self, count: int) -> None:
        """Insert a single snapshot."""
        await self.append_many([count])

    async def append_many(self, counts: list[int]) -> int:
        """Insert all snapshots with one multi-row statement.

        Args:
            counts: Counter values to append, in order.

        Returns:
            Number of rows written.
        """
        if not counts:
            return 0
        db = self._connection()
        placeholders = ", ".join("(?)" for _ in counts)
        async with self._lock:
            try:
                await db.execute("BEGIN")
                await db.execute(f"INSERT INTO {self._table} (count) VALUES {placeholders}", counts)
                await db.execute("COMMIT")
            except BaseException:
                # a cancelled COMMIT may still have run on the connection thread
                with contextlib.suppress(sqlite3.OperationalError):
                    await db.execute("ROLLBACK")
                raise
        return len(counts)

    async def max_count(self) -> int:
        db = self._connection()
        async with db.execute(f"SELECT MAX(count) FROM {self._table}") as cursor:
            row = await cursor.fetchone()
        return int(row[0]) if row and row[0] is not None else 0

    async def stats(self) -> LogStats:
        db = self._connection()
        async with db.execute(
            f"""
            SELECT
                COUNT(*) AS total_records,
                MAX(count) AS max_count,
                MIN(timestamp) AS first_record,
                MAX(timestamp) AS last_record
            FROM {self._table}
            """
        ) as cursor:
            row = await cursor.fetchone()
        if row is None:
            return LogStats(0, None, None, None)
        return LogStats(
            total_records=int(row[0]),
            max_count=row[1],
            first_record=row[2],
            last_record=row[3],
        )

    async def entries(self) -> list[LogEntry]:
        db = self._connection()
        async with db.execute(
            f"SELECT id, count, timestamp FROM {self._table} ORDER BY id"
        ) as cursor:
            rows = await cursor.fetchall()
        return [LogEntry(id=row[0], count=row[1], timestamp=row[2]) for row in rows]

    async def close(self) -> None:
        """Close the database connection. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        if self._db is not None:
            await self._db.close()
            self._db = None
