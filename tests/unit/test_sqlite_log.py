"""Tests for SqliteCounterLog."""

import asyncio

import aiosqlite
import pytest

from shared_counter.persistence.base import LogStats
from shared_counter.persistence.sqlite import SqliteCounterLog


@pytest.mark.asyncio
async def test_schema_creation(db_path) -> None:
    """Test that the clicks table and count index are created on open."""
    assert not db_path.exists()
    async with SqliteCounterLog(db_path):
        pass
    db = await aiosqlite.connect(db_path)
    try:
        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='clicks'"
        )
        assert await cursor.fetchone() is not None
        cursor = await db.execute(
            "SELECT name FROM sqlite_master WHERE type='index' AND name='idx_clicks_count'"
        )
        assert await cursor.fetchone() is not None
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_empty_log(db_path) -> None:
    """Test an empty log reports max 0 and empty stats."""
    async with SqliteCounterLog(db_path) as log:
        assert await log.max_count() == 0
        assert await log.stats() == LogStats(0, None, None, None)
        assert await log.entries() == []


@pytest.mark.asyncio
async def test_append_and_append_many(db_path) -> None:
    """Test single and multi-row appends get sequential ids."""
    async with SqliteCounterLog(db_path) as log:
        await log.append(1)
        written = await log.append_many([2, 3, 4])
        assert written == 3
        entries = await log.entries()

    assert [e.count for e in entries] == [1, 2, 3, 4]
    assert [e.id for e in entries] == [1, 2, 3, 4]
    assert all(e.timestamp for e in entries)


@pytest.mark.asyncio
async def test_append_many_empty_is_noop(db_path) -> None:
    """Test an empty batch writes nothing."""
    async with SqliteCounterLog(db_path) as log:
        assert await log.append_many([]) == 0
        assert (await log.stats()).total_records == 0


@pytest.mark.asyncio
async def test_max_count_is_maximum_not_latest(db_path) -> None:
    """Test recovery uses the largest value, not the last row."""
    async with SqliteCounterLog(db_path) as log:
        await log.append_many([10, 42, 7])
        assert await log.max_count() == 42


@pytest.mark.asyncio
async def test_values_survive_reopen(db_path) -> None:
    """Test entries persist across connections."""
    async with SqliteCounterLog(db_path) as log:
        await log.append_many([40, 41, 42])

    async with SqliteCounterLog(db_path) as log:
        assert await log.max_count() == 42
        await log.append(43)
        stats = await log.stats()

    assert stats.total_records == 4
    assert stats.max_count == 43
    assert stats.first_record is not None
    assert stats.last_record >= stats.first_record


@pytest.mark.asyncio
async def test_failed_batch_rolls_back(db_path) -> None:
    """Test a batch with a bad value writes none of its rows."""
    async with SqliteCounterLog(db_path) as log:
        with pytest.raises(aiosqlite.IntegrityError):
            await log.append_many([1, None, 3])  # type: ignore[list-item]
        assert await log.entries() == []
        await log.append(5)
        assert await log.max_count() == 5


@pytest.mark.asyncio
async def test_closed_log_rejects_writes(db_path) -> None:
    """Test using a closed log raises RuntimeError."""
    log = SqliteCounterLog(db_path)
    await log.open()
    await log.close()
    await log.close()

    with pytest.raises(RuntimeError, match="closed"):
        await log.append(1)
    with pytest.raises(RuntimeError, match="closed"):
        await log.open()


@pytest.mark.asyncio
async def test_unopened_log_rejects_reads(db_path) -> None:
    """Test querying before open raises RuntimeError."""
    log = SqliteCounterLog(db_path)
    with pytest.raises(RuntimeError, match="not open"):
        await log.max_count()


@pytest.mark.asyncio
async def test_cancelled_append_rolls_back(db_path, monkeypatch) -> None:
    """Test an append cancelled inside its transaction leaves the log writable."""
    async with SqliteCounterLog(db_path) as log:
        db = log._db
        real_execute = db.execute
        inserted = asyncio.Event()

        async def stalled_execute(sql, parameters=None):
            cursor = await real_execute(sql, parameters)
            if sql.startswith("INSERT"):
                inserted.set()
                await asyncio.Event().wait()
            return cursor

        monkeypatch.setattr(db, "execute", stalled_execute)
        task = asyncio.create_task(log.append(6))
        await inserted.wait()
        assert db.in_transaction

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        monkeypatch.undo()

        assert not db.in_transaction
        await log.append(7)
        assert [e.count for e in await log.entries()] == [7]
