"""Tests for the database lifecycle object."""

import pytest

from chatstats.database.session import Database


@pytest.mark.asyncio
async def test_sqlite_parent_directory_is_created(tmp_path):
    db_path = tmp_path / "var" / "nested" / "stats.db"
    db = Database(f"sqlite+aiosqlite:///{db_path}")
    try:
        assert db_path.parent.is_dir()
        await db.create_tables()
        await db.ping()
        assert db_path.exists()
    finally:
        await db.close()


@pytest.mark.asyncio
async def test_memory_url_creates_no_directories(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    db = Database("sqlite+aiosqlite:///:memory:")
    await db.close()

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_wait_until_ready_raises_last_error(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path}/ok.db")
    calls = []

    async def failing_ping():
        calls.append(1)
        raise ConnectionError(f"attempt {len(calls)}")

    db.ping = failing_ping
    try:
        with pytest.raises(ConnectionError, match="attempt 3"):
            await db.wait_until_ready(retries=3, delay_ms=0)
    finally:
        await db.close()
    assert len(calls) == 3
