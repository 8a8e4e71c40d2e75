"""Pytest configuration and fixtures."""

import fnmatch
from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
from sqlalchemy import select
from sqlalchemy.pool import StaticPool

from chatstats.config import Settings
from chatstats.database.models import Message, User
from chatstats.database.session import Database
from chatstats.services.redis_client import RedisClient

# Fixed "now" for window-dependent tests: Sunday 15:00 in Moscow
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (get/set/scan/delete only)."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, Optional[int]] = {}
        self.scan_calls: list[tuple[int, str, int]] = []
        self._snapshot: list[str] = []

    async def ping(self):
        return True

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None):
        self.data[key] = value
        self.ttls[key] = ex
        return True

    async def scan(self, cursor=0, match=None, count=None):
        self.scan_calls.append((cursor, match, count))
        # like real SCAN, keys deleted mid-iteration do not shift the cursor
        if cursor == 0:
            self._snapshot = sorted(
                k for k in self.data if match is None or fnmatch.fnmatchcase(k, match)
            )
        batch = [k for k in self._snapshot[cursor:cursor + count] if k in self.data]
        next_cursor = cursor + count if cursor + count < len(self._snapshot) else 0
        return next_cursor, batch

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
        return removed

    async def aclose(self):
        pass


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        bot_token="123456:TEST",
        database_url="sqlite+aiosqlite:///:memory:",
        redis_enabled=True,
        cache_ttl_minutes=20,
        gemini_api_key="test-key",
        timezone="Europe/Moscow",
    )


@pytest.fixture
async def test_db() -> AsyncGenerator[Database, None]:
    """In-memory database with tables created."""
    db = Database("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def redis_client(test_settings, fake_redis) -> RedisClient:
    """RedisClient wired to the in-memory fake."""
    client = RedisClient(test_settings)
    client._client = fake_redis
    client._available = True
    return client


@pytest.fixture
def seed(test_db):
    """Insert a message (and its author if missing) with an explicit timestamp."""

    async def _seed(
        user_id: int,
        chat_id: int,
        text: str = "hi",
        created_at: Optional[datetime] = None,
        username: Optional[str] = None,
    ) -> None:
        async with test_db.session() as session:
            existing = await session.execute(select(User).where(User.id == user_id))
            if existing.scalars().first() is None:
                session.add(User(id=user_id, username=username, first_name=f"User{user_id}"))
                await session.flush()
            session.add(Message(
                user_id=user_id,
                chat_id=chat_id,
                text=text,
                created_at=created_at or NOW,
            ))
            await session.commit()

    return _seed
