"""Tests for Redis client."""

import pytest
from unittest.mock import AsyncMock, patch

from chatstats.config import Settings
from chatstats.services.redis_client import RedisClient


@pytest.fixture
def client():
    """Create Redis client instance."""
    return RedisClient(Settings(redis_enabled=True))


@pytest.mark.asyncio
async def test_redis_client_disabled_in_config():
    client = RedisClient(Settings(redis_enabled=False))
    await client.connect()
    assert client.is_available is False


@pytest.mark.asyncio
async def test_redis_client_get_returns_none_when_unavailable(client):
    assert await client.get("test_key") is None


@pytest.mark.asyncio
async def test_redis_client_set_returns_false_when_unavailable(client):
    assert await client.set("test_key", "test_value", ex=10) is False


@pytest.mark.asyncio
async def test_redis_client_scan_returns_none_when_unavailable(client):
    assert await client.scan(0, match="stats:*", count=100) is None


@pytest.mark.asyncio
async def test_redis_client_handles_connection_error(client):
    """Test that client handles connection errors gracefully."""
    with patch("chatstats.services.redis_client.redis.Redis") as mock_redis:
        mock_redis.return_value.ping = AsyncMock(side_effect=Exception("Connection failed"))

        await client.connect()
        assert client.is_available is False


@pytest.mark.asyncio
async def test_redis_client_get_error_is_a_miss(client):
    client._available = True
    client._client = AsyncMock()
    client._client.get.side_effect = ConnectionError("boom")

    assert await client.get("test_key") is None


@pytest.mark.asyncio
async def test_redis_client_set_passes_ttl(client):
    client._available = True
    client._client = AsyncMock()

    assert await client.set("k", "v", ex=1200) is True
    client._client.set.assert_awaited_once_with("k", "v", ex=1200)


@pytest.mark.asyncio
async def test_redis_client_scan_normalizes_cursor(client):
    client._available = True
    client._client = AsyncMock()
    client._client.scan.return_value = ("17", ["a", "b"])

    assert await client.scan(0, match="stats:*", count=100) == (17, ["a", "b"])
    client._client.scan.assert_awaited_once_with(cursor=0, match="stats:*", count=100)


@pytest.mark.asyncio
async def test_redis_client_delete_error_returns_false(client):
    client._available = True
    client._client = AsyncMock()
    client._client.delete.side_effect = ConnectionError("boom")

    assert await client.delete("a", "b") is False


@pytest.mark.asyncio
async def test_redis_client_close(client):
    client._available = True
    inner = AsyncMock()
    client._client = inner

    await client.close()

    inner.aclose.assert_awaited_once()
    assert client.is_available is False
