"""Redis client for the statistics cache."""

import logging
from typing import Optional

import redis.asyncio as redis

from chatstats.config import Settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Async Redis client wrapper.

    Redis is a soft dependency: when it is disabled, unreachable, or a
    command fails, reads behave as a miss and writes report False. Errors
    are logged, never raised.
    """

    def __init__(self, config: Settings):
        self._config = config
        self._client: Optional[redis.Redis] = None
        self._available = False

    async def connect(self):
        """Connect to Redis server."""
        if not self._config.redis_enabled:
            logger.info("Redis disabled in config, statistics cache is off")
            return

        try:
            self._client = redis.Redis(
                host=self._config.redis_host,
                port=self._config.redis_port,
                db=self._config.redis_db,
                password=self._config.redis_password or None,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
            )
            # Test connection
            await self._client.ping()
            self._available = True
            logger.info(f"Connected to Redis at {self._config.redis_host}:{self._config.redis_port}")
        except Exception as e:
            logger.warning(f"Failed to connect to Redis: {e}. Statistics cache is off")
            self._client = None
            self._available = False

    async def close(self):
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            self._available = False
            logger.info("Redis connection closed")

    @property
    def is_available(self) -> bool:
        """Check if Redis is available."""
        return self._available

    async def get(self, key: str) -> Optional[str]:
        """Get value by key."""
        if not self._available:
            return None
        try:
            return await self._client.get(key)
        except Exception as e:
            logger.error(f"Redis GET error: {e}")
            return None

    async def set(self, key: str, value: str, ex: Optional[int] = None) -> bool:
        """
        Set key-value pair.

        Args:
            key: Key name
            value: Value to store
            ex: Expiration time in seconds

        Returns:
            True if successful
        """
        if not self._available:
            return False
        try:
            await self._client.set(key, value, ex=ex)
            return True
        except Exception as e:
            logger.error(f"Redis SET error: {e}")
            return False

    async def scan(self, cursor: int, match: str, count: int) -> Optional[tuple[int, list[str]]]:
        """
        One SCAN step.

        Returns (next_cursor, keys), or None if Redis is unavailable or the
        command failed.
        """
        if not self._available:
            return None
        try:
            next_cursor, keys = await self._client.scan(cursor=cursor, match=match, count=count)
            return int(next_cursor), list(keys)
        except Exception as e:
            logger.error(f"Redis SCAN error: {e}")
            return None

    async def delete(self, *keys: str) -> bool:
        """Delete keys."""
        if not self._available:
            return False
        if not keys:
            return True
        try:
            await self._client.delete(*keys)
            return True
        except Exception as e:
            logger.error(f"Redis DELETE error: {e}")
            return False
