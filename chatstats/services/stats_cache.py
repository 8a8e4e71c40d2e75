"""
Statistics cache: key scheme and chat-scoped invalidation.

Keys:
    stats:top:{chat_id}:{range}             chat leaderboard
    stats:user:{chat_id}:{user_id}:{range}  single-user report

Every report kind puts the chat id right after the kind, so all entries of
one chat match a single glob per kind.
"""

import logging

from chatstats.services.redis_client import RedisClient
from chatstats.services.ranges import StatsRange

logger = logging.getLogger(__name__)

KEY_PREFIX = "stats"
KIND_TOP = "top"
KIND_USER = "user"
REPORT_KINDS = (KIND_TOP, KIND_USER)

SCAN_BATCH_SIZE = 100


def top_key(chat_id: int, stats_range: StatsRange) -> str:
    return f"{KEY_PREFIX}:{KIND_TOP}:{chat_id}:{stats_range.value}"


def user_key(chat_id: int, user_id: int, stats_range: StatsRange) -> str:
    return f"{KEY_PREFIX}:{KIND_USER}:{chat_id}:{user_id}:{stats_range.value}"


def chat_patterns(chat_id: int) -> list[str]:
    return [f"{KEY_PREFIX}:{kind}:{chat_id}:*" for kind in REPORT_KINDS]


class StatsCache:
    """Rendered reports in Redis with a uniform TTL."""

    def __init__(self, redis_client: RedisClient, ttl_seconds: int):
        self._redis = redis_client
        self.ttl_seconds = ttl_seconds

    async def get(self, key: str) -> str | None:
        return await self._redis.get(key)

    async def set(self, key: str, payload: str) -> bool:
        return await self._redis.set(key, payload, ex=self.ttl_seconds)

    async def invalidate_prefix(self, pattern: str) -> bool:
        """
        Delete every key matching `pattern`.

        Walks the SCAN cursor from 0 until it comes back to 0, deleting each
        batch as it arrives. Returns False if any step failed; keys left
        behind expire with their TTL.
        """
        if not self._redis.is_available:
            return True

        cursor = 0
        deleted = 0
        while True:
            step = await self._redis.scan(cursor, match=pattern, count=SCAN_BATCH_SIZE)
            if step is None:
                return False
            cursor, keys = step
            if keys:
                if not await self._redis.delete(*keys):
                    return False
                deleted += len(keys)
            if cursor == 0:
                break

        if deleted:
            logger.debug(f"[CACHE] invalidated {deleted} keys for {pattern}")
        return True

    async def invalidate_chat(self, chat_id: int) -> bool:
        """Drop all cached reports of a chat."""
        ok = True
        for pattern in chat_patterns(chat_id):
            ok = await self.invalidate_prefix(pattern) and ok
        return ok
