"""
Statistics facade: cache-or-compute for chat reports.

For each report: derive the cache key, return a cached payload verbatim on
a hit, otherwise run the aggregation queries, render the text, store it
with the configured TTL and return it. Concurrent misses for the same key
both compute and both write; the results are identical for the same data.
"""

import html
import logging
from datetime import datetime
from typing import Callable

from chatstats.services.aggregation import ChatTotals, StatsQueries, UserCount, UserRank
from chatstats.services.ranges import StatsRange, range_start
from chatstats.services.stats_cache import StatsCache, top_key, user_key
from chatstats.utils import display_name, utc_now

logger = logging.getLogger(__name__)

PRIVACY_HINT = "Если бот не видит сообщения, выключите Privacy Mode в BotFather."


def no_data_text(stats_range: StatsRange) -> str:
    return f"Нет данных {stats_range.label}.\n\n{PRIVACY_HINT}"


def rank_text(rank: UserRank) -> str:
    if rank.rank is None:
        return "нет в статистике"
    return f"{rank.rank} из {rank.total_users}"


def user_label(row: UserCount) -> str:
    return html.escape(display_name(row.username, row.first_name, row.last_name))


def render_leaderboard(stats_range: StatsRange, rows: list[UserCount], totals: ChatTotals) -> str:
    lines = "\n".join(
        f"{i}. {user_label(row)} - {row.count}" for i, row in enumerate(rows, start=1)
    )
    return (
        f"📊 Статистика чата {stats_range.label}:\n\n"
        f"{lines}\n\n"
        f"Всего: {totals.messages} сообщений от {totals.users} пользователей"
    )


def render_user_report(stats_range: StatsRange, count: int, rank: UserRank, totals: ChatTotals) -> str:
    return (
        f"👤 Статистика пользователя {stats_range.label}:\n\n"
        f"Сообщений: {count}\n"
        f"Место в чате: {rank_text(rank)}\n"
        f"Всего сообщений в чате: {totals.messages}"
    )


class StatisticsService:
    """Chat leaderboard and per-user reports, read through the cache."""

    def __init__(
        self,
        queries: StatsQueries,
        cache: StatsCache,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.queries = queries
        self.cache = cache
        self._clock = clock

    def _since(self, stats_range: StatsRange) -> datetime | None:
        return range_start(stats_range, now=self._clock())

    async def leaderboard_report(self, chat_id: int, stats_range: StatsRange) -> str:
        key = top_key(chat_id, stats_range)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"[STATS] cache hit {key}")
            return cached

        since = self._since(stats_range)
        rows = await self.queries.top_users(chat_id, since)
        if not rows:
            return no_data_text(stats_range)
        totals = await self.queries.chat_totals(chat_id, since)

        text = render_leaderboard(stats_range, rows, totals)
        await self.cache.set(key, text)
        return text

    async def user_report(self, chat_id: int, user_id: int, stats_range: StatsRange) -> str:
        key = user_key(chat_id, user_id, stats_range)
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"[STATS] cache hit {key}")
            return cached

        since = self._since(stats_range)
        count = await self.queries.user_message_count(chat_id, user_id, since)
        totals = await self.queries.chat_totals(chat_id, since)
        rank = await self.queries.user_rank(chat_id, user_id, since)

        text = render_user_report(stats_range, count, rank, totals)
        await self.cache.set(key, text)
        return text

    async def rank_report(self, chat_id: int, user_id: int) -> str:
        """All-time place of the user in the chat (not cached)."""
        rank = await self.queries.user_rank(chat_id, user_id)
        count = await self.queries.user_message_count(chat_id, user_id)
        return f"Ваше место в чате: {rank_text(rank)}\nСообщений: {count}"
