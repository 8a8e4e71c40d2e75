"""Tests for the statistics facade (cache-or-compute)."""

from datetime import datetime, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

from chatstats.services.aggregation import ChatTotals, UserCount, UserRank
from chatstats.services.ranges import StatsRange
from chatstats.services.statistics import (
    StatisticsService,
    no_data_text,
    render_leaderboard,
    render_user_report,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def queries():
    q = MagicMock()
    q.top_users = AsyncMock(return_value=[
        UserCount(user_id=1, username="john", first_name="John", last_name="D", count=3),
        UserCount(user_id=2, username=None, first_name="Ann", last_name=None, count=1),
    ])
    q.chat_totals = AsyncMock(return_value=ChatTotals(messages=4, users=2))
    q.user_message_count = AsyncMock(return_value=1)
    q.user_rank = AsyncMock(return_value=UserRank(rank=2, total_users=2))
    return q


@pytest.fixture
def cache():
    c = MagicMock()
    c.get = AsyncMock(return_value=None)
    c.set = AsyncMock(return_value=True)
    return c


@pytest.fixture
def service(queries, cache):
    return StatisticsService(queries, cache, clock=lambda: NOW)


@pytest.mark.asyncio
async def test_leaderboard_hit_is_returned_verbatim(service, queries, cache):
    cache.get.return_value = "cached text"

    assert await service.leaderboard_report(1, StatsRange.ALL) == "cached text"
    cache.get.assert_awaited_once_with("stats:top:1:all")
    queries.top_users.assert_not_awaited()
    cache.set.assert_not_awaited()


@pytest.mark.asyncio
async def test_leaderboard_miss_computes_and_stores(service, queries, cache):
    text = await service.leaderboard_report(1, StatsRange.ALL)

    assert "1. @john - 3" in text
    assert "2. Ann - 1" in text
    assert "Всего: 4 сообщений от 2 пользователей" in text
    queries.top_users.assert_awaited_once_with(1, None)
    cache.set.assert_awaited_once_with("stats:top:1:all", text)


@pytest.mark.asyncio
async def test_leaderboard_passes_window_start(service, queries):
    await service.leaderboard_report(1, StatsRange.WEEK)

    since = queries.top_users.await_args.args[1]
    assert since == datetime(2026, 3, 8, 12, 0, tzinfo=timezone.utc)
    assert queries.chat_totals.await_args.args == (1, since)


@pytest.mark.asyncio
async def test_empty_leaderboard_is_not_cached(service, queries, cache):
    queries.top_users.return_value = []

    text = await service.leaderboard_report(1, StatsRange.DAY)

    assert text == no_data_text(StatsRange.DAY)
    cache.set.assert_not_awaited()


@pytest.mark.asyncio
async def test_user_report_miss_computes_and_stores(service, queries, cache):
    text = await service.user_report(1, 2, StatsRange.ALL)

    assert "Сообщений: 1" in text
    assert "Место в чате: 2 из 2" in text
    assert "Всего сообщений в чате: 4" in text
    cache.get.assert_awaited_once_with("stats:user:1:2:all")
    cache.set.assert_awaited_once_with("stats:user:1:2:all", text)


@pytest.mark.asyncio
async def test_user_report_hit(service, queries, cache):
    cache.get.return_value = "cached"

    assert await service.user_report(1, 2, StatsRange.MONTH) == "cached"
    queries.user_rank.assert_not_awaited()


@pytest.mark.asyncio
async def test_store_error_propagates(service, queries, cache):
    queries.top_users.side_effect = RuntimeError("db down")

    with pytest.raises(RuntimeError):
        await service.leaderboard_report(1, StatsRange.ALL)
    cache.set.assert_not_awaited()


@pytest.mark.asyncio
async def test_failed_cache_write_still_returns_report(service, cache):
    cache.set.return_value = False

    text = await service.user_report(1, 2, StatsRange.ALL)
    assert "Сообщений: 1" in text


@pytest.mark.asyncio
async def test_rank_report_without_messages(service, queries):
    queries.user_rank.return_value = UserRank(rank=None, total_users=3)
    queries.user_message_count.return_value = 0

    text = await service.rank_report(1, 5)

    assert text == "Ваше место в чате: нет в статистике\nСообщений: 0"
    queries.user_rank.assert_awaited_once_with(1, 5)


def test_render_escapes_names():
    rows = [UserCount(user_id=1, username=None, first_name="<b>x</b>", last_name=None, count=1)]
    text = render_leaderboard(StatsRange.ALL, rows, ChatTotals(messages=1, users=1))
    assert "&lt;b&gt;x&lt;/b&gt;" in text


def test_render_user_report_unranked():
    text = render_user_report(StatsRange.WEEK, 0, UserRank(rank=None, total_users=4), ChatTotals(7, 4))
    assert "за неделю" in text
    assert "Место в чате: нет в статистике" in text
