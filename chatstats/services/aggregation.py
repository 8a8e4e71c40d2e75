"""
Read-only aggregation queries over stored messages.

Every query is scoped to one chat and an optional lower bound on
`created_at`. Orderings by message count always use ascending user id as
the secondary key so that ties come back in the same order every time.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import Select, desc, func, select

from chatstats.database.models import Message, User
from chatstats.database.session import Database

logger = logging.getLogger(__name__)

TOP_USERS_LIMIT = 10


@dataclass(frozen=True)
class UserCount:
    """One leaderboard row."""
    user_id: int
    username: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    count: int


@dataclass(frozen=True)
class ChatTotals:
    messages: int
    users: int


@dataclass(frozen=True)
class UserRank:
    """Rank is None when the user sent nothing in the window."""
    rank: Optional[int]
    total_users: int


def _in_window(query: Select, chat_id: int, since: Optional[datetime]) -> Select:
    query = query.where(Message.chat_id == chat_id)
    if since is not None:
        query = query.where(Message.created_at >= since)
    return query


class StatsQueries:
    """Aggregations for chat statistics, backed by a `Database`."""

    def __init__(self, database: Database):
        self._db = database

    async def top_users(self, chat_id: int, since: Optional[datetime] = None) -> list[UserCount]:
        """Top senders of the chat, at most 10, descending by count."""
        msg_count = func.count(Message.id).label("msg_count")
        query = _in_window(
            select(User.id, User.username, User.first_name, User.last_name, msg_count)
            .select_from(Message)
            .join(User, User.id == Message.user_id),
            chat_id,
            since,
        )
        query = (
            query.group_by(User.id, User.username, User.first_name, User.last_name)
            .order_by(desc("msg_count"), User.id)
            .limit(TOP_USERS_LIMIT)
        )
        async with self._db.session() as session:
            result = await session.execute(query)
            return [
                UserCount(
                    user_id=row.id,
                    username=row.username,
                    first_name=row.first_name,
                    last_name=row.last_name,
                    count=row.msg_count,
                )
                for row in result.all()
            ]

    async def chat_totals(self, chat_id: int, since: Optional[datetime] = None) -> ChatTotals:
        query = _in_window(
            select(
                func.count(Message.id),
                func.count(func.distinct(Message.user_id)),
            ),
            chat_id,
            since,
        )
        async with self._db.session() as session:
            row = (await session.execute(query)).one()
            return ChatTotals(messages=row[0] or 0, users=row[1] or 0)

    async def messages_by_user(
        self,
        user_id: int,
        limit: int = 100,
        chat_id: Optional[int] = None,
    ) -> list[str]:
        """Message texts of a user, most recent first."""
        query = select(Message.text).where(Message.user_id == user_id)
        if chat_id is not None:
            query = query.where(Message.chat_id == chat_id)
        query = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
        async with self._db.session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def user_message_count(
        self,
        chat_id: int,
        user_id: int,
        since: Optional[datetime] = None,
    ) -> int:
        query = _in_window(
            select(func.count(Message.id)).where(Message.user_id == user_id),
            chat_id,
            since,
        )
        async with self._db.session() as session:
            return (await session.execute(query)).scalar() or 0

    async def user_rank(
        self,
        chat_id: int,
        user_id: int,
        since: Optional[datetime] = None,
    ) -> UserRank:
        """
        1-based position of the user among all senders of the window.

        Scans the full ordering, not the capped leaderboard: rank and
        total_users are exact even for chats with more than 10 senders.
        """
        msg_count = func.count(Message.id).label("msg_count")
        query = _in_window(select(Message.user_id, msg_count), chat_id, since)
        query = query.group_by(Message.user_id).order_by(desc("msg_count"), Message.user_id)
        async with self._db.session() as session:
            ordered = [row.user_id for row in (await session.execute(query)).all()]

        rank = ordered.index(user_id) + 1 if user_id in ordered else None
        return UserRank(rank=rank, total_users=len(ordered))

    async def get_user_by_username(self, username: str) -> Optional[User]:
        """Look up a user by handle; a leading @ is ignored."""
        handle = username.lstrip("@")
        if not handle:
            return None
        async with self._db.session() as session:
            result = await session.execute(select(User).where(User.username == handle))
            return result.scalars().first()
