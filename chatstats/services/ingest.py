"""
Message ingest: persist a chat message and drop the chat's cached reports.

`MessageIngest.record` runs three steps in order, each in its own
transaction: upsert the author, insert the message, invalidate the cache.
A failed step is logged and stops the steps that depend on it; steps that
already committed stay committed. `record` never raises, it returns an
`IngestResult` describing how far it got.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite

from chatstats.database.models import Message, User
from chatstats.database.session import Database
from chatstats.services.stats_cache import StatsCache

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _dialect_insert(dialect_name: str):
    """INSERT construct with ON CONFLICT support for the engine's dialect."""
    try:
        return _UPSERT_DIALECTS[dialect_name]
    except KeyError:
        raise RuntimeError(f"Upsert is not supported for dialect {dialect_name!r}") from None


@dataclass(frozen=True)
class UserIdentity:
    """Author of a message as seen on the wire."""
    id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class IngestStep(str, Enum):
    UPSERT_USER = "upsert_user"
    INSERT_MESSAGE = "insert_message"
    INVALIDATE_CACHE = "invalidate_cache"


@dataclass
class IngestResult:
    user_saved: bool = False
    message_saved: bool = False
    cache_invalidated: bool = False
    failed_step: Optional[IngestStep] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None


class MessageIngest:
    def __init__(self, database: Database, cache: StatsCache):
        self._db = database
        self._cache = cache

    async def upsert_user(self, author: UserIdentity) -> None:
        """Insert the user or overwrite handle and names with the latest values."""
        insert = _dialect_insert(self._db.engine.dialect.name)
        stmt = insert(User).values(
            id=author.id,
            username=author.username,
            first_name=author.first_name,
            last_name=author.last_name,
        )
        # a concurrent insert of the same id becomes an update
        stmt = stmt.on_conflict_do_update(
            index_elements=[User.id],
            set_={
                "username": stmt.excluded.username,
                "first_name": stmt.excluded.first_name,
                "last_name": stmt.excluded.last_name,
            },
        )

        async with self._db.session() as session:
            if author.username:
                # handle moved to another account: release it from the old owner
                await session.execute(
                    update(User)
                    .where(User.username == author.username, User.id != author.id)
                    .values(username=None)
                )
            await session.execute(stmt)
            await session.commit()

    async def insert_message(self, user_id: int, chat_id: int, text: str) -> None:
        async with self._db.session() as session:
            session.add(Message(user_id=user_id, chat_id=chat_id, text=text))
            await session.commit()

    async def record(self, author: UserIdentity, chat_id: int, text: str) -> IngestResult:
        result = IngestResult()

        try:
            await self.upsert_user(author)
            result.user_saved = True
        except Exception as e:
            return self._failed(result, IngestStep.UPSERT_USER, e, author, chat_id)

        try:
            await self.insert_message(author.id, chat_id, text)
            result.message_saved = True
        except Exception as e:
            return self._failed(result, IngestStep.INSERT_MESSAGE, e, author, chat_id)

        if await self._cache.invalidate_chat(chat_id):
            result.cache_invalidated = True
        else:
            result.failed_step = IngestStep.INVALIDATE_CACHE
            result.error = "cache invalidation failed, stale reports live until TTL"
            logger.warning(f"[INGEST] chat={chat_id} | user={author.id} | {result.error}")

        return result

    @staticmethod
    def _failed(
        result: IngestResult,
        step: IngestStep,
        error: Exception,
        author: UserIdentity,
        chat_id: int,
    ) -> IngestResult:
        result.failed_step = step
        result.error = f"{type(error).__name__}: {error}"
        logger.error(
            f"[INGEST FAIL] step={step.value} | chat={chat_id} | user={author.id} | "
            f"error={result.error}"
        )
        return result
