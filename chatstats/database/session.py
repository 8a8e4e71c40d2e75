import asyncio
import logging
import pathlib
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncEngine, AsyncSession
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Database:
    """
    Владелец AsyncEngine и фабрики сессий.

    Создаётся явно при старте и закрывается при остановке:

        db = Database(settings.database_url)
        await db.wait_until_ready(retries=10, delay_ms=2000)
        await db.create_tables()
        async with db.session() as session:
            ...
        await db.close()
    """

    def __init__(self, url: str, echo: bool = False, **engine_kwargs: Any):
        self.url = url
        self._ensure_data_dir()
        self._engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        self._sessionmaker: async_sessionmaker[AsyncSession] = async_sessionmaker(
            self._engine, expire_on_commit=False
        )

    def _ensure_data_dir(self):
        url = make_url(self.url)
        if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
            return
        pathlib.Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    def session(self) -> AsyncSession:
        """Контекстный менеджер для получения сессии БД.

        Использование:
            async with db.session() as session:
                ...
        """
        return self._sessionmaker()

    async def ping(self) -> None:
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def wait_until_ready(self, retries: int = 10, delay_ms: int = 2000) -> None:
        """
        Дождаться доступности БД.

        Делает до `retries` попыток `SELECT 1` с паузой `delay_ms` между ними.
        Если все попытки провалились, пробрасывает последнюю ошибку.
        """
        last_error: Exception | None = None
        for attempt in range(1, retries + 1):
            try:
                await self.ping()
                logger.info(f"Database is ready (attempt {attempt}/{retries})")
                return
            except Exception as e:
                last_error = e
                logger.warning(f"Database not ready (attempt {attempt}/{retries}): {e}")
                if attempt < retries:
                    await asyncio.sleep(delay_ms / 1000)
        if last_error is None:
            raise RuntimeError("Database readiness probe ran zero attempts")
        raise last_error

    async def create_tables(self) -> None:
        # import models so they register on Base.metadata
        from . import models  # noqa: F401
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()
        logger.info("Database engine disposed")
