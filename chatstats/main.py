import asyncio
import logging
import sys
from aiogram import Bot, Dispatcher
from aiogram.enums import ParseMode
from aiogram.client.default import DefaultBotProperties
from aiogram.fsm.storage.memory import MemoryStorage

from chatstats.config import Settings, settings
from chatstats.logger import setup_logging
from chatstats.database.session import Database
from chatstats.handlers.analyze import router as analyze_router
from chatstats.handlers.statistics import router as statistics_router
from chatstats.middleware.logging import MessageIngestMiddleware
from chatstats.services.aggregation import StatsQueries
from chatstats.services.analyzer import GeminiAnalyzer
from chatstats.services.ingest import MessageIngest
from chatstats.services.redis_client import RedisClient
from chatstats.services.statistics import StatisticsService
from chatstats.services.stats_cache import StatsCache

# Логгер будет инициализирован в main()
logger = logging.getLogger(__name__)


class Services:
    """Процессные клиенты: создаются при старте, закрываются при остановке."""

    def __init__(self, config: Settings):
        self.config = config
        self.database = Database(config.database_url)
        self.redis = RedisClient(config)
        self.cache = StatsCache(self.redis, config.cache_ttl_seconds)
        self.stats = StatisticsService(StatsQueries(self.database), self.cache)
        self.ingest = MessageIngest(self.database, self.cache)
        self.analyzer = GeminiAnalyzer(config)

    async def start(self):
        logger.info("Ожидание базы данных...")
        await self.database.wait_until_ready(
            retries=self.config.db_connect_retries,
            delay_ms=self.config.db_connect_delay_ms,
        )
        await self.database.create_tables()
        logger.info("База данных инициализирована")

        logger.info("Подключение к Redis...")
        await self.redis.connect()

    async def stop(self):
        await self.analyzer.close()
        await self.redis.close()
        await self.database.close()


def build_dp(services: Services) -> Dispatcher:
    """Построить диспетчер с обработчиками."""
    dp = Dispatcher(storage=MemoryStorage())
    dp.message.middleware(MessageIngestMiddleware(services.ingest))

    # доступны в хендлерах как аргументы stats_service / analyzer
    dp["stats_service"] = services.stats
    dp["analyzer"] = services.analyzer

    dp.include_routers(
        statistics_router,
        analyze_router,
    )
    return dp


async def main():
    """Главная функция бота."""
    logger.info("=" * 60)
    logger.info("ЗАПУСК БОТА СТАТИСТИКИ")
    logger.info("=" * 60)
    logger.info(f"Redis: {'включен' if settings.redis_enabled else 'выключен'}")
    logger.info(f"TTL кэша: {settings.cache_ttl_minutes} мин")
    logger.info(f"Уровень логов: {settings.log_level}")

    if not settings.bot_token:
        logger.error("TELEGRAM_BOT_TOKEN не установлен!")
        raise RuntimeError("TELEGRAM_BOT_TOKEN is not set")

    services = Services(settings)
    try:
        await services.start()
    except Exception as e:
        logger.critical(f"База данных недоступна: {type(e).__name__}: {e}")
        await services.stop()
        raise

    bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    dp = build_dp(services)

    logger.info("=" * 60)
    logger.info("БОТ ГОТОВ К РАБОТЕ")
    logger.info("=" * 60)
    try:
        bot_info = await bot.get_me()
        logger.info(f"Бот: @{bot_info.username} (id: {bot_info.id})")
        logger.info("Начинаем polling...")

        await dp.start_polling(bot)
    except Exception as e:
        logger.error(f"Критическая ошибка: {type(e).__name__}: {e}")
        raise
    finally:
        logger.info("=" * 60)
        logger.info("ОСТАНОВКА БОТА")
        logger.info("=" * 60)
        await services.stop()
        await bot.session.close()
        logger.info("Сессия бота закрыта")


def run():
    setup_logging()
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Бот остановлен пользователем (Ctrl+C)")
    except Exception:
        sys.exit(1)


if __name__ == "__main__":
    run()
