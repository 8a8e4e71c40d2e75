import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class Settings:
    """Конфигурация приложения из переменных окружения."""

    # Telegram
    bot_token: str = os.getenv("TELEGRAM_BOT_TOKEN") or os.getenv("BOT_TOKEN", "")

    # Database
    database_url: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./data/chatstats.db"
    )
    # Startup probe: N attempts, D milliseconds apart
    db_connect_retries: int = int(os.getenv("DB_CONNECT_RETRIES", "10"))
    db_connect_delay_ms: int = int(os.getenv("DB_CONNECT_DELAY_MS", "2000"))

    # Redis
    redis_enabled: bool = _env_bool("REDIS_ENABLED", "true")
    redis_host: str = os.getenv("REDIS_HOST", "localhost")
    redis_port: int = int(os.getenv("REDIS_PORT", "6379"))
    redis_db: int = int(os.getenv("REDIS_DB", "0"))
    redis_password: str = os.getenv("REDIS_PASSWORD", "")

    # Кэш статистики
    cache_ttl_minutes: int = int(os.getenv("CACHE_TTL_MINUTES", "20"))

    # Gemini
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    gemini_base_url: str = os.getenv(
        "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
    )
    gemini_timeout: int = int(os.getenv("GEMINI_TIMEOUT", "60"))
    analyze_message_limit: int = int(os.getenv("ANALYZE_MESSAGE_LIMIT", "100"))

    # Timezone
    timezone: str = os.getenv("TIMEZONE", "Europe/Moscow")

    # Logging
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir: str = os.getenv("LOG_DIR", "logs")

    @property
    def cache_ttl_seconds(self) -> int:
        return self.cache_ttl_minutes * 60


settings = Settings()
