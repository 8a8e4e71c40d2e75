"""Система логирования для бота статистики."""

import logging
import logging.handlers
import pathlib
import sys

from chatstats.config import settings

# Флаг для предотвращения повторной инициализации
_logging_initialized = False

# Цвета для консоли (ANSI)
COLORS = {
    "DEBUG": "\033[36m",     # Cyan
    "INFO": "\033[32m",      # Green
    "WARNING": "\033[33m",   # Yellow
    "ERROR": "\033[31m",     # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}


class ColoredFormatter(logging.Formatter):
    """Форматтер с цветным выводом для консоли."""

    def format(self, record: logging.LogRecord) -> str:
        levelname = record.levelname
        if levelname in COLORS:
            record.levelname = f"{COLORS[levelname]}{levelname}{COLORS['RESET']}"
        result = super().format(record)
        record.levelname = levelname
        return result


class ContextFilter(logging.Filter):
    """Добавляет short_name (последний сегмент имени логгера) к записи."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name:
            record.short_name = record.name.rsplit(".", 1)[-1]
        else:
            record.short_name = "root"
        return True


def _rotating_handler(
    path: pathlib.Path,
    level: int,
    formatter: logging.Formatter,
    max_bytes: int,
    backup_count: int,
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    return handler


def setup_logging(log_dir: str | None = None) -> None:
    """Инициализировать систему логирования."""
    global _logging_initialized

    if _logging_initialized:
        return
    _logging_initialized = True

    directory = pathlib.Path(log_dir or settings.log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, settings.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(logging.DEBUG)

    file_format = logging.Formatter(
        "[%(asctime)s] %(levelname)-8s [%(short_name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    error_format = logging.Formatter(
        "[%(asctime)s] %(levelname)-8s [%(name)s:%(lineno)d] %(message)s\n"
        "    File: %(pathname)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    # 1. Основной лог (INFO+), 2. только ошибки, 3. debug
    root_logger.addHandler(
        _rotating_handler(directory / "chatstats.log", level, file_format, 10 * 1024 * 1024, 5)
    )
    root_logger.addHandler(
        _rotating_handler(directory / "errors.log", logging.ERROR, error_format, 5 * 1024 * 1024, 10)
    )
    root_logger.addHandler(
        _rotating_handler(directory / "debug.log", logging.DEBUG, file_format, 20 * 1024 * 1024, 3)
    )

    # 4. Консоль
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(
        "[%(asctime)s] %(levelname)-8s [%(short_name)s] %(message)s",
        datefmt="%H:%M:%S",
    ))
    console_handler.addFilter(ContextFilter())
    root_logger.addHandler(console_handler)

    # Уменьшаем шум от библиотек
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("aiogram").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)

    logging.info(f"Логирование: level={settings.log_level} | dir={directory.absolute()}")
