"""Бот статистики групповых чатов."""

__version__ = "1.0.0"
