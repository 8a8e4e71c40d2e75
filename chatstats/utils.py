"""Utility functions for the bot."""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def display_name(
    username: Optional[str],
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
) -> str:
    """
    Человекочитаемое имя пользователя.

    @username, если есть; иначе "Имя Фамилия"; иначе "Unknown".
    """
    if username:
        return f"@{username}"
    full = f"{first_name or ''} {last_name or ''}".strip()
    return full or "Unknown"
