"""Time windows for chat statistics."""

import calendar
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from chatstats.config import settings
from chatstats.utils import utc_now


class StatsRange(str, Enum):
    ALL = "all"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"

    @property
    def label(self) -> str:
        return RANGE_LABELS[self]


RANGE_LABELS = {
    StatsRange.ALL: "за все время",
    StatsRange.DAY: "за сегодня",
    StatsRange.WEEK: "за неделю",
    StatsRange.MONTH: "за месяц",
}

# Order of the buttons offered under every report
OFFERED_RANGES = (StatsRange.DAY, StatsRange.WEEK, StatsRange.MONTH, StatsRange.ALL)


def _minus_one_month(moment: datetime) -> datetime:
    year, month = (moment.year, moment.month - 1) if moment.month > 1 else (moment.year - 1, 12)
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def range_start(
    stats_range: StatsRange,
    now: Optional[datetime] = None,
    tz: Optional[str] = None,
) -> Optional[datetime]:
    """
    Lower bound of a statistics window, as an aware UTC datetime.

    `day` starts at local midnight in the configured timezone, `week` is
    seven days back, `month` is one calendar month back (day clamped to the
    length of the previous month). `all` has no lower bound and returns None.
    """
    if stats_range is StatsRange.ALL:
        return None

    current = (now or utc_now()).astimezone(timezone.utc)
    if stats_range is StatsRange.WEEK:
        return current - timedelta(days=7)

    local_now = current.astimezone(ZoneInfo(tz or settings.timezone))
    if stats_range is StatsRange.DAY:
        start = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    else:
        start = _minus_one_month(local_now)

    return start.astimezone(timezone.utc)
