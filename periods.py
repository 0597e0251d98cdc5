import calendar
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings
from errors import ValidationError

MONTH_PATTERN = re.compile(r"^\d{4}-\d{2}$")


class TimeRange(str, Enum):
    week = "week"
    month = "month"
    all = "all"


@dataclass(frozen=True)
class Period:
    """Inclusive date range; ``start`` is None for an unbounded period."""

    slug: str
    start: Optional[date]
    end: Optional[date]

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


@dataclass(frozen=True)
class MonthWindow:
    """Half-open ``[start, end)`` window covering one calendar month."""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day < self.end


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def next_month_start(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        return first.replace(year=first.year + 1, month=1)
    return first.replace(month=first.month + 1)


def month_window(d: date) -> MonthWindow:
    return MonthWindow(month_start(d), next_month_start(d))


def subtract_months(d: date, count: int) -> date:
    month_index = (d.year * 12) + (d.month - 1) - count
    year = month_index // 12
    month = (month_index % 12) + 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def parse_month(value: str) -> date:
    """Turn ``YYYY-MM`` into the first day of that month."""
    if not isinstance(value, str) or not MONTH_PATTERN.match(value):
        raise ValidationError("Month must be in YYYY-MM format")
    year, month = (int(part) for part in value.split("-", 1))
    if not 1 <= month <= 12 or year < 1:
        raise ValidationError("Month must be in YYYY-MM format")
    return date(year, month, 1)


def format_month(d: date) -> str:
    return f"{d.year:04d}-{d.month:02d}"


def resolve_time_range(
    time_range: Union[TimeRange, str, None],
    *,
    now: Union[date, datetime, None] = None,
) -> Period:
    if isinstance(now, datetime):
        today = now.date()
    else:
        today = now or local_today()
    try:
        slug = TimeRange(time_range or TimeRange.month)
    except ValueError as exc:
        raise ValidationError("Range must be one of: week, month, all") from exc

    if slug == TimeRange.all:
        return Period(slug.value, None, None)
    if slug == TimeRange.week:
        return Period(slug.value, today - timedelta(days=7), today)
    return Period(slug.value, subtract_months(today, 1), today)
