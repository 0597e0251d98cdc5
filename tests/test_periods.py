from datetime import date, datetime

import pytest

from errors import ValidationError
from periods import (
    month_window,
    next_month_start,
    parse_month,
    resolve_time_range,
    subtract_months,
)


@pytest.mark.parametrize(
    "day, expected",
    [
        (date(2023, 2, 1), date(2023, 3, 1)),
        (date(2024, 2, 1), date(2024, 3, 1)),
        (date(2024, 4, 1), date(2024, 5, 1)),
        (date(2024, 1, 1), date(2024, 2, 1)),
        (date(2024, 12, 1), date(2025, 1, 1)),
        (date(2024, 12, 31), date(2025, 1, 1)),
    ],
)
def test_next_month_start_uses_calendar_months(day: date, expected: date) -> None:
    assert next_month_start(day) == expected


def test_month_window_is_half_open_for_every_month() -> None:
    for year in (2023, 2024):
        for month in range(1, 13):
            window = month_window(date(year, month, 1))
            assert window.start == date(year, month, 1)
            assert window.end.day == 1
            assert window.contains(window.start)
            assert not window.contains(window.end)
            assert (window.end - window.start).days in (28, 29, 30, 31)


def test_parse_month_normalizes_to_first_day() -> None:
    assert parse_month("2024-03") == date(2024, 3, 1)
    assert parse_month("1999-12") == date(1999, 12, 1)


@pytest.mark.parametrize("value", ["2024-3", "2024-13", "2024-00", "24-03", "2024/03", ""])
def test_parse_month_rejects_malformed_values(value: str) -> None:
    with pytest.raises(ValidationError, match="YYYY-MM"):
        parse_month(value)


def test_subtract_months_clamps_to_shorter_month() -> None:
    assert subtract_months(date(2024, 3, 31), 1) == date(2024, 2, 29)
    assert subtract_months(date(2023, 3, 31), 1) == date(2023, 2, 28)
    assert subtract_months(date(2024, 1, 15), 1) == date(2023, 12, 15)


def test_resolve_time_range_bounds() -> None:
    now = date(2024, 3, 15)

    week = resolve_time_range("week", now=now)
    assert (week.start, week.end) == (date(2024, 3, 8), now)

    month = resolve_time_range("month", now=datetime(2024, 3, 15, 18, 30))
    assert (month.start, month.end) == (date(2024, 2, 15), now)

    everything = resolve_time_range("all", now=now)
    assert everything.contains(date(1970, 1, 1))
    assert everything.contains(date(2100, 1, 1))


def test_resolve_time_range_rejects_unknown_slug() -> None:
    with pytest.raises(ValidationError):
        resolve_time_range("year", now=date(2024, 3, 15))
