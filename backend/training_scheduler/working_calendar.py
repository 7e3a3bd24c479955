"""Working-day arithmetic over weekends and the fixed holiday calendar.

A working day is any weekday that is neither one of the fixed month-day
holidays nor the last Monday of August. All helpers accept ``date`` and
``datetime`` values; a ``datetime`` keeps its time-of-day while advancing.
"""

from __future__ import annotations

import math
from datetime import date, timedelta
from typing import FrozenSet, Optional, TypeVar

from .cache import HolidayCache
from .constants import FIXED_HOLIDAYS_MMDD

D = TypeVar("D", bound=date)

_ONE_DAY = timedelta(days=1)


def date_key(value: date) -> str:
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def is_weekend(value: date) -> bool:
    return value.weekday() >= 5


def last_monday_of_august(year: int) -> date:
    candidate = date(year, 8, 31)
    while candidate.weekday() != 0:
        candidate -= _ONE_DAY
    return candidate


def holiday_keys(start_year: int, end_year: int) -> FrozenSet[str]:
    """Return ``YYYY-MM-DD`` keys for every holiday in the inclusive year range."""
    keys = set()
    for year in range(start_year, end_year + 1):
        for month_day in FIXED_HOLIDAYS_MMDD:
            keys.add(f"{year:04d}-{month_day}")
        keys.add(date_key(last_monday_of_august(year)))
    return frozenset(keys)


def holiday_window(start: date, span_days: float) -> tuple[int, int]:
    """Year range covering ``span_days`` from ``start`` plus a one-year buffer."""
    span = max(1, math.ceil(span_days)) if span_days and span_days > 0 else 1
    return start.year, start.year + math.ceil(span / 365) + 1


class WorkingCalendar:
    """Calendar oracle used by the scheduler and the cascade recalculator."""

    def __init__(self, cache: Optional[HolidayCache] = None) -> None:
        self._cache = cache if cache is not None else HolidayCache()

    @property
    def cache(self) -> HolidayCache:
        return self._cache

    def holidays(self, start_year: int, end_year: int) -> FrozenSet[str]:
        return self._cache.get_or_build(start_year, end_year, holiday_keys)

    def is_holiday(self, value: date) -> bool:
        return date_key(value) in self.holidays(value.year, value.year)

    def is_working_day(self, value: date) -> bool:
        return not is_weekend(value) and not self.is_holiday(value)

    def next_working_day(self, value: D) -> D:
        """Round forward: ``value`` itself when it is a working day."""
        return self.add_working_days(value, 1)

    def following_working_day(self, value: D) -> D:
        """First working day strictly after ``value``."""
        return self.add_working_days(value + _ONE_DAY, 1)

    def add_working_days(self, start: D, total_days: float) -> D:
        """Advance to the ``total_days``-th working day, counting ``start`` as day one."""
        if not total_days or not math.isfinite(total_days) or total_days <= 0:
            return start
        remaining = math.ceil(total_days)
        first_year, last_year = holiday_window(start, remaining)
        holidays = self.holidays(first_year, last_year)
        cursor = start
        while True:
            if cursor.year > last_year:
                # Widen rather than run past the precomputed holidays.
                last_year = cursor.year + 1
                holidays = self.holidays(first_year, last_year)
            if not is_weekend(cursor) and date_key(cursor) not in holidays:
                remaining -= 1
                if remaining == 0:
                    return cursor
            cursor = cursor + _ONE_DAY


working_calendar = WorkingCalendar()

__all__ = [
    "WorkingCalendar",
    "date_key",
    "holiday_keys",
    "holiday_window",
    "is_weekend",
    "last_monday_of_august",
    "working_calendar",
]
