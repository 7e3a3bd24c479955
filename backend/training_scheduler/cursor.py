"""Immutable "next available working slot" value threaded through scheduling."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date
from typing import Tuple

from .constants import CURSOR_EPSILON, WORK_HOURS_PER_DAY
from .working_calendar import WorkingCalendar


@dataclass(frozen=True)
class WorkCursor:
    date: date
    remaining_hours: float = WORK_HOURS_PER_DAY

    @classmethod
    def start_of(cls, value: date, calendar: WorkingCalendar) -> "WorkCursor":
        return cls(date=value, remaining_hours=WORK_HOURS_PER_DAY).normalized(calendar)

    @property
    def exhausted(self) -> bool:
        return self.remaining_hours <= CURSOR_EPSILON

    def normalized(self, calendar: WorkingCalendar) -> "WorkCursor":
        """Move onto a working day that still has hours left."""
        working_date = calendar.next_working_day(self.date)
        remaining = self.remaining_hours
        if working_date != self.date:
            remaining = WORK_HOURS_PER_DAY
        if remaining <= CURSOR_EPSILON:
            working_date = calendar.following_working_day(working_date)
            remaining = WORK_HOURS_PER_DAY
        if working_date == self.date and remaining == self.remaining_hours:
            return self
        return WorkCursor(date=working_date, remaining_hours=remaining)

    def later(self, other: "WorkCursor") -> "WorkCursor":
        """The cursor further along in time; on the same day, the one with fewer hours left."""
        if self.date > other.date:
            return self
        if other.date > self.date:
            return other
        return self if self.remaining_hours <= other.remaining_hours else other

    def allocate(self, hours: float, calendar: WorkingCalendar) -> Tuple[date, "WorkCursor"]:
        """Consume ``hours`` of working time; returns the day the work ends and the new cursor."""
        cursor = self.normalized(calendar)
        to_allocate = max(0.0, hours)
        if to_allocate <= CURSOR_EPSILON:
            return cursor.date, cursor

        current_date = cursor.date
        remaining = cursor.remaining_hours
        while True:
            if remaining <= CURSOR_EPSILON:
                current_date = calendar.following_working_day(current_date)
                remaining = WORK_HOURS_PER_DAY
            chunk = min(remaining, to_allocate)
            remaining -= chunk
            to_allocate -= chunk
            if to_allocate <= CURSOR_EPSILON:
                return current_date, replace(cursor, date=current_date, remaining_hours=remaining)


__all__ = ["WorkCursor"]
