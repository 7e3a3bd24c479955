"""Conversion of declared topic durations into working hours and days."""

from __future__ import annotations

import math
from typing import Any, Iterable, Optional, Tuple

from .constants import WORK_HOURS_PER_DAY
from .models import Course, Topic


def _as_number(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def to_working_hours(time_allocated: Any, time_unit: Optional[str]) -> float:
    """Hours of work for a declared duration; invalid or non-positive input is 0."""
    amount = _as_number(time_allocated)
    if amount <= 0:
        return 0.0
    if time_unit == "days":
        return amount * WORK_HOURS_PER_DAY
    return amount


def to_working_days(total_hours: Any) -> int:
    """Whole working days needed for ``total_hours``; any remainder takes a full day."""
    hours = _as_number(total_hours)
    if hours <= 0:
        return 0
    return math.ceil(hours / WORK_HOURS_PER_DAY)


def topic_hours(topic: Topic) -> float:
    return to_working_hours(topic.time_allocated, topic.time_unit)


def course_totals(topics: Iterable[Topic]) -> Tuple[float, int]:
    total_hours = sum(topic_hours(topic) for topic in topics)
    return total_hours, to_working_days(total_hours)


def learning_path_totals(courses: Iterable[Course]) -> Tuple[float, int]:
    total_hours = sum(_as_number(course.total_hours) for course in courses)
    return total_hours, to_working_days(total_hours)


__all__ = [
    "course_totals",
    "learning_path_totals",
    "to_working_days",
    "to_working_hours",
    "topic_hours",
]
