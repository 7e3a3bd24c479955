from __future__ import annotations

import math

import pytest

from training_scheduler.durations import (
    course_totals,
    learning_path_totals,
    to_working_days,
    to_working_hours,
)
from training_scheduler.models import Course, Topic


@pytest.mark.parametrize(
    ("amount", "unit", "expected"),
    [
        (2, "days", 16.0),
        (3, "hours", 3.0),
        ("1.5", "days", 12.0),
        (5, None, 5.0),
        (None, "hours", 0.0),
        ("abc", "days", 0.0),
        (-4, "hours", 0.0),
        (math.nan, "days", 0.0),
        (math.inf, "hours", 0.0),
    ],
)
def test_to_working_hours(amount, unit, expected) -> None:
    assert to_working_hours(amount, unit) == expected


def test_to_working_days_rounds_up_partial_days() -> None:
    assert to_working_days(20) == 3
    assert to_working_days(8) == 1
    assert to_working_days(8.5) == 2
    assert to_working_days(0) == 0
    assert to_working_days(-2) == 0
    assert to_working_days(None) == 0


def test_unknown_time_unit_is_treated_as_hours() -> None:
    topic = Topic(id="t1", time_allocated=6, time_unit="weeks")
    assert topic.time_unit == "hours"


def test_course_totals_identity() -> None:
    topics = [
        Topic(id="a", time_allocated=2, time_unit="days"),
        Topic(id="b", time_allocated=4, time_unit="hours"),
        Topic(id="c", time_allocated=0, time_unit="hours"),
    ]
    total_hours, total_days = course_totals(topics)
    assert total_hours == 20.0
    assert total_days == math.ceil(total_hours / 8) == 3


def test_learning_path_totals_sum_course_hours() -> None:
    courses = [
        Course(id="c1", total_hours=20),
        Course(id="c2", total_hours=12.5),
    ]
    assert learning_path_totals(courses) == (32.5, 5)
    assert learning_path_totals([]) == (0, 0)
