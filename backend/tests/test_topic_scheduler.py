"""Tests for the group-level topological scheduler."""

from __future__ import annotations

from datetime import date, datetime
from typing import Mapping, Optional, Sequence

import pytest

from training_scheduler import telemetry
from training_scheduler.errors import CyclicDependencyError
from training_scheduler.models import Topic
from training_scheduler.relations import (
    effective_corequisites,
    effective_prerequisites,
    normalize_relation_map,
)
from training_scheduler.topic_scheduler import CourseSchedule, TopologicalScheduler
from training_scheduler.working_calendar import WorkingCalendar

MONDAY = date(2024, 3, 4)
TUESDAY = date(2024, 3, 5)
WEDNESDAY = date(2024, 3, 6)


def _topic(topic_id: str, amount: float, unit: str = "hours") -> Topic:
    return Topic(id=topic_id, title=topic_id.upper(), time_allocated=amount, time_unit=unit)


def _schedule(
    topics: Sequence[Topic],
    start: Optional[date],
    prerequisites: Optional[Mapping[str, list[str]]] = None,
    corequisites: Optional[Mapping[str, list[str]]] = None,
    **kwargs,
) -> CourseSchedule:
    ids = [topic.id for topic in topics]
    keep = set(ids)
    coreqs = effective_corequisites(ids, normalize_relation_map(corequisites or {}, keep))
    prereqs = effective_prerequisites(ids, normalize_relation_map(prerequisites or {}, keep), coreqs)
    scheduler = TopologicalScheduler(WorkingCalendar(), **kwargs)
    return scheduler.build_schedule(start, ids, {topic.id: topic for topic in topics}, prereqs, coreqs)


def _window(schedule: CourseSchedule, topic_id: str) -> tuple[date, date]:
    window = schedule.windows[topic_id]
    return window.start, window.end


def test_two_day_topic_runs_monday_to_tuesday() -> None:
    schedule = _schedule([_topic("a", 2, "days")], MONDAY)
    assert _window(schedule, "a") == (MONDAY, TUESDAY)


def test_dependent_topic_starts_next_working_day() -> None:
    schedule = _schedule([_topic("a", 2, "days"), _topic("b", 1, "days")], MONDAY, {"b": ["a"]})
    assert _window(schedule, "b") == (WEDNESDAY, WEDNESDAY)
    assert schedule.course_start == MONDAY
    assert schedule.course_end == WEDNESDAY


def test_corequisites_share_one_working_day() -> None:
    schedule = _schedule(
        [_topic("a", 3), _topic("b", 2)],
        MONDAY,
        corequisites={"a": ["b"], "b": ["a"]},
    )
    assert _window(schedule, "a") == (MONDAY, MONDAY)
    assert _window(schedule, "b") == (MONDAY, MONDAY)
    assert schedule.group_count == 1


def test_corequisite_group_is_not_split_by_unrelated_topic() -> None:
    topics = [_topic("a", 4), _topic("b", 3), _topic("d", 8), _topic("c", 2)]
    schedule = _schedule(topics, MONDAY, corequisites={"b": ["c"], "c": ["b"]})
    # a: Mon 4h. b+c share a cursor: b Mon, c spills into Tue. d waits for the group.
    assert _window(schedule, "a") == (MONDAY, MONDAY)
    assert _window(schedule, "b") == (MONDAY, MONDAY)
    assert _window(schedule, "c") == (MONDAY, TUESDAY)
    assert _window(schedule, "d") == (TUESDAY, WEDNESDAY)


def test_corequisite_after_a_full_day_starts_on_next_working_day() -> None:
    schedule = _schedule(
        [_topic("a", 8), _topic("b", 4)],
        MONDAY,
        corequisites={"a": ["b"]},
    )
    assert _window(schedule, "a") == (MONDAY, MONDAY)
    # The recorded start is the day b actually begins, never the exhausted Monday.
    assert _window(schedule, "b") == (TUESDAY, TUESDAY)


def test_partial_day_is_carried_into_next_topic() -> None:
    schedule = _schedule([_topic("a", 6), _topic("b", 6)], MONDAY)
    assert _window(schedule, "a") == (MONDAY, MONDAY)
    assert _window(schedule, "b") == (MONDAY, TUESDAY)


def test_topic_scheduled_on_new_year_moves_to_next_working_day() -> None:
    schedule = _schedule([_topic("a", 1, "days")], date(2025, 1, 1))
    assert _window(schedule, "a") == (date(2025, 1, 2), date(2025, 1, 2))


def test_weekend_start_is_rounded_forward() -> None:
    schedule = _schedule([_topic("a", 8)], date(2024, 3, 9))
    assert _window(schedule, "a") == (date(2024, 3, 11), date(2024, 3, 11))


def test_datetime_start_is_preserved() -> None:
    schedule = _schedule([_topic("a", 8), _topic("b", 4)], datetime(2024, 3, 4, 8, 0))
    assert _window(schedule, "b") == (datetime(2024, 3, 5, 8, 0), datetime(2024, 3, 5, 8, 0))


def test_zero_hour_topic_starts_and_ends_same_day() -> None:
    schedule = _schedule([_topic("a", 0), _topic("b", 8)], MONDAY)
    assert _window(schedule, "a") == (MONDAY, MONDAY)
    assert _window(schedule, "b") == (MONDAY, MONDAY)


def test_explicit_empty_prerequisite_starts_at_course_start() -> None:
    schedule = _schedule([_topic("a", 2, "days"), _topic("b", 4)], MONDAY, {"b": []})
    assert _window(schedule, "b") == (MONDAY, MONDAY)


def test_all_scheduled_dates_are_working_days() -> None:
    topics = [
        _topic("a", 3, "days"),
        _topic("b", 5),
        _topic("c", 11),
        _topic("d", 2, "days"),
        _topic("e", 1),
        _topic("f", 7, "days"),
    ]
    calendar = WorkingCalendar()
    schedule = _schedule(topics, date(2024, 12, 20), corequisites={"c": ["d"]})
    for window in schedule.windows.values():
        assert calendar.is_working_day(window.start)
        assert calendar.is_working_day(window.end)
        assert window.start <= window.end


def test_schedule_is_deterministic() -> None:
    topics = [_topic("a", 5), _topic("b", 1, "days"), _topic("c", 9), _topic("d", 2)]
    relations = {"c": ["a"], "d": ["b", "c"]}
    first = _schedule(topics, MONDAY, relations, {"a": ["b"]})
    second = _schedule(topics, MONDAY, relations, {"a": ["b"]})
    assert first == second


def test_missing_start_date_returns_empty_schedule() -> None:
    schedule = _schedule([_topic("a", 8)], None)
    assert schedule.is_empty
    assert schedule.course_start is None


def test_cycle_is_scheduled_best_effort_in_permissive_mode() -> None:
    events: list[telemetry.TelemetryEvent] = []
    telemetry.register_listener(events.append)
    try:
        schedule = _schedule(
            [_topic("a", 8), _topic("b", 8), _topic("c", 8)],
            MONDAY,
            {"a": ["b"], "b": ["a"], "c": []},
        )
    finally:
        telemetry.clear_listeners()

    assert _window(schedule, "c") == (MONDAY, MONDAY)
    assert _window(schedule, "a") == (MONDAY, MONDAY)
    assert _window(schedule, "b") == (TUESDAY, TUESDAY)
    assert schedule.fallback_group_ids == ["a", "b"]
    fallback_events = [event for event in events if event.name == "schedule_cycle_fallback"]
    assert fallback_events and fallback_events[0].payload["topic_ids"] == ["a", "b"]


def test_stalled_group_waits_for_prerequisite_scheduled_later_in_list() -> None:
    thursday = date(2024, 3, 7)
    schedule = _schedule(
        [_topic("a", 8), _topic("b", 8), _topic("c", 2, "days")],
        MONDAY,
        {"a": ["b", "c"], "b": ["a"], "c": []},
    )
    # c is placed by the main pass (Mon-Tue); a has no preceding group but must follow c.
    assert _window(schedule, "c") == (MONDAY, TUESDAY)
    assert _window(schedule, "a") == (WEDNESDAY, WEDNESDAY)
    assert _window(schedule, "b") == (thursday, thursday)
    assert schedule.fallback_group_ids == ["a", "b"]


def test_cycle_is_rejected_in_strict_mode() -> None:
    with pytest.raises(CyclicDependencyError) as exc_info:
        _schedule(
            [_topic("a", 8), _topic("b", 8)],
            MONDAY,
            {"a": ["b"], "b": ["a"]},
            cycle_policy="strict",
        )
    assert exc_info.value.topic_ids == ["a", "b"]
    assert exc_info.value.to_dict()["code"] == "CYCLIC_DEPENDENCY"
