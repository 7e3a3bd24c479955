"""Tests for the course and learning-path scheduling entry points."""

from __future__ import annotations

from datetime import datetime

import pytest

from training_scheduler import telemetry
from training_scheduler.errors import BadRequestError
from training_scheduler.models import (
    Course,
    CourseScheduleRequest,
    Enrollment,
    LearningPath,
    Topic,
)
from training_scheduler.schedule_service import ScheduleService
from training_scheduler.store import InMemoryScheduleStore
from training_scheduler.topic_scheduler import TopologicalScheduler
from training_scheduler.working_calendar import WorkingCalendar


def _store() -> InMemoryScheduleStore:
    return InMemoryScheduleStore(
        topics=[
            Topic(id="t1", title="Safety basics", time_allocated=8),
            Topic(id="t2", title="Hazard reporting", time_allocated=1, time_unit="days"),
            Topic(id="t3", title="Refresher", time_allocated=4),
        ],
        courses=[
            Course(id="c1", topic_ids=["t1", "t2"], start_at=datetime(2024, 4, 1)),
            Course(id="c2", topic_ids=["t3"]),
        ],
    )


def _service(store: InMemoryScheduleStore, **kwargs) -> ScheduleService:
    calendar = WorkingCalendar()
    return ScheduleService(store, TopologicalScheduler(calendar, **kwargs), calendar)


def test_schedule_course_topics_writes_topics_course_and_audit() -> None:
    store = _store()
    events: list[telemetry.TelemetryEvent] = []
    telemetry.register_listener(events.append)
    try:
        outcome = _service(store).schedule_course_topics(
            CourseScheduleRequest(
                course_id="c1",
                topic_ids=["t1", "t2", "t1"],
                fallback_start_at=datetime(2024, 3, 4),
                updated_by="admin-1",
            )
        )
    finally:
        telemetry.clear_listeners()

    assert outcome.scheduled
    assert outcome.course_start == datetime(2024, 3, 4)
    assert outcome.course_end == datetime(2024, 3, 5)
    assert (outcome.total_hours, outcome.total_days) == (16.0, 2)

    assert store.topics["t1"].start_date == datetime(2024, 3, 4)
    assert store.topics["t2"].start_date == datetime(2024, 3, 5)
    assert store.topics["t2"].prerequisites == ["t1"]
    course = store.courses["c1"]
    assert course.start_at == datetime(2024, 3, 4)
    assert course.end_at == datetime(2024, 3, 5)
    assert course.total_days == 2

    assert [entry.action for entry in store.audit_entries] == ["schedule_recalculated"]
    assert store.audit_entries[0].actor_id == "admin-1"
    generated = [event for event in events if event.name == "course_schedule_generated"]
    assert generated[0].payload["status"] == "success"
    assert generated[0].payload["topic_count"] == 2


def test_learning_path_start_takes_precedence_over_fallback() -> None:
    store = _store()
    store.add_learning_path(LearningPath(id="lp1", course_ids=["c1"], start_at=datetime(2024, 3, 11)))
    store.add_learning_path(LearningPath(id="lp2", course_ids=["c1", "c2"], start_at=datetime(2024, 3, 6)))
    service = _service(store)

    assert service.resolve_learning_path_start_for_course("c1") == datetime(2024, 3, 6)
    outcome = service.schedule_course_topics(
        CourseScheduleRequest(course_id="c1", topic_ids=["t1", "t2"], fallback_start_at=datetime(2024, 4, 1))
    )
    assert outcome.course_start == datetime(2024, 3, 6)


def test_start_override_wins_over_learning_path_start() -> None:
    store = _store()
    store.add_learning_path(LearningPath(id="lp1", course_ids=["c1"], start_at=datetime(2024, 3, 11)))
    outcome = _service(store).schedule_course_topics(
        CourseScheduleRequest(
            course_id="c1",
            topic_ids=["t1"],
            start_at_override=datetime(2024, 3, 4),
            fallback_start_at="",
        )
    )
    assert outcome.course_start == datetime(2024, 3, 4)


def test_nothing_is_written_without_a_start_date() -> None:
    store = _store()
    outcome = _service(store).schedule_course_topics(CourseScheduleRequest(course_id="c2", topic_ids=["t3"]))
    assert not outcome.scheduled
    assert store.topics["t3"].start_date is None
    assert store.audit_entries == []


def test_empty_topic_list_is_a_no_op() -> None:
    store = _store()
    outcome = _service(store).schedule_course_topics(
        CourseScheduleRequest(course_id="c1", topic_ids=[], fallback_start_at=datetime(2024, 3, 4))
    )
    assert not outcome.scheduled
    assert store.courses["c1"].end_at is None


def test_unknown_topic_is_rejected_before_any_write() -> None:
    store = _store()
    with pytest.raises(BadRequestError) as exc_info:
        _service(store).schedule_course_topics(
            CourseScheduleRequest(
                course_id="c1",
                topic_ids=["t1", "ghost"],
                fallback_start_at=datetime(2024, 3, 4),
            )
        )
    assert str(exc_info.value) == "One or more topics could not be scheduled."
    assert exc_info.value.details == {"missing_topic_ids": ["ghost"]}
    assert store.topics["t1"].start_date is None


def test_schedule_learning_path_courses_updates_path_and_enrollments() -> None:
    store = _store()
    store.add_learning_path(LearningPath(id="lp1", course_ids=["c1", "c2"], start_at=datetime(2024, 3, 4)))
    store.add_enrollment(
        Enrollment(id="e1", user_id="u1", learning_path_id="lp1", start_date=datetime(2024, 3, 11))
    )
    store.add_enrollment(Enrollment(id="e2", user_id="u2", learning_path_id="lp1"))

    outcome = _service(store).schedule_learning_path_courses("lp1", updated_by="admin-1")

    assert outcome.scheduled
    assert [course.course_id for course in outcome.courses] == ["c1", "c2"]
    assert store.courses["c2"].start_at == datetime(2024, 3, 4)
    assert store.courses["c2"].end_at == datetime(2024, 3, 4)
    path = store.learning_paths["lp1"]
    assert path.total_hours == 20.0
    assert path.total_days == 3
    assert path.start_at == datetime(2024, 3, 4)
    assert path.end_at == datetime(2024, 3, 6)
    assert outcome.enrollment_ids == ["e1"]
    assert store.enrollments["e1"].end_date == datetime(2024, 3, 13)
    assert store.enrollments["e2"].end_date is None


def test_path_window_is_stable_across_reschedule_and_cascade() -> None:
    store = _store()
    store.add_learning_path(LearningPath(id="lp1", course_ids=["c1", "c2"], start_at=datetime(2024, 3, 4)))
    service = _service(store)

    service.schedule_learning_path_courses("lp1")
    after_reschedule = store.learning_paths["lp1"].model_copy()
    service.recalculate_totals("t3")
    after_cascade = store.learning_paths["lp1"]

    assert after_reschedule.end_at == datetime(2024, 3, 6)
    assert (after_cascade.start_at, after_cascade.end_at) == (after_reschedule.start_at, after_reschedule.end_at)
    assert (after_cascade.total_hours, after_cascade.total_days) == (20.0, 3)


def test_learning_path_without_start_is_not_scheduled() -> None:
    store = _store()
    store.add_learning_path(LearningPath(id="lp1", course_ids=["c1"]))
    service = _service(store)
    assert not service.schedule_learning_path_courses("lp1").scheduled
    assert not service.schedule_learning_path_courses(None).scheduled
    assert not service.schedule_learning_path_courses("missing").scheduled


def test_learning_path_reschedule_respects_course_corequisites() -> None:
    store = _store()
    store.add_course(
        Course(
            id="c3",
            topic_ids=["t3", "t1"],
            topic_corequisites={"t3": ["t1"]},
        )
    )
    store.add_learning_path(LearningPath(id="lp1", course_ids=["c3"], start_at=datetime(2024, 3, 4)))
    _service(store).schedule_learning_path_courses("lp1")
    # t3 (4h) and t1 (8h) share one cursor, so t1 spills into Tuesday.
    assert store.topics["t1"].start_date == datetime(2024, 3, 4)
    assert store.topics["t1"].end_date == datetime(2024, 3, 5)
    assert store.topics["t3"].corequisites == ["t1"]


def test_schedule_courses_for_topic_reschedules_each_course() -> None:
    store = _store()
    store.add_course(Course(id="c3", topic_ids=["t3", "t2"], start_at=datetime(2024, 3, 4)))
    outcomes = _service(store).schedule_courses_for_topic("t2")
    assert [outcome.course_id for outcome in outcomes] == ["c1", "c3"]
    assert all(outcome.scheduled for outcome in outcomes)
    assert store.courses["c3"].end_at == datetime(2024, 3, 5)
    assert _service(store).schedule_courses_for_topic(None) == []


def test_refresh_topic_cascades_then_reschedules() -> None:
    store = _store()
    store.topics["t2"] = store.topics["t2"].model_copy(update={"time_allocated": 2})
    report, outcomes = _service(store).refresh_topic("t2", updated_by="admin-2")
    assert report.course_ids == ["c1"]
    assert store.courses["c1"].total_hours == 24.0
    assert store.courses["c1"].total_days == 3
    assert outcomes[0].course_end == datetime(2024, 4, 3)
    actions = [entry.action for entry in store.audit_entries]
    assert actions == ["totals_recalculated", "schedule_recalculated"]
