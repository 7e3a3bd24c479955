"""Propagation of a topic duration change up to courses, learning paths and enrollments.

The cascade is a sequence of independent writes. A failure stops the
remaining steps but leaves earlier writes in place; every step recomputes
from current store contents, so re-running the cascade converges.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, time as dt_time
from typing import Any, Dict, List, Optional

from .durations import course_totals, learning_path_totals
from .errors import BadRequestError
from .models import AuditEntry, CascadeReport, Course, LearningPath, ScheduleWindowUpdate
from .relations import dedupe_ids
from .store import ScheduleStore
from .telemetry import emit_event
from .working_calendar import WorkingCalendar, working_calendar

logger = logging.getLogger(__name__)


def as_datetime(value: Optional[date]) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, dt_time.min)


def window_end(calendar: WorkingCalendar, start: Optional[datetime], total_days: int) -> Optional[datetime]:
    """End of a course/path window; ``None`` without a start or without work."""
    if start is None or total_days <= 0:
        return None
    return calendar.add_working_days(start, total_days)


def refresh_enrollment_end_dates(
    store: ScheduleStore,
    calendar: WorkingCalendar,
    learning_path_id: str,
    total_days: int,
) -> List[str]:
    """Re-derive ``end_date`` for every enrollment of the path that has a start date."""
    updated: List[str] = []
    for enrollment in store.fetch_enrollments_for_learning_path(learning_path_id):
        if enrollment.start_date is None:
            continue
        end_date = calendar.add_working_days(enrollment.start_date, total_days)
        store.update_enrollment_end_date(enrollment.id, end_date)
        updated.append(enrollment.id)
    return updated


def _totals_snapshot(total_hours: float, total_days: int, end_at: Optional[datetime]) -> Dict[str, Any]:
    return {
        "total_hours": total_hours,
        "total_days": total_days,
        "end_at": end_at.isoformat() if end_at else None,
    }


class CascadeRecalculator:
    """Recomputes course and learning-path totals after a topic duration edit."""

    def __init__(self, store: ScheduleStore, calendar: Optional[WorkingCalendar] = None) -> None:
        self._store = store
        self._calendar = calendar or working_calendar

    def recalculate_for_topic(self, topic_id: str, updated_by: Optional[str] = None) -> CascadeReport:
        report = CascadeReport(topic_id=topic_id)
        start = time.perf_counter()
        try:
            courses = self._store.fetch_courses_containing_topic(topic_id)
            updated_courses: List[Course] = []
            for course in courses:
                updated_courses.append(self._recalculate_course(course, topic_id, updated_by))
                report.course_ids.append(course.id)

            paths: Dict[str, LearningPath] = {}
            for course in updated_courses:
                for path in self._store.fetch_learning_paths_containing_course(course.id):
                    paths.setdefault(path.id, path)

            for path in paths.values():
                updated_path = self._recalculate_learning_path(path, topic_id, updated_by)
                report.learning_path_ids.append(path.id)
                report.enrollment_ids.extend(
                    refresh_enrollment_end_dates(self._store, self._calendar, path.id, updated_path.total_days)
                )
        except Exception as exc:  # noqa: BLE001
            emit_event(
                "topic_cascade",
                topic_id=topic_id,
                status="error",
                duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
                course_ids=report.course_ids,
                learning_path_ids=report.learning_path_ids,
                enrollment_count=len(report.enrollment_ids),
                error=str(exc),
                exception_type=exc.__class__.__name__,
            )
            logger.exception(
                "Cascade for topic %s stopped after %d course(s) and %d learning path(s); earlier writes remain applied",
                topic_id,
                len(report.course_ids),
                len(report.learning_path_ids),
            )
            raise

        emit_event(
            "topic_cascade",
            topic_id=topic_id,
            status="success",
            duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
            course_ids=report.course_ids,
            learning_path_ids=report.learning_path_ids,
            enrollment_count=len(report.enrollment_ids),
        )
        return report

    def _recalculate_course(self, course: Course, topic_id: str, updated_by: Optional[str]) -> Course:
        topic_ids = dedupe_ids(course.topic_ids)
        topics = self._store.fetch_topics_by_ids(topic_ids)
        if len(topics) != len(topic_ids):
            found = {topic.id for topic in topics}
            raise BadRequestError(
                "One or more course topics could not be found.",
                {"course_id": course.id, "missing_topic_ids": [i for i in topic_ids if i not in found]},
            )
        total_hours, total_days = course_totals(topics)
        end_at = window_end(self._calendar, course.start_at, total_days)
        self._store.update_course_schedule(
            course.id,
            ScheduleWindowUpdate(
                end_at=end_at,
                total_hours=total_hours,
                total_days=total_days,
                updated_by=updated_by,
            ),
        )
        self._store.record_audit_entry(
            AuditEntry(
                entity_type="course",
                entity_id=course.id,
                action="totals_recalculated",
                actor_id=updated_by,
                details={
                    "triggered_by_topic": topic_id,
                    "before": _totals_snapshot(course.total_hours, course.total_days, course.end_at),
                    "after": _totals_snapshot(total_hours, total_days, end_at),
                },
            )
        )
        logger.info(
            "Course %s totals %s/%s -> %s/%s (topic %s)",
            course.id,
            course.total_hours,
            course.total_days,
            total_hours,
            total_days,
            topic_id,
        )
        return course.model_copy(update={"total_hours": total_hours, "total_days": total_days, "end_at": end_at})

    def _recalculate_learning_path(self, path: LearningPath, topic_id: str, updated_by: Optional[str]) -> LearningPath:
        courses = self._store.fetch_courses_by_ids(dedupe_ids(path.course_ids))
        total_hours, total_days = learning_path_totals(courses)
        end_at = window_end(self._calendar, path.start_at, total_days)
        self._store.update_learning_path_schedule(
            path.id,
            ScheduleWindowUpdate(
                end_at=end_at,
                total_hours=total_hours,
                total_days=total_days,
                updated_by=updated_by,
            ),
        )
        self._store.record_audit_entry(
            AuditEntry(
                entity_type="learning_path",
                entity_id=path.id,
                action="totals_recalculated",
                actor_id=updated_by,
                details={
                    "triggered_by_topic": topic_id,
                    "before": _totals_snapshot(path.total_hours, path.total_days, path.end_at),
                    "after": _totals_snapshot(total_hours, total_days, end_at),
                },
            )
        )
        return path.model_copy(update={"total_hours": total_hours, "total_days": total_days, "end_at": end_at})


__all__ = [
    "CascadeRecalculator",
    "as_datetime",
    "refresh_enrollment_end_dates",
    "window_end",
]
