"""Entry points that load a course graph, schedule it and write the results back."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from typing import List, Optional, Tuple

from .cascade import CascadeRecalculator, as_datetime, refresh_enrollment_end_dates, window_end
from .config import get_settings
from .durations import course_totals, learning_path_totals
from .errors import BadRequestError
from .models import (
    AuditEntry,
    CascadeReport,
    CourseScheduleOutcome,
    CourseScheduleRequest,
    LearningPathScheduleOutcome,
    ScheduleWindowUpdate,
    TopicScheduleUpdate,
    TopicWindowPayload,
)
from .relations import (
    dedupe_ids,
    effective_corequisites,
    effective_prerequisites,
    normalize_relation_map,
)
from .store import ScheduleStore
from .telemetry import emit_event
from .topic_scheduler import TopologicalScheduler
from .working_calendar import WorkingCalendar, working_calendar

logger = logging.getLogger(__name__)


class ScheduleService:
    """Reads a snapshot from the store, computes schedules and writes them back.

    Concurrent invocations are not coordinated: each reads its own snapshot
    and the last write wins.
    """

    def __init__(
        self,
        store: ScheduleStore,
        scheduler: Optional[TopologicalScheduler] = None,
        calendar: Optional[WorkingCalendar] = None,
    ) -> None:
        self._store = store
        self._calendar = calendar or (scheduler.calendar if scheduler else working_calendar)
        self._scheduler = scheduler or TopologicalScheduler(
            self._calendar,
            cycle_policy=get_settings().cycle_policy,
        )

    @property
    def store(self) -> ScheduleStore:
        return self._store

    def resolve_learning_path_start_for_course(self, course_id: str) -> Optional[datetime]:
        """Earliest ``start_at`` among learning paths containing the course."""
        starts = [
            path.start_at
            for path in self._store.fetch_learning_paths_containing_course(course_id)
            if path.start_at is not None
        ]
        return min(starts) if starts else None

    def schedule_course_topics(self, request: CourseScheduleRequest) -> CourseScheduleOutcome:
        course_id = request.course_id
        outcome = CourseScheduleOutcome(course_id=course_id)
        ordered_ids = dedupe_ids(request.topic_ids)
        if not ordered_ids:
            return outcome

        start_date = (
            request.start_at_override
            or (self.resolve_learning_path_start_for_course(course_id) if course_id else None)
            or request.fallback_start_at
        )
        if start_date is None:
            logger.info("Course %s has no start date; skipping topic scheduling", course_id)
            return outcome

        topics = self._store.fetch_topics_by_ids(ordered_ids)
        if len(topics) != len(ordered_ids):
            found = {topic.id for topic in topics}
            raise BadRequestError(
                "One or more topics could not be scheduled.",
                {"missing_topic_ids": [topic_id for topic_id in ordered_ids if topic_id not in found]},
            )
        topics_by_id = {topic.id: topic for topic in topics}

        keep = set(ordered_ids)
        prerequisite_map = normalize_relation_map(request.topic_prerequisites, keep)
        corequisite_map = normalize_relation_map(request.topic_corequisites, keep)
        coreqs = effective_corequisites(ordered_ids, corequisite_map)
        prereqs = effective_prerequisites(ordered_ids, prerequisite_map, coreqs)

        started = time.perf_counter()
        try:
            schedule = self._scheduler.build_schedule(
                start_date,
                ordered_ids,
                topics_by_id,
                prereqs,
                coreqs,
                course_id=course_id,
            )
        except Exception as exc:  # noqa: BLE001
            emit_event(
                "course_schedule_generated",
                course_id=course_id,
                status="error",
                duration_ms=round((time.perf_counter() - started) * 1000.0, 2),
                topic_count=len(ordered_ids),
                error=str(exc),
                exception_type=exc.__class__.__name__,
            )
            logger.exception("Failed to schedule topics for course %s", course_id)
            raise
        duration_ms = (time.perf_counter() - started) * 1000.0

        if schedule.is_empty:
            return outcome

        updates = [
            TopicScheduleUpdate(
                topic_id=topic_id,
                start_date=as_datetime(schedule.windows[topic_id].start),
                end_date=as_datetime(schedule.windows[topic_id].end),
                prerequisites=prereqs.get(topic_id, []),
                corequisites=coreqs.get(topic_id, []),
                updated_by=request.updated_by,
            )
            for topic_id in ordered_ids
            if topic_id in schedule.windows
        ]
        self._store.update_topic_schedules(updates)

        total_hours, total_days = course_totals(topics)
        course_start = as_datetime(schedule.course_start)
        course_end = as_datetime(schedule.course_end)
        if course_id:
            self._store.update_course_schedule(
                course_id,
                ScheduleWindowUpdate(
                    start_at=course_start,
                    end_at=course_end,
                    total_hours=total_hours,
                    total_days=total_days,
                    updated_by=request.updated_by,
                ),
            )
            self._store.record_audit_entry(
                AuditEntry(
                    entity_type="course",
                    entity_id=course_id,
                    action="schedule_recalculated",
                    actor_id=request.updated_by,
                    details={
                        "start_at": course_start,
                        "end_at": course_end,
                        "total_hours": total_hours,
                        "total_days": total_days,
                        "topic_count": len(updates),
                        "fallback_group_count": len(schedule.fallback_group_ids),
                    },
                )
            )

        emit_event(
            "course_schedule_generated",
            course_id=course_id,
            status="success",
            duration_ms=round(duration_ms, 2),
            topic_count=len(updates),
            group_count=schedule.group_count,
            fallback_group_count=len(schedule.fallback_group_ids),
            course_start=course_start,
            course_end=course_end,
        )
        return CourseScheduleOutcome(
            scheduled=True,
            course_id=course_id,
            course_start=course_start,
            course_end=course_end,
            total_hours=total_hours,
            total_days=total_days,
            topic_windows=[
                TopicWindowPayload(topic_id=u.topic_id, start_date=u.start_date, end_date=u.end_date)
                for u in updates
            ],
        )

    def schedule_learning_path_courses(
        self,
        learning_path_id: Optional[str],
        updated_by: Optional[str] = None,
    ) -> LearningPathScheduleOutcome:
        outcome = LearningPathScheduleOutcome(learning_path_id=learning_path_id)
        if not learning_path_id:
            return outcome
        path = self._store.fetch_learning_path(learning_path_id)
        if path is None or path.start_at is None:
            return outcome
        course_ids = dedupe_ids(path.course_ids)
        if not course_ids:
            return outcome

        for course in self._store.fetch_courses_by_ids(course_ids):
            outcome.courses.append(
                self.schedule_course_topics(
                    CourseScheduleRequest(
                        course_id=course.id,
                        topic_ids=course.topic_ids,
                        topic_prerequisites=course.topic_prerequisites,
                        topic_corequisites=course.topic_corequisites,
                        start_at_override=path.start_at,
                        fallback_start_at=course.start_at,
                        updated_by=updated_by,
                    )
                )
            )

        total_hours, total_days = learning_path_totals(self._store.fetch_courses_by_ids(course_ids))
        scheduled = [course for course in outcome.courses if course.scheduled]
        # Member courses run in parallel from the path start.
        start_at = path.start_at
        end_at = window_end(self._calendar, start_at, total_days)
        self._store.update_learning_path_schedule(
            learning_path_id,
            ScheduleWindowUpdate(
                start_at=start_at,
                end_at=end_at,
                total_hours=total_hours,
                total_days=total_days,
                updated_by=updated_by,
            ),
        )
        self._store.record_audit_entry(
            AuditEntry(
                entity_type="learning_path",
                entity_id=learning_path_id,
                action="schedule_recalculated",
                actor_id=updated_by,
                details={
                    "start_at": start_at,
                    "end_at": end_at,
                    "total_hours": total_hours,
                    "total_days": total_days,
                    "course_ids": course_ids,
                },
            )
        )
        outcome.enrollment_ids = refresh_enrollment_end_dates(
            self._store, self._calendar, learning_path_id, total_days
        )
        outcome.scheduled = True
        outcome.start_at = start_at
        outcome.end_at = end_at
        emit_event(
            "learning_path_schedule_generated",
            learning_path_id=learning_path_id,
            course_count=len(outcome.courses),
            scheduled_course_count=len(scheduled),
            enrollment_count=len(outcome.enrollment_ids),
            start_at=start_at,
            end_at=end_at,
        )
        return outcome

    def schedule_courses_for_topic(
        self,
        topic_id: Optional[str],
        updated_by: Optional[str] = None,
    ) -> List[CourseScheduleOutcome]:
        """Reschedule every course that contains the topic."""
        if not topic_id:
            return []
        return [
            self.schedule_course_topics(
                CourseScheduleRequest(
                    course_id=course.id,
                    topic_ids=course.topic_ids,
                    topic_prerequisites=course.topic_prerequisites,
                    topic_corequisites=course.topic_corequisites,
                    fallback_start_at=course.start_at,
                    updated_by=updated_by,
                )
            )
            for course in self._store.fetch_courses_containing_topic(str(topic_id))
        ]

    def recalculate_totals(self, topic_id: str, updated_by: Optional[str] = None) -> CascadeReport:
        return CascadeRecalculator(self._store, self._calendar).recalculate_for_topic(topic_id, updated_by)

    def refresh_topic(
        self,
        topic_id: str,
        updated_by: Optional[str] = None,
    ) -> Tuple[CascadeReport, List[CourseScheduleOutcome]]:
        """Cascade totals for an edited topic, then reschedule the courses holding it."""
        report = self.recalculate_totals(topic_id, updated_by)
        outcomes = self.schedule_courses_for_topic(topic_id, updated_by)
        return report, outcomes


__all__ = ["ScheduleService"]
