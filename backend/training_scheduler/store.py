"""Store boundary consumed by the scheduler and the cascade recalculator."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .db.session import session_scope
from .errors import ExternalServiceError, NotFoundError
from .models import (
    AuditEntry,
    Course,
    Enrollment,
    LearningPath,
    ScheduleWindowUpdate,
    Topic,
    TopicScheduleUpdate,
)

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from .repositories.schedule_records import ScheduleRepository

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ScheduleStore(Protocol):
    """Operations any persistence technology must provide to the scheduler."""

    def fetch_topics_by_ids(self, ids: Sequence[str]) -> List[Topic]: ...

    def fetch_course(self, course_id: str) -> Optional[Course]: ...

    def fetch_courses_by_ids(self, ids: Sequence[str]) -> List[Course]: ...

    def fetch_courses_containing_topic(self, topic_id: str) -> List[Course]: ...

    def fetch_learning_path(self, learning_path_id: str) -> Optional[LearningPath]: ...

    def fetch_learning_paths_containing_course(self, course_id: str) -> List[LearningPath]: ...

    def fetch_enrollments_for_learning_path(self, learning_path_id: str) -> List[Enrollment]: ...

    def update_topic_schedules(self, updates: Sequence[TopicScheduleUpdate]) -> None: ...

    def update_course_schedule(self, course_id: str, update: ScheduleWindowUpdate) -> None: ...

    def update_learning_path_schedule(self, learning_path_id: str, update: ScheduleWindowUpdate) -> None: ...

    def update_enrollment_end_date(self, enrollment_id: str, end_date: Optional[datetime]) -> None: ...

    def record_audit_entry(self, entry: AuditEntry) -> None: ...


def _repo() -> "ScheduleRepository":
    from .repositories.schedule_records import schedule_records

    return schedule_records


class InMemoryScheduleStore:
    """Dict-backed store; rows are copied on the way in and out."""

    def __init__(
        self,
        *,
        topics: Iterable[Topic] = (),
        courses: Iterable[Course] = (),
        learning_paths: Iterable[LearningPath] = (),
        enrollments: Iterable[Enrollment] = (),
    ) -> None:
        self._lock = threading.RLock()
        self.topics: Dict[str, Topic] = {}
        self.courses: Dict[str, Course] = {}
        self.learning_paths: Dict[str, LearningPath] = {}
        self.enrollments: Dict[str, Enrollment] = {}
        self.audit_entries: List[AuditEntry] = []
        for topic in topics:
            self.add_topic(topic)
        for course in courses:
            self.add_course(course)
        for path in learning_paths:
            self.add_learning_path(path)
        for enrollment in enrollments:
            self.add_enrollment(enrollment)

    def add_topic(self, topic: Topic) -> None:
        with self._lock:
            self.topics[topic.id] = topic.model_copy(deep=True)

    def add_course(self, course: Course) -> None:
        with self._lock:
            self.courses[course.id] = course.model_copy(deep=True)

    def add_learning_path(self, path: LearningPath) -> None:
        with self._lock:
            self.learning_paths[path.id] = path.model_copy(deep=True)

    def add_enrollment(self, enrollment: Enrollment) -> None:
        with self._lock:
            self.enrollments[enrollment.id] = enrollment.model_copy(deep=True)

    def fetch_topics_by_ids(self, ids: Sequence[str]) -> List[Topic]:
        with self._lock:
            return [self.topics[i].model_copy(deep=True) for i in dict.fromkeys(ids) if i in self.topics]

    def fetch_course(self, course_id: str) -> Optional[Course]:
        with self._lock:
            course = self.courses.get(course_id)
            return course.model_copy(deep=True) if course else None

    def fetch_courses_by_ids(self, ids: Sequence[str]) -> List[Course]:
        with self._lock:
            return [self.courses[i].model_copy(deep=True) for i in dict.fromkeys(ids) if i in self.courses]

    def fetch_courses_containing_topic(self, topic_id: str) -> List[Course]:
        with self._lock:
            return [c.model_copy(deep=True) for c in self.courses.values() if topic_id in c.topic_ids]

    def fetch_learning_path(self, learning_path_id: str) -> Optional[LearningPath]:
        with self._lock:
            path = self.learning_paths.get(learning_path_id)
            return path.model_copy(deep=True) if path else None

    def fetch_learning_paths_containing_course(self, course_id: str) -> List[LearningPath]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self.learning_paths.values() if course_id in p.course_ids]

    def fetch_enrollments_for_learning_path(self, learning_path_id: str) -> List[Enrollment]:
        with self._lock:
            return [
                e.model_copy(deep=True)
                for e in self.enrollments.values()
                if e.learning_path_id == learning_path_id
            ]

    def update_topic_schedules(self, updates: Sequence[TopicScheduleUpdate]) -> None:
        with self._lock:
            missing = [u.topic_id for u in updates if u.topic_id not in self.topics]
            if missing:
                raise NotFoundError(f"Topic {missing[0]} not found.", {"topic_ids": missing})
            for update in updates:
                self.topics[update.topic_id] = self.topics[update.topic_id].model_copy(
                    update={
                        "start_date": update.start_date,
                        "end_date": update.end_date,
                        "prerequisites": list(update.prerequisites),
                        "corequisites": list(update.corequisites),
                    }
                )

    def update_course_schedule(self, course_id: str, update: ScheduleWindowUpdate) -> None:
        with self._lock:
            course = self.courses.get(course_id)
            if course is None:
                raise NotFoundError(f"Course {course_id} not found.", {"course_id": course_id})
            self.courses[course_id] = course.model_copy(update=_window_changes(update))

    def update_learning_path_schedule(self, learning_path_id: str, update: ScheduleWindowUpdate) -> None:
        with self._lock:
            path = self.learning_paths.get(learning_path_id)
            if path is None:
                raise NotFoundError(
                    f"Learning path {learning_path_id} not found.", {"learning_path_id": learning_path_id}
                )
            self.learning_paths[learning_path_id] = path.model_copy(update=_window_changes(update))

    def update_enrollment_end_date(self, enrollment_id: str, end_date: Optional[datetime]) -> None:
        with self._lock:
            enrollment = self.enrollments.get(enrollment_id)
            if enrollment is None:
                raise NotFoundError(f"Enrollment {enrollment_id} not found.", {"enrollment_id": enrollment_id})
            self.enrollments[enrollment_id] = enrollment.model_copy(update={"end_date": end_date})

    def record_audit_entry(self, entry: AuditEntry) -> None:
        with self._lock:
            self.audit_entries.append(entry.model_copy(deep=True))


class DatabaseScheduleStore:
    """SQLAlchemy-backed store; every call runs in its own session scope."""

    def _run(self, message: str, operation: Callable[["Session"], T], *, commit: bool = True) -> T:
        try:
            with session_scope(commit=commit) as session:
                return operation(session)
        except SQLAlchemyError as exc:
            logger.error("%s: %s", message, exc)
            raise ExternalServiceError.wrap(message, exc) from exc

    def fetch_topics_by_ids(self, ids: Sequence[str]) -> List[Topic]:
        return self._run(
            "Unable to load topics for scheduling",
            lambda session: _repo().fetch_topics_by_ids(session, ids),
            commit=False,
        )

    def fetch_course(self, course_id: str) -> Optional[Course]:
        return self._run(
            "Unable to load course",
            lambda session: _repo().fetch_course(session, course_id),
            commit=False,
        )

    def fetch_courses_by_ids(self, ids: Sequence[str]) -> List[Course]:
        return self._run(
            "Unable to load courses for scheduling",
            lambda session: _repo().fetch_courses_by_ids(session, ids),
            commit=False,
        )

    def fetch_courses_containing_topic(self, topic_id: str) -> List[Course]:
        return self._run(
            "Unable to load courses for topic scheduling",
            lambda session: _repo().fetch_courses_containing_topic(session, topic_id),
            commit=False,
        )

    def fetch_learning_path(self, learning_path_id: str) -> Optional[LearningPath]:
        return self._run(
            "Unable to load learning path for scheduling",
            lambda session: _repo().fetch_learning_path(session, learning_path_id),
            commit=False,
        )

    def fetch_learning_paths_containing_course(self, course_id: str) -> List[LearningPath]:
        return self._run(
            "Unable to load learning path start dates",
            lambda session: _repo().fetch_learning_paths_containing_course(session, course_id),
            commit=False,
        )

    def fetch_enrollments_for_learning_path(self, learning_path_id: str) -> List[Enrollment]:
        return self._run(
            "Unable to load enrollments",
            lambda session: _repo().fetch_enrollments_for_learning_path(session, learning_path_id),
            commit=False,
        )

    def update_topic_schedules(self, updates: Sequence[TopicScheduleUpdate]) -> None:
        self._run(
            "Unable to update topic schedules",
            lambda session: _repo().update_topic_schedules(session, updates),
        )

    def update_course_schedule(self, course_id: str, update: ScheduleWindowUpdate) -> None:
        self._run(
            "Unable to update course schedule",
            lambda session: _repo().update_course_schedule(session, course_id, update),
        )

    def update_learning_path_schedule(self, learning_path_id: str, update: ScheduleWindowUpdate) -> None:
        self._run(
            "Unable to update learning path schedule",
            lambda session: _repo().update_learning_path_schedule(session, learning_path_id, update),
        )

    def update_enrollment_end_date(self, enrollment_id: str, end_date: Optional[datetime]) -> None:
        self._run(
            "Unable to update enrollment end date",
            lambda session: _repo().update_enrollment_end_date(session, enrollment_id, end_date),
        )

    def record_audit_entry(self, entry: AuditEntry) -> None:
        self._run(
            "Unable to write audit log",
            lambda session: _repo().record_audit_entry(session, entry),
        )


def _window_changes(update: ScheduleWindowUpdate) -> Dict[str, object]:
    changes = update.changes()
    changes.pop("updated_by", None)
    return changes


def get_schedule_store() -> ScheduleStore:
    """Store implementation selected by ``SCHEDULER_PERSISTENCE_MODE``."""
    if get_settings().persistence_mode == "memory":
        return InMemoryScheduleStore()
    return DatabaseScheduleStore()


__all__ = [
    "DatabaseScheduleStore",
    "InMemoryScheduleStore",
    "ScheduleStore",
    "get_schedule_store",
]
