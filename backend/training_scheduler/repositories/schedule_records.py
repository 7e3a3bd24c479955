"""Database-backed repository for topics, courses, learning paths and audit rows."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import (
    AuditLogModel,
    CourseModel,
    LearningPathEnrollmentModel,
    LearningPathModel,
    TopicModel,
)
from ..errors import NotFoundError
from ..models import (
    AuditEntry,
    Course,
    Enrollment,
    LearningPath,
    ScheduleWindowUpdate,
    Topic,
    TopicScheduleUpdate,
)


class ScheduleRepository:
    """Maps ORM rows to domain models; callers own the session and transaction."""

    def fetch_topics_by_ids(self, session: Session, ids: Sequence[str]) -> List[Topic]:
        if not ids:
            return []
        stmt = select(TopicModel).where(TopicModel.id.in_(list(ids)))
        return [self._topic(model) for model in session.execute(stmt).scalars().all()]

    def fetch_course(self, session: Session, course_id: str) -> Optional[Course]:
        model = session.get(CourseModel, course_id)
        return self._course(model) if model else None

    def fetch_courses_by_ids(self, session: Session, ids: Sequence[str]) -> List[Course]:
        if not ids:
            return []
        stmt = select(CourseModel).where(CourseModel.id.in_(list(ids)))
        by_id = {model.id: self._course(model) for model in session.execute(stmt).scalars().all()}
        return [by_id[course_id] for course_id in ids if course_id in by_id]

    def fetch_courses_containing_topic(self, session: Session, topic_id: str) -> List[Course]:
        # JSON array membership is filtered here so the query stays portable across dialects.
        stmt = select(CourseModel).order_by(CourseModel.created_at.asc(), CourseModel.id.asc())
        return [
            self._course(model)
            for model in session.execute(stmt).scalars().all()
            if topic_id in (model.topic_ids or [])
        ]

    def fetch_learning_path(self, session: Session, learning_path_id: str) -> Optional[LearningPath]:
        model = session.get(LearningPathModel, learning_path_id)
        return self._learning_path(model) if model else None

    def fetch_learning_paths_containing_course(self, session: Session, course_id: str) -> List[LearningPath]:
        stmt = select(LearningPathModel).order_by(LearningPathModel.created_at.asc(), LearningPathModel.id.asc())
        return [
            self._learning_path(model)
            for model in session.execute(stmt).scalars().all()
            if course_id in (model.course_ids or [])
        ]

    def fetch_enrollments_for_learning_path(self, session: Session, learning_path_id: str) -> List[Enrollment]:
        stmt = (
            select(LearningPathEnrollmentModel)
            .where(LearningPathEnrollmentModel.learning_path_id == learning_path_id)
            .order_by(LearningPathEnrollmentModel.created_at.asc(), LearningPathEnrollmentModel.id.asc())
        )
        return [self._enrollment(model) for model in session.execute(stmt).scalars().all()]

    def update_topic_schedules(self, session: Session, updates: Iterable[TopicScheduleUpdate]) -> None:
        for update in updates:
            model = session.get(TopicModel, update.topic_id)
            if model is None:
                raise NotFoundError(f"Topic {update.topic_id} not found.", {"topic_id": update.topic_id})
            model.start_date = update.start_date
            model.end_date = update.end_date
            model.pre_requisites = list(update.prerequisites)
            model.co_requisites = list(update.corequisites)
            if update.updated_by:
                model.updated_by = update.updated_by
        session.flush()

    def update_course_schedule(self, session: Session, course_id: str, update: ScheduleWindowUpdate) -> None:
        model = session.get(CourseModel, course_id)
        if model is None:
            raise NotFoundError(f"Course {course_id} not found.", {"course_id": course_id})
        self._apply_window(model, update)
        session.flush()

    def update_learning_path_schedule(
        self, session: Session, learning_path_id: str, update: ScheduleWindowUpdate
    ) -> None:
        model = session.get(LearningPathModel, learning_path_id)
        if model is None:
            raise NotFoundError(
                f"Learning path {learning_path_id} not found.", {"learning_path_id": learning_path_id}
            )
        self._apply_window(model, update)
        session.flush()

    def update_enrollment_end_date(self, session: Session, enrollment_id: str, end_date: Optional[datetime]) -> None:
        model = session.get(LearningPathEnrollmentModel, enrollment_id)
        if model is None:
            raise NotFoundError(f"Enrollment {enrollment_id} not found.", {"enrollment_id": enrollment_id})
        model.end_date = end_date
        session.flush()

    def record_audit_entry(self, session: Session, entry: AuditEntry) -> None:
        session.add(
            AuditLogModel(
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                action=entry.action,
                actor_id=entry.actor_id,
                details=entry.model_dump(mode="json")["details"],
                created_at=entry.created_at,
            )
        )
        session.flush()

    def list_audit_entries(self, session: Session, entity_type: Optional[str] = None) -> List[AuditEntry]:
        stmt = select(AuditLogModel).order_by(AuditLogModel.created_at.asc())
        if entity_type:
            stmt = stmt.where(AuditLogModel.entity_type == entity_type)
        return [
            AuditEntry(
                entity_type=model.entity_type,  # type: ignore[arg-type]
                entity_id=model.entity_id,
                action=model.action,
                actor_id=model.actor_id,
                details=model.details,
                created_at=model.created_at,
            )
            for model in session.execute(stmt).scalars().all()
        ]

    @staticmethod
    def _apply_window(model: CourseModel | LearningPathModel, update: ScheduleWindowUpdate) -> None:
        changes: Dict[str, Any] = update.changes()
        for field in ("start_at", "end_at", "total_hours", "total_days"):
            if field in changes:
                setattr(model, field, changes[field])
        if changes.get("updated_by"):
            model.updated_by = changes["updated_by"]

    @staticmethod
    def _topic(model: TopicModel) -> Topic:
        return Topic(
            id=model.id,
            title=model.title,
            time_allocated=model.time_allocated,
            time_unit=model.time_unit,  # type: ignore[arg-type]
            prerequisites=model.pre_requisites or [],
            corequisites=model.co_requisites or [],
            start_date=model.start_date,
            end_date=model.end_date,
        )

    @staticmethod
    def _course(model: CourseModel) -> Course:
        return Course(
            id=model.id,
            title=model.title,
            topic_ids=model.topic_ids or [],
            topic_prerequisites=model.topic_prerequisites or {},
            topic_corequisites=model.topic_corequisites or {},
            total_hours=model.total_hours,
            total_days=model.total_days,
            start_at=model.start_at,
            end_at=model.end_at,
        )

    @staticmethod
    def _learning_path(model: LearningPathModel) -> LearningPath:
        return LearningPath(
            id=model.id,
            title=model.title,
            course_ids=model.course_ids or [],
            total_hours=model.total_hours,
            total_days=model.total_days,
            start_at=model.start_at,
            end_at=model.end_at,
        )

    @staticmethod
    def _enrollment(model: LearningPathEnrollmentModel) -> Enrollment:
        return Enrollment(
            id=model.id,
            user_id=model.user_id,
            learning_path_id=model.learning_path_id,
            status=model.status,
            start_date=model.start_date,
            end_date=model.end_date,
        )


schedule_records = ScheduleRepository()

__all__ = ["ScheduleRepository", "schedule_records"]
