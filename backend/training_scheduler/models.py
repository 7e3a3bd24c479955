"""Domain models exchanged between the scheduler and its store."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

TimeUnit = Literal["hours", "days"]
EntityType = Literal["topic", "course", "learning_path", "enrollment"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _stringify_ids(value: Any) -> List[str]:
    if value is None:
        return []
    return [str(entry) for entry in value if entry is not None and str(entry)]


def _stringify_relation_map(value: Any) -> Dict[str, List[str]]:
    if not isinstance(value, dict):
        return {}
    return {
        str(key): _stringify_ids(entries)
        for key, entries in value.items()
        if isinstance(entries, (list, tuple, set))
    }


class Topic(BaseModel):
    """A unit of training work with a declared duration."""

    id: str
    title: str = ""
    time_allocated: float = 0.0
    time_unit: TimeUnit = "hours"
    prerequisites: List[str] = Field(default_factory=list)
    corequisites: List[str] = Field(default_factory=list)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("prerequisites", "corequisites", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> List[str]:
        return _stringify_ids(value)

    @field_validator("time_unit", mode="before")
    @classmethod
    def _coerce_unit(cls, value: Any) -> str:
        # Anything other than "days" is treated as hours.
        return "days" if value == "days" else "hours"


class Course(BaseModel):
    """Ordered topics plus optional per-topic relation overrides."""

    id: str
    title: str = ""
    topic_ids: List[str] = Field(default_factory=list)
    topic_prerequisites: Dict[str, List[str]] = Field(default_factory=dict)
    topic_corequisites: Dict[str, List[str]] = Field(default_factory=dict)
    total_hours: float = 0.0
    total_days: int = 0
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None

    @field_validator("topic_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> List[str]:
        return _stringify_ids(value)

    @field_validator("topic_prerequisites", "topic_corequisites", mode="before")
    @classmethod
    def _coerce_relations(cls, value: Any) -> Dict[str, List[str]]:
        return _stringify_relation_map(value)


class LearningPath(BaseModel):
    """Ordered list of courses scheduled from a shared start date."""

    id: str
    title: str = ""
    course_ids: List[str] = Field(default_factory=list)
    total_hours: float = 0.0
    total_days: int = 0
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None

    @field_validator("course_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> List[str]:
        return _stringify_ids(value)


class Enrollment(BaseModel):
    id: str
    user_id: str
    learning_path_id: str
    status: str = "active"
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class AuditEntry(BaseModel):
    """One audit record written alongside a structural recalculation."""

    entity_type: EntityType
    entity_id: Optional[str] = None
    action: str
    actor_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=_now)


class TopicScheduleUpdate(BaseModel):
    topic_id: str
    start_date: datetime
    end_date: datetime
    prerequisites: List[str] = Field(default_factory=list)
    corequisites: List[str] = Field(default_factory=list)
    updated_by: Optional[str] = None


class ScheduleWindowUpdate(BaseModel):
    """Partial course/learning-path update; only fields that were set are applied."""

    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    total_hours: Optional[float] = None
    total_days: Optional[int] = None
    updated_by: Optional[str] = None

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class CourseScheduleRequest(BaseModel):
    """Input accepted by the course-level scheduling entry point."""

    course_id: Optional[str] = None
    topic_ids: List[str] = Field(default_factory=list)
    topic_prerequisites: Dict[str, List[str]] = Field(default_factory=dict)
    topic_corequisites: Dict[str, List[str]] = Field(default_factory=dict)
    start_at_override: Optional[datetime] = None
    fallback_start_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    @field_validator("topic_prerequisites", "topic_corequisites", mode="before")
    @classmethod
    def _coerce_relations(cls, value: Any) -> Dict[str, List[str]]:
        return _stringify_relation_map(value)

    @field_validator("start_at_override", "fallback_start_at", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class TopicWindowPayload(BaseModel):
    topic_id: str
    start_date: datetime
    end_date: datetime


class CourseScheduleOutcome(BaseModel):
    scheduled: bool = False
    course_id: Optional[str] = None
    course_start: Optional[datetime] = None
    course_end: Optional[datetime] = None
    total_hours: float = 0.0
    total_days: int = 0
    topic_windows: List[TopicWindowPayload] = Field(default_factory=list)


class LearningPathScheduleOutcome(BaseModel):
    scheduled: bool = False
    learning_path_id: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    courses: List[CourseScheduleOutcome] = Field(default_factory=list)
    enrollment_ids: List[str] = Field(default_factory=list)


class CascadeReport(BaseModel):
    topic_id: str
    course_ids: List[str] = Field(default_factory=list)
    learning_path_ids: List[str] = Field(default_factory=list)
    enrollment_ids: List[str] = Field(default_factory=list)


__all__ = [
    "AuditEntry",
    "CascadeReport",
    "Course",
    "CourseScheduleOutcome",
    "CourseScheduleRequest",
    "Enrollment",
    "EntityType",
    "LearningPath",
    "LearningPathScheduleOutcome",
    "ScheduleWindowUpdate",
    "TimeUnit",
    "Topic",
    "TopicScheduleUpdate",
    "TopicWindowPayload",
]
