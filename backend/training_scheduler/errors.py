"""Exception hierarchy raised by the scheduling engine."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Optional


class SchedulerError(RuntimeError):
    """Base error carrying a stable code and a transport-neutral status."""

    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Scheduling failed"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class BadRequestError(SchedulerError):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class NotFoundError(SchedulerError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class ExternalServiceError(SchedulerError):
    """The backing store failed while reading or writing schedule data."""

    status_code = 502
    code = "EXTERNAL_SERVICE_ERROR"
    default_message = "External service error"

    @classmethod
    def wrap(cls, message: str, exc: BaseException) -> "ExternalServiceError":
        code = getattr(exc, "code", None) or getattr(getattr(exc, "orig", None), "pgcode", None)
        return cls(message, {"code": code, "details": str(exc)})


class CyclicDependencyError(SchedulerError):
    """Raised in strict mode when prerequisite groups can never become ready."""

    status_code = 422
    code = "CYCLIC_DEPENDENCY"
    default_message = "Topic prerequisites form a cycle"

    def __init__(self, topic_ids: Iterable[str], course_id: Optional[str] = None) -> None:
        self.topic_ids = list(topic_ids)
        details: Dict[str, Any] = {"topic_ids": self.topic_ids}
        if course_id:
            details["course_id"] = course_id
        super().__init__(
            f"Topic prerequisites form a cycle: {', '.join(self.topic_ids)}",
            details,
        )


__all__ = [
    "BadRequestError",
    "CyclicDependencyError",
    "ExternalServiceError",
    "NotFoundError",
    "SchedulerError",
]
