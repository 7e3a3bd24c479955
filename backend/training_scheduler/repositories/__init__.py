"""Session-level repositories over the ORM models."""

from .schedule_records import ScheduleRepository, schedule_records

__all__ = ["ScheduleRepository", "schedule_records"]
