"""In-memory caches shared across scheduler components."""

from .holiday_cache import HolidayCache

__all__ = ["HolidayCache"]
