"""Memo of holiday key sets keyed by an inclusive year window."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Optional, Tuple

YearWindow = Tuple[int, int]


def _normalize_window(start_year: int, end_year: int) -> YearWindow:
    if end_year < start_year:
        raise ValueError(f"Invalid holiday window {start_year}..{end_year}.")
    return int(start_year), int(end_year)


@dataclass
class _HolidayEntry:
    keys: FrozenSet[str]
    cached_at: datetime


class HolidayCache:
    """Cache owned by a single calendar instance; nothing is shared implicitly."""

    def __init__(self) -> None:
        self._entries: Dict[YearWindow, _HolidayEntry] = {}

    def get(self, start_year: int, end_year: int) -> Optional[FrozenSet[str]]:
        entry = self._entries.get(_normalize_window(start_year, end_year))
        return entry.keys if entry else None

    def set(self, start_year: int, end_year: int, keys: FrozenSet[str]) -> None:
        self._entries[_normalize_window(start_year, end_year)] = _HolidayEntry(
            keys=frozenset(keys),
            cached_at=datetime.now(timezone.utc),
        )

    def get_or_build(
        self,
        start_year: int,
        end_year: int,
        builder: Callable[[int, int], FrozenSet[str]],
    ) -> FrozenSet[str]:
        cached = self.get(start_year, end_year)
        if cached is not None:
            return cached
        keys = frozenset(builder(start_year, end_year))
        self.set(start_year, end_year, keys)
        return keys

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


__all__ = ["HolidayCache"]
