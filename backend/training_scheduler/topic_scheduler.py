"""Group-level topological scheduling of course topics onto the working calendar.

Topics joined by corequisites form groups; a group is placed once every group
holding one of its members' prerequisites has an end cursor. Members of a
group share one cursor and run back to back in list order. Groups that never
become ready (prerequisite cycles) are handled by a fallback pass, or
rejected when the cycle policy is ``strict``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Literal, Mapping, Optional, Sequence, Set

from .cursor import WorkCursor
from .durations import topic_hours
from .errors import CyclicDependencyError
from .grouping import CorequisiteGrouping, TopicGroup, group_corequisites
from .models import Topic
from .telemetry import emit_event
from .working_calendar import WorkingCalendar, working_calendar

logger = logging.getLogger(__name__)

CyclePolicy = Literal["permissive", "strict"]


@dataclass(frozen=True)
class TopicWindow:
    start: date
    end: date


@dataclass
class CourseSchedule:
    windows: Dict[str, TopicWindow] = field(default_factory=dict)
    course_start: Optional[date] = None
    course_end: Optional[date] = None
    end_cursor: Optional[WorkCursor] = None
    group_count: int = 0
    fallback_group_ids: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.windows


class TopologicalScheduler:
    """Assigns inclusive start/end dates to every topic of a course."""

    def __init__(
        self,
        calendar: Optional[WorkingCalendar] = None,
        *,
        cycle_policy: CyclePolicy = "permissive",
    ) -> None:
        self._calendar = calendar or working_calendar
        self._cycle_policy = cycle_policy

    @property
    def calendar(self) -> WorkingCalendar:
        return self._calendar

    def build_schedule(
        self,
        start_date: Optional[date],
        topic_ids: Sequence[str],
        topics_by_id: Mapping[str, Topic],
        effective_prerequisites: Mapping[str, Sequence[str]],
        effective_corequisites: Mapping[str, Sequence[str]],
        *,
        course_id: Optional[str] = None,
    ) -> CourseSchedule:
        if start_date is None:
            return CourseSchedule()

        calendar = self._calendar
        normalized_start = WorkCursor.start_of(start_date, calendar)
        grouping = group_corequisites(topic_ids, effective_corequisites)
        group_prereqs = self._group_prerequisites(topic_ids, grouping, effective_prerequisites)
        schedule = CourseSchedule(group_count=len(grouping.groups))
        group_end: Dict[str, WorkCursor] = {}
        pending = [group.representative_id for group in grouping.groups]

        progressed = True
        while pending and progressed:
            progressed = False
            for group_id in list(pending):
                prereq_ends = [group_end.get(prereq) for prereq in group_prereqs[group_id]]
                if any(end is None for end in prereq_ends):
                    continue
                start = normalized_start
                latest = _latest(prereq_ends)
                if latest is not None:
                    start = start.later(latest.normalized(calendar))
                group_end[group_id] = self._schedule_group(grouping.group(group_id), start, topics_by_id, schedule)
                pending.remove(group_id)
                progressed = True

        if pending:
            self._schedule_stalled_groups(
                pending,
                grouping,
                group_prereqs,
                group_end,
                normalized_start,
                topics_by_id,
                schedule,
                course_id=course_id,
            )

        end_cursor = normalized_start
        for cursor in group_end.values():
            end_cursor = end_cursor.later(cursor)
        schedule.end_cursor = end_cursor

        if schedule.windows:
            schedule.course_start = min(window.start for window in schedule.windows.values())
            schedule.course_end = max(window.end for window in schedule.windows.values())
        else:
            schedule.course_start = normalized_start.date
        if schedule.course_end is None or end_cursor.date > schedule.course_end:
            schedule.course_end = end_cursor.date
        return schedule

    def _group_prerequisites(
        self,
        topic_ids: Sequence[str],
        grouping: CorequisiteGrouping,
        effective_prerequisites: Mapping[str, Sequence[str]],
    ) -> Dict[str, Set[str]]:
        group_prereqs: Dict[str, Set[str]] = {group.representative_id: set() for group in grouping.groups}
        for topic_id in topic_ids:
            group_id = grouping.group_by_topic.get(topic_id)
            if group_id is None:
                continue
            for prereq_id in effective_prerequisites.get(topic_id, ()) or ():
                prereq_group = grouping.group_by_topic.get(prereq_id)
                if prereq_group is None or prereq_group == group_id:
                    continue
                group_prereqs[group_id].add(prereq_group)
        return group_prereqs

    def _schedule_stalled_groups(
        self,
        pending: List[str],
        grouping: CorequisiteGrouping,
        group_prereqs: Mapping[str, Set[str]],
        group_end: Dict[str, WorkCursor],
        normalized_start: WorkCursor,
        topics_by_id: Mapping[str, Topic],
        schedule: CourseSchedule,
        *,
        course_id: Optional[str],
    ) -> None:
        stalled_topics = [
            topic_id
            for group_id in pending
            for topic_id in grouping.group(group_id).member_ids  # type: ignore[union-attr]
        ]
        if self._cycle_policy == "strict":
            raise CyclicDependencyError(stalled_topics, course_id=course_id)

        logger.warning(
            "Prerequisite cycle detected for course %s; scheduling %d group(s) best-effort: %s",
            course_id,
            len(pending),
            ", ".join(stalled_topics),
        )
        emit_event(
            "schedule_cycle_fallback",
            course_id=course_id,
            group_count=len(pending),
            topic_ids=stalled_topics,
        )

        calendar = self._calendar
        still_pending = set(pending)
        trailing: Optional[WorkCursor] = None
        for group in grouping.groups:
            group_id = group.representative_id
            if group_id not in still_pending:
                known_end = group_end.get(group_id)
                if known_end is not None:
                    trailing = known_end if trailing is None else trailing.later(known_end)
                continue

            start = normalized_start if trailing is None else trailing.normalized(calendar)
            known_prereq_end = _latest(group_end.get(prereq) for prereq in group_prereqs[group_id])
            if known_prereq_end is not None:
                start = start.later(known_prereq_end.normalized(calendar))

            end = self._schedule_group(group, start, topics_by_id, schedule)
            group_end[group_id] = end
            still_pending.discard(group_id)
            schedule.fallback_group_ids.append(group_id)
            trailing = end if trailing is None else trailing.later(end)

    def _schedule_group(
        self,
        group: Optional[TopicGroup],
        start: WorkCursor,
        topics_by_id: Mapping[str, Topic],
        schedule: CourseSchedule,
    ) -> WorkCursor:
        cursor = start
        if group is None:
            return cursor
        for topic_id in group.member_ids:
            topic = topics_by_id.get(topic_id)
            if topic is None:
                continue
            cursor = cursor.normalized(self._calendar)
            end_date, cursor_after = cursor.allocate(topic_hours(topic), self._calendar)
            schedule.windows[topic_id] = TopicWindow(start=cursor.date, end=end_date)
            cursor = cursor_after
        return cursor


def _latest(cursors: Iterable[Optional[WorkCursor]]) -> Optional[WorkCursor]:
    latest: Optional[WorkCursor] = None
    for cursor in cursors:
        if cursor is None:
            continue
        latest = cursor if latest is None else latest.later(cursor)
    return latest


__all__ = ["CourseSchedule", "CyclePolicy", "TopicWindow", "TopologicalScheduler"]
