"""Corequisite grouping: topics linked by corequisite edges run as one unit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence


class UnionFind:
    """Disjoint sets over the index range ``0..size-1``."""

    def __init__(self, size: int) -> None:
        self._parent = list(range(size))
        self._size = [1] * size

    def find(self, index: int) -> int:
        root = index
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[index] != root:
            self._parent[index], index = root, self._parent[index]
        return root

    def union(self, left: int, right: int) -> int:
        left_root = self.find(left)
        right_root = self.find(right)
        if left_root == right_root:
            return left_root
        if self._size[left_root] < self._size[right_root]:
            left_root, right_root = right_root, left_root
        self._parent[right_root] = left_root
        self._size[left_root] += self._size[right_root]
        return left_root


@dataclass(frozen=True)
class TopicGroup:
    representative_id: str
    member_ids: tuple[str, ...]
    first_index: int


@dataclass
class CorequisiteGrouping:
    groups: List[TopicGroup] = field(default_factory=list)
    group_by_topic: Dict[str, str] = field(default_factory=dict)

    def group(self, representative_id: str) -> Optional[TopicGroup]:
        for group in self.groups:
            if group.representative_id == representative_id:
                return group
        return None

    def index_of(self, topic_id: str) -> int:
        """Position of the topic's group in schedule order, ``-1`` when ungrouped."""
        representative = self.group_by_topic.get(topic_id)
        if representative is None:
            return -1
        for index, group in enumerate(self.groups):
            if group.representative_id == representative:
                return index
        return -1


def group_corequisites(
    topic_ids: Sequence[str],
    corequisite_map: Mapping[str, Sequence[str]],
) -> CorequisiteGrouping:
    """Merge topics connected through corequisite edges into ordered groups.

    Edges may be declared on either side; ids outside ``topic_ids`` are
    ignored. Groups are ordered by the lowest list index among their members
    and each group's representative is that first member, so the output does
    not depend on union-find root choice.
    """
    index_by_id: Dict[str, int] = {}
    for index, topic_id in enumerate(topic_ids):
        index_by_id.setdefault(topic_id, index)

    sets = UnionFind(len(topic_ids))
    for topic_id, index in index_by_id.items():
        for coreq_id in corequisite_map.get(topic_id, ()) or ():
            other = index_by_id.get(coreq_id)
            if other is None:
                continue
            sets.union(index, other)

    members_by_root: Dict[int, List[int]] = {}
    for topic_id, index in index_by_id.items():
        members_by_root.setdefault(sets.find(index), []).append(index)

    groups: List[TopicGroup] = []
    for indices in members_by_root.values():
        ordered = sorted(indices)
        members = tuple(topic_ids[i] for i in ordered)
        groups.append(TopicGroup(representative_id=members[0], member_ids=members, first_index=ordered[0]))
    groups.sort(key=lambda group: group.first_index)

    group_by_topic = {
        member: group.representative_id for group in groups for member in group.member_ids
    }
    return CorequisiteGrouping(groups=groups, group_by_topic=group_by_topic)


__all__ = ["CorequisiteGrouping", "TopicGroup", "UnionFind", "group_corequisites"]
