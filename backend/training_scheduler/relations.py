"""Effective prerequisite/corequisite resolution.

Topics are sequential by default: without an explicit prerequisite entry a
topic waits for the whole previous corequisite group. Explicit entries,
including explicitly empty ones, always win.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

from .grouping import group_corequisites

RelationMap = Dict[str, List[str]]


def dedupe_ids(ids: Optional[Iterable[Any]]) -> List[str]:
    seen: Set[str] = set()
    ordered: List[str] = []
    for entry in ids or ():
        if entry is None:
            continue
        value = str(entry)
        if not value or value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


def normalize_relation_map(value: Any, keep: Optional[Set[str]] = None) -> RelationMap:
    """Stringify and filter a relation map to ids in ``keep``.

    A declared empty list is kept as an explicit "no relation". A list that
    only becomes empty because every entry was foreign is dropped, so that
    topic falls back to the sequential default.
    """
    if not isinstance(value, Mapping):
        return {}
    normalized: RelationMap = {}
    for key, entries in value.items():
        topic_id = str(key)
        if keep is not None and topic_id not in keep:
            continue
        if not isinstance(entries, (list, tuple, set)):
            continue
        declared = dedupe_ids(entries)
        filtered = [entry for entry in declared if keep is None or entry in keep]
        if filtered or not declared:
            normalized[topic_id] = filtered
    return normalized


def effective_corequisites(topic_ids: Sequence[str], corequisite_map: Mapping[str, Sequence[str]]) -> RelationMap:
    return {
        topic_id: list(corequisite_map[topic_id]) if topic_id in corequisite_map else []
        for topic_id in topic_ids
    }


def effective_prerequisites(
    topic_ids: Sequence[str],
    prerequisite_map: Mapping[str, Sequence[str]],
    corequisite_map: Mapping[str, Sequence[str]],
) -> RelationMap:
    grouping = group_corequisites(topic_ids, corequisite_map)
    effective: RelationMap = {}
    for index, topic_id in enumerate(topic_ids):
        if topic_id in prerequisite_map:
            effective[topic_id] = list(prerequisite_map[topic_id])
            continue
        group_index = grouping.index_of(topic_id)
        if group_index > 0:
            effective[topic_id] = list(grouping.groups[group_index - 1].member_ids)
        elif group_index == -1 and index > 0:
            effective[topic_id] = [topic_ids[index - 1]]
        else:
            effective[topic_id] = []
    return effective


__all__ = [
    "RelationMap",
    "dedupe_ids",
    "effective_corequisites",
    "effective_prerequisites",
    "normalize_relation_map",
]
