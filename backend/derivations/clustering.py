"""Collapse mutually related records into single display units."""

from __future__ import annotations

import re
from dataclasses import dataclass, field as dc_field
from typing import Any, Callable, Sequence

from backend.derivations.records import field, text_or_none

_BRACKET_YEAR = re.compile(r"[\(\[]\s*(\d{4})(?:\s*[-–]\s*\d{0,4})?\s*[\)\]]\s*$")


@dataclass
class DisplayUnit:
    members: list = dc_field(default_factory=list)

    @property
    def grouped(self) -> bool:
        return len(self.members) > 1

    @property
    def anchor(self) -> Any:
        return self.members[0]


def extract_bracket_year(title: Any) -> int | None:
    """``"Dune (2021)"`` -> 2021, ``"Dune [1984]"`` -> 1984, else None."""
    text = text_or_none(title)
    if text is None:
        return None
    match = _BRACKET_YEAR.search(text)
    return int(match.group(1)) if match else None


def media_page_id(record: Any) -> str | None:
    return text_or_none(field(record, "notion_page_id"))


def media_related_ids(record: Any) -> list:
    related = field(record, "related_notion_page_ids", [])
    return list(related) if isinstance(related, (list, tuple)) else []


def media_release_year(record: Any) -> int | None:
    return extract_bracket_year(field(record, "name"))


def _sort_members(members: list, sort_key: Callable[[Any], Any]) -> list:
    keyed = [(sort_key(member), position) for position, member in enumerate(members)]
    order = sorted(
        range(len(members)),
        key=lambda i: (keyed[i][0] is None, keyed[i][0] if keyed[i][0] is not None else 0, keyed[i][1]),
    )
    return [members[i] for i in order]


def cluster_related(
    records: Sequence[Any],
    *,
    id_of: Callable[[Any], Any] = media_page_id,
    related_of: Callable[[Any], Sequence[Any]] = media_related_ids,
    sort_key: Callable[[Any], Any] = media_release_year,
) -> list[DisplayUnit]:
    index_by_id: dict = {}
    for position, record in enumerate(records):
        native_id = id_of(record)
        if native_id is not None and native_id not in index_by_id:
            index_by_id[native_id] = position

    adjacency: list[set[int]] = [set() for _ in records]
    for position, record in enumerate(records):
        for ref in related_of(record) or []:
            target = index_by_id.get(ref)
            # references outside the current list are ignored
            if target is None or target == position:
                continue
            adjacency[position].add(target)
            adjacency[target].add(position)

    component_of = [-1] * len(records)
    components: list[list[int]] = []
    for start in range(len(records)):
        if component_of[start] != -1:
            continue
        component_id = len(components)
        members = []
        stack = [start]
        component_of[start] = component_id
        while stack:
            current = stack.pop()
            members.append(current)
            for neighbour in adjacency[current]:
                if component_of[neighbour] == -1:
                    component_of[neighbour] = component_id
                    stack.append(neighbour)
        components.append(sorted(members))

    units = []
    for members in components:
        items = [records[i] for i in members]
        if len(items) > 1:
            items = _sort_members(items, sort_key)
        units.append(DisplayUnit(members=items))
    return units


def cluster_groups(groups: dict, **options) -> dict:
    """Apply :func:`cluster_related` to every leaf of a grouping result."""
    clustered: dict = {}
    for key, value in groups.items():
        if isinstance(value, dict):
            clustered[key] = {label: cluster_related(items, **options) for label, items in value.items()}
        else:
            clustered[key] = cluster_related(value, **options)
    return clustered
