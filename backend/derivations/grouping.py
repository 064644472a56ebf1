"""Grouping engine.

Partitions a flat record collection into an ordered, possibly two-level,
keyed structure for display. Groups are rebuilt from scratch on every call;
records with a missing key land in a sentinel bucket and are never dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable, Sequence

from backend.derivations.records import field, text_or_none

NO_STATUS = "No Status"
NO_MONTH = "No Month"
NO_TYPE = "Other"

STATUS_ORDER = {
    "To-do": 1,
    "Pause": 2,
    "In Progress": 3,
    "In progress": 3,
    "Done": 5,
    "DNF": 6,
}
UNRANKED = 99

CATEGORY_BUCKETS = {
    "Movie": "Movies",
    "Series": "Series",
    "Book": "Books",
}

MEDIA_TABS = {
    "movies-series": ({"Movie", "Series"}, ("Movies", "Series")),
    "books": ({"Book"}, ("Books",)),
    "all": (None, ()),
}

_MONTH_FORMATS = ("%B %Y", "%b %Y", "%Y-%m-%d", "%Y-%m")


@dataclass
class SecondaryRule:
    key: Callable[[Any], Any]
    sentinel: str
    expected: Sequence[str] = ()
    order: Callable[[str], Any] | None = None


def normalize_status(value: Any) -> str:
    status = text_or_none(value)
    if status is None:
        return NO_STATUS
    if status == "Not started":
        return "To-do"
    return status


def _bucket_key(value: Any, sentinel: str) -> str:
    key = text_or_none(value)
    return key if key is not None else sentinel


def _created_timestamp(record: Any) -> float:
    raw = field(record, "created")
    if not raw:
        return 0.0
    if isinstance(raw, datetime):
        return raw.timestamp()
    try:
        return datetime.fromisoformat(str(raw).replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def sort_newest_first(records: Iterable[Any]) -> list:
    # reverse sort is stable, undated records keep input order after dated ones
    return sorted(records, key=_created_timestamp, reverse=True)


def group_records(
    records: Iterable[Any],
    key: Callable[[Any], Any],
    *,
    priority: dict[str, int] | None = None,
    sentinel: str = NO_STATUS,
    secondary: dict[str, SecondaryRule] | None = None,
    item_sort: Callable[[list], list] | None = None,
) -> dict:
    """Group ``records`` by ``key``.

    Keys listed in ``priority`` come first, by rank; every other key follows in
    the order it was first seen. A primary key with a ``secondary`` rule maps
    to a dict of sub-buckets instead of a list; the rule's ``expected`` labels
    are always present, even when empty.
    """
    priority = priority or {}
    secondary = secondary or {}
    flat: dict[str, list] = {}
    for record in records:
        flat.setdefault(_bucket_key(key(record), sentinel), []).append(record)

    ordered_keys = sorted(flat.keys(), key=lambda k: priority.get(k, UNRANKED))
    grouped: dict = {}
    for primary in ordered_keys:
        items = flat[primary]
        rule = secondary.get(primary)
        if rule is None:
            grouped[primary] = item_sort(items) if item_sort else list(items)
            continue
        buckets: dict[str, list] = {label: [] for label in rule.expected}
        for record in items:
            buckets.setdefault(_bucket_key(rule.key(record), rule.sentinel), []).append(record)
        bucket_order = list(buckets.keys())
        if rule.order is not None:
            bucket_order = sorted(bucket_order, key=rule.order)
        grouped[primary] = {
            label: (item_sort(buckets[label]) if item_sort else buckets[label]) for label in bucket_order
        }
    return grouped


def count_leaf_records(groups: dict) -> int:
    total = 0
    for value in groups.values():
        if isinstance(value, dict):
            total += sum(len(items) for items in value.values())
        else:
            total += len(value)
    return total


def _parse_month(value: str) -> datetime | None:
    for fmt in _MONTH_FORMATS:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def month_label(value: Any) -> str | None:
    """Normalize a monthly-tracking reference to a ``"March 2024"`` label."""
    if isinstance(value, dict):
        for name in ("name", "title", "label", "month", "date"):
            if text_or_none(value.get(name)):
                value = value[name]
                break
        else:
            return None
    raw = text_or_none(value)
    if raw is None:
        return None
    parsed = _parse_month(raw)
    if parsed is None:
        return raw
    return parsed.strftime("%B %Y")


def month_order(label: str):
    if label == NO_MONTH:
        return (2, 0, 0)
    parsed = _parse_month(label)
    if parsed is None:
        return (1, 0, 0)
    return (0, -parsed.year, -parsed.month)


def collect_months(records: Iterable[Any]) -> list[str]:
    seen: list[str] = []
    for record in records:
        label = month_label(field(record, "monthly_tracking"))
        if label and label not in seen:
            seen.append(label)
    return seen


def category_bucket(record: Any) -> str | None:
    category = text_or_none(field(record, "category"))
    if category is None:
        return None
    return CATEGORY_BUCKETS.get(category, category)


def filter_media_tab(records: Iterable[Any], tab: str) -> list:
    categories, _ = MEDIA_TABS.get(tab, MEDIA_TABS["all"])
    if categories is None:
        return list(records)
    return [record for record in records if field(record, "category") in categories]


def group_media(
    records: Sequence[Any],
    *,
    tab: str = "movies-series",
    group_done_by_month: bool = False,
    history: Sequence[Any] | None = None,
) -> dict:
    """Status -> records view model for the media gallery.

    The To-do group is split by type; with ``group_done_by_month`` the Done
    group is split by month, and every month seen in ``history`` keeps a
    bucket even when no filtered record falls in it.
    """
    filtered = filter_media_tab(records, tab)
    _, expected_types = MEDIA_TABS.get(tab, MEDIA_TABS["all"])
    secondary = {
        "To-do": SecondaryRule(key=category_bucket, sentinel=NO_TYPE, expected=expected_types),
    }
    if group_done_by_month:
        months = collect_months(history if history is not None else records)
        secondary["Done"] = SecondaryRule(
            key=lambda record: month_label(field(record, "monthly_tracking")),
            sentinel=NO_MONTH,
            expected=months,
            order=month_order,
        )
    return group_records(
        filtered,
        lambda record: normalize_status(field(record, "status")),
        priority=STATUS_ORDER,
        sentinel=NO_STATUS,
        secondary=secondary,
        item_sort=sort_newest_first,
    )


def serialize_groups(groups: dict, item: Callable[[Any], Any] = lambda value: value) -> list[dict]:
    payload = []
    for key, value in groups.items():
        if isinstance(value, dict):
            buckets = [
                {"key": label, "count": _unit_count(items), "items": [item(entry) for entry in items]}
                for label, items in value.items()
            ]
            payload.append({"key": key, "count": sum(b["count"] for b in buckets), "buckets": buckets})
        else:
            payload.append({"key": key, "count": _unit_count(value), "items": [item(entry) for entry in value]})
    return payload


def _unit_count(items: list) -> int:
    return sum(len(getattr(entry, "members", None) or [entry]) for entry in items)
