"""Tests for the media grouping engine."""

from __future__ import annotations

from backend.derivations.grouping import (
    NO_MONTH,
    NO_STATUS,
    count_leaf_records,
    group_media,
    group_records,
    month_label,
    normalize_status,
    serialize_groups,
)


def _media(name: str, status: str | None = "Done", category: str = "Movie", **extra) -> dict:
    return {"id": name, "name": name, "status": status, "category": category, **extra}


def test_empty_input_gives_empty_groups() -> None:
    assert group_media([], tab="all") == {}


def test_ranked_statuses_come_first() -> None:
    records = [
        _media("a", "Done"),
        _media("b", "To-do"),
        _media("c", None),
        _media("d", "In Progress"),
    ]
    groups = group_media(records, tab="all")
    assert list(groups) == ["To-do", "In Progress", "Done", NO_STATUS]


def test_unranked_statuses_keep_first_seen_order() -> None:
    records = [_media("a", "Custom B"), _media("b", "Done"), _media("c", "Custom A")]
    groups = group_records(records, lambda r: r["status"], priority={"Done": 5})
    assert list(groups) == ["Done", "Custom B", "Custom A"]


def test_not_started_is_shown_as_todo() -> None:
    assert normalize_status("Not started") == "To-do"
    assert normalize_status("  ") == NO_STATUS


def test_todo_is_split_by_type_with_expected_buckets() -> None:
    movie = _media("m", "To-do", "Movie")
    groups = group_media([movie], tab="movies-series")
    assert groups["To-do"] == {"Movies": [movie], "Series": []}


def test_tab_filters_categories() -> None:
    records = [_media("m", "Done", "Movie"), _media("b", "Done", "Book")]
    groups = group_media(records, tab="books")
    assert [r["id"] for r in groups["Done"]] == ["b"]


def test_records_with_missing_key_are_never_dropped() -> None:
    records = [_media("a", None), _media("b", ""), _media("c", "Done")]
    groups = group_media(records, tab="all")
    assert count_leaf_records(groups) == 3
    assert [r["id"] for r in groups[NO_STATUS]] == ["a", "b"]


def test_items_sorted_newest_first_undated_last() -> None:
    records = [
        _media("old", created="2024-01-01T00:00:00Z"),
        _media("undated"),
        _media("new", created="2024-05-01T00:00:00Z"),
    ]
    groups = group_media(records, tab="all")
    assert [r["id"] for r in groups["Done"]] == ["new", "old", "undated"]


def test_done_by_month_keeps_history_months_and_orders_newest_first() -> None:
    march = _media("march", monthly_tracking="March 2024")
    january = _media("january", monthly_tracking="2024-01-15")
    undated = _media("undated")
    february_book = _media("feb-book", category="Book", monthly_tracking="February 2024")
    records = [march, january, undated]
    groups = group_media(records, tab="movies-series", group_done_by_month=True, history=records + [february_book])
    assert list(groups["Done"]) == ["March 2024", "February 2024", "January 2024", NO_MONTH]
    assert groups["Done"]["February 2024"] == []
    assert groups["Done"][NO_MONTH] == [undated]


def test_month_label_reads_reference_dicts() -> None:
    assert month_label({"title": "2024-03"}) == "March 2024"
    assert month_label({"other": "x"}) is None
    assert month_label("Spring reading") == "Spring reading"


def test_serialize_groups_counts_buckets() -> None:
    groups = group_media([_media("m", "To-do", "Movie"), _media("d", "Done")], tab="movies-series")
    payload = serialize_groups(groups)
    assert payload[0]["key"] == "To-do"
    assert payload[0]["count"] == 1
    assert [b["key"] for b in payload[0]["buckets"]] == ["Movies", "Series"]
    assert payload[1] == {"key": "Done", "count": 1, "items": [groups["Done"][0]]}
