"""Tests for related-record clustering."""

from __future__ import annotations

import random

import pytest

from backend.derivations.clustering import cluster_groups, cluster_related, extract_bracket_year


def _media(page_id: str, name: str, related: list | None = None) -> dict:
    return {"notion_page_id": page_id, "name": name, "related_notion_page_ids": related or []}


def test_extract_bracket_year() -> None:
    assert extract_bracket_year("Dune (2021)") == 2021
    assert extract_bracket_year("Dune [1984]") == 1984
    assert extract_bracket_year("Show (2019-2021)") == 2019
    assert extract_bracket_year("1984") is None
    assert extract_bracket_year(None) is None


def test_unrelated_records_stay_single() -> None:
    records = [_media("a", "A"), _media("b", "B")]
    units = cluster_related(records)
    assert [unit.members for unit in units] == [[records[0]], [records[1]]]
    assert not any(unit.grouped for unit in units)


def test_one_sided_relation_groups_both_sorted_by_year() -> None:
    remake = _media("a", "Dune (2021)", related=["b"])
    original = _media("b", "Dune (1984)")
    other = _media("c", "Arrival (2016)")
    units = cluster_related([remake, other, original])
    assert len(units) == 2
    assert units[0].grouped
    assert units[0].members == [original, remake]
    assert units[1].members == [other]


def test_relations_are_transitive() -> None:
    records = [_media("a", "A (2001)", ["b"]), _media("b", "B (2002)", ["c"]), _media("c", "C (2003)")]
    units = cluster_related(records)
    assert len(units) == 1
    assert len(units[0].members) == 3


def test_references_outside_the_list_are_ignored() -> None:
    units = cluster_related([_media("a", "A", ["missing", "a"])])
    assert len(units) == 1
    assert not units[0].grouped


def test_members_without_year_sort_last_in_input_order() -> None:
    first = _media("a", "Untitled one", ["b", "c"])
    second = _media("b", "Untitled two")
    dated = _media("c", "Dated (1999)")
    units = cluster_related([first, second, dated])
    assert units[0].members == [dated, first, second]


def test_cluster_groups_preserves_buckets() -> None:
    groups = {"To-do": {"Movies": [_media("a", "A")], "Series": []}, "Done": [_media("b", "B")]}
    clustered = cluster_groups(groups)
    assert list(clustered["To-do"]) == ["Movies", "Series"]
    assert clustered["To-do"]["Series"] == []
    assert len(clustered["Done"]) == 1


def _member_ids(units) -> list:
    return [[member["notion_page_id"] for member in unit.members] for unit in units]


def test_clustering_twice_gives_same_units() -> None:
    chain = [_media(f"p{i}", f"Part {i} ({2000 + i})", [f"p{i + 1}"]) for i in range(5)]
    loose = [_media("x", "Loose"), _media("y", "Other (1990)")]
    records = chain + loose
    random.Random(7).shuffle(records)

    first = cluster_related(records)
    second = cluster_related(records)
    assert _member_ids(first) == _member_ids(second)
    assert sorted(len(unit.members) for unit in first) == [1, 1, 5]


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_chained_relations_cluster_regardless_of_order(seed: int) -> None:
    chain = [_media(f"p{i}", f"Part {i} ({2000 + i})", [f"p{i + 1}"]) for i in range(4)]
    records = list(chain)
    random.Random(seed).shuffle(records)
    units = cluster_related(records)
    assert _member_ids(units) == [["p0", "p1", "p2", "p3"]]
