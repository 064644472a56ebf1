"""Tests for habit heatmaps and streaks."""

from __future__ import annotations

from datetime import date

from backend.derivations.habits import build_habit_heatmap, completed_dates, completion_rate, current_streak


def test_heatmap_grid_covers_the_year() -> None:
    heatmap = build_habit_heatmap([{"date": "2024-01-01"}, "2024-12-31"], year=2024)
    assert len(heatmap["z"]) == 7
    assert len(heatmap["z"][0]) == 53
    assert heatmap["z"][0][0] == 1
    assert heatmap["z"][1][0] == 0
    assert heatmap["z"][1][52] == 1
    assert heatmap["z"][2][52] is None
    assert heatmap["x_labels"][0] == "Jan"
    assert heatmap["x_labels"][4] == "Feb"
    assert heatmap["hover_text"][0][0] == "2024-01-01 • done"


def test_completed_dates_skips_garbage() -> None:
    days = ["2024-03-01", {"date": "2024-03-02T08:00:00"}, {"date": None}, "not a date", date(2024, 3, 3)]
    assert completed_dates(days) == {date(2024, 3, 1), date(2024, 3, 2), date(2024, 3, 3)}


def test_streak_counts_back_from_today() -> None:
    days = ["2024-05-08", "2024-05-09", "2024-05-10"]
    assert current_streak(days, date(2024, 5, 10)) == 3


def test_streak_survives_until_today_is_done() -> None:
    days = ["2024-05-08", "2024-05-09"]
    assert current_streak(days, date(2024, 5, 10)) == 2
    assert current_streak(days, date(2024, 5, 11)) == 0


def test_completion_rate() -> None:
    days = ["2024-01-01", "2024-01-05", "2024-01-10", "2024-02-01"]
    assert completion_rate(days, date(2024, 1, 1), date(2024, 1, 10)) == 30.0
    assert completion_rate(days, date(2024, 1, 10), date(2024, 1, 1)) == 0.0
