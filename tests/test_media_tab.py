"""Tests for how media cards present a record's status."""

from __future__ import annotations

import pytest

from dashboard.constants import MEDIA_STATUSES
from dashboard.tabs.media_tab import display_status, status_options


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Not started", "To-do"),
        ("To-do", "To-do"),
        (None, "To-do"),
        ("  ", "To-do"),
        (" Done ", "Done"),
        ("In Progress", "In Progress"),
    ],
)
def test_display_status(raw, expected) -> None:
    assert display_status(raw) == expected


def test_not_started_selects_to_do_option() -> None:
    status = display_status("Not started")
    options = status_options(status)
    assert options == MEDIA_STATUSES
    assert options.index(status) == MEDIA_STATUSES.index("To-do")


def test_unknown_status_is_kept_as_first_option() -> None:
    options = status_options("Archived")
    assert options[0] == "Archived"
    assert options[1:] == MEDIA_STATUSES
