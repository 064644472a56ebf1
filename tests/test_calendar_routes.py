"""Tests for calendar events and event people."""

from __future__ import annotations

from datetime import date, datetime

import pytest

from backend import repositories
from backend.services import google_calendar_service


def test_build_event_body_defaults_end() -> None:
    timed = google_calendar_service.build_event_body(
        {"summary": "Standup", "start": datetime(2024, 5, 1, 9, 0)}, "America/Sao_Paulo"
    )
    assert timed["end"] == {"dateTime": "2024-05-01T10:00:00", "timeZone": "America/Sao_Paulo"}
    all_day = google_calendar_service.build_event_body({"summary": "Trip", "start": date(2024, 5, 1)}, "UTC")
    assert all_day["start"] == {"date": "2024-05-01"}
    assert all_day["end"] == {"date": "2024-05-02"}


def test_normalize_event() -> None:
    event = google_calendar_service.normalize_event(
        {"id": "e1", "start": {"date": "2024-05-01"}, "end": {"date": "2024-05-02"}}, "primary"
    )
    assert event["summary"] == "(No title)"
    assert event["all_day"] is True
    assert event["calendar_id"] == "primary"


def test_events_require_connected_calendar(client, monkeypatch) -> None:
    async def get_google_tokens(user_id):
        return None

    monkeypatch.setattr(repositories, "get_google_tokens", get_google_tokens)
    response = client.get("/api/google-calendar/events")
    assert response.status_code == 401
    assert response.json() == {"error": "Google Calendar not connected"}


def test_failing_calendar_is_skipped(client, monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_ALLOWED_CALENDAR_IDS", "work@example.com")
    from backend.settings import reset_settings

    reset_settings()

    async def get_google_tokens(user_id):
        return {"access_token": "x"}

    async def list_events(user_id, calendar_id, time_min, time_max):
        if calendar_id == "work@example.com":
            raise google_calendar_service.CalendarError("forbidden")
        return [
            {"id": "b", "calendar_id": calendar_id, "summary": "Later", "start": "2024-05-01T15:00:00Z"},
            {"id": "a", "calendar_id": calendar_id, "summary": "Earlier", "start": "2024-05-01T09:00:00Z"},
        ]

    monkeypatch.setattr(repositories, "get_google_tokens", get_google_tokens)
    monkeypatch.setattr(google_calendar_service, "list_events", list_events)
    response = client.get("/api/google-calendar/events", params={"start": "2024-05-01", "end": "2024-05-02"})
    assert response.status_code == 200
    assert [event["id"] for event in response.json()["events"]] == ["a", "b"]


def test_end_before_start_is_bad_request(client) -> None:
    response = client.get("/api/google-calendar/events", params={"start": "2024-05-02", "end": "2024-05-01"})
    assert response.status_code == 400


@pytest.fixture
def people(monkeypatch):
    state = {"people": [{"id": "p1", "name": "Ana", "image_url": "https://img/ana.png", "nicknames": []}]}

    async def list_people(user_id):
        return state["people"]

    async def link_person_to_event(user_id, event_id, person_id):
        if person_id not in {person["id"] for person in state["people"]}:
            raise LookupError("Person not found")
        return "link-1"

    monkeypatch.setattr(repositories, "list_people", list_people)
    monkeypatch.setattr(repositories, "link_person_to_event", link_person_to_event)
    return state


def test_people_payload_has_image_alias(client, people) -> None:
    person = client.get("/api/people").json()["people"][0]
    assert person["image"] == person["image_url"] == "https://img/ana.png"


def test_linking_unknown_person_is_not_found(client, people) -> None:
    response = client.post("/api/events/evt-1/people", json={"personId": "ghost"})
    assert response.status_code == 404
    assert response.json() == {"error": "Person not found"}
