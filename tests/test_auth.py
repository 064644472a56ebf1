"""Tests for backend token and user checks."""

from __future__ import annotations

from fastapi.testclient import TestClient

from backend import repositories
from backend.settings import reset_settings


def _client(app, monkeypatch):
    async def get_latest_watched_video(user_id):
        return None

    monkeypatch.setattr(repositories, "get_latest_watched_video", get_latest_watched_video)
    return TestClient(app)


def test_missing_token_is_unauthorized(app, monkeypatch) -> None:
    response = _client(app, monkeypatch).get("/api/youtube/recently-watched", headers={"X-User-Id": "user-1"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


def test_wrong_token_is_unauthorized(app, monkeypatch) -> None:
    response = _client(app, monkeypatch).get(
        "/api/youtube/recently-watched", headers={"X-User-Id": "user-1", "X-Backend-Token": "nope"}
    )
    assert response.status_code == 401


def test_missing_user_is_unauthorized(app, monkeypatch) -> None:
    response = _client(app, monkeypatch).get(
        "/api/youtube/recently-watched", headers={"X-Backend-Token": "test-secret"}
    )
    assert response.status_code == 401


def test_user_outside_allow_list_is_forbidden(app, monkeypatch) -> None:
    monkeypatch.setenv("ALLOWED_USERS", "alice,bob")
    reset_settings()
    response = _client(app, monkeypatch).get(
        "/api/youtube/recently-watched", headers={"X-User-Id": "mallory", "X-Backend-Token": "test-secret"}
    )
    assert response.status_code == 403
    assert response.json() == {"error": "User not allowed"}


def test_valid_headers_pass(app, monkeypatch) -> None:
    monkeypatch.setenv("ALLOWED_USERS", "alice,bob")
    reset_settings()
    response = _client(app, monkeypatch).get(
        "/api/youtube/recently-watched", headers={"X-User-Id": "bob", "X-Backend-Token": "test-secret"}
    )
    assert response.status_code == 200
    assert response.json() == {"video": None}
