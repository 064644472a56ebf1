from __future__ import annotations

import asyncio

import pytest
from cryptography.fernet import Fernet
from fastapi.testclient import TestClient

from backend import db
from backend.auth import require_user_id
from backend.settings import reset_settings

USER_ID = "user-1"


@pytest.fixture(autouse=True)
def backend_env(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'lifehq.db'}")
    monkeypatch.setenv("TOKEN_ENCRYPTION_KEY", Fernet.generate_key().decode())
    monkeypatch.setenv("BACKEND_SESSION_SECRET", "test-secret")
    for name in (
        "ALLOWED_USERS",
        "NOTION_API_KEY",
        "NOTION_MEDIA_DB_ID",
        "NOTION_HABITS_DB_ID",
        "NOTION_DAILY_TRACKING_DB_ID",
        "NOTION_TRACKING_DB_IDS",
        "NOTION_ASSETS_DB_ID",
        "NOTION_INVESTMENTS_DB_ID",
        "NOTION_PLACES_DB_ID",
        "NOTION_WEBHOOK_SECRET",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    monkeypatch.setattr(db, "_engine", None)
    monkeypatch.setattr(db, "_session_factory", None)
    yield
    reset_settings()


@pytest.fixture
def app():
    from backend.main import app as fastapi_app

    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    app.dependency_overrides[require_user_id] = lambda: USER_ID
    return TestClient(app)


@pytest.fixture
def run_db():
    """Run a coroutine against a fresh SQLite schema, disposing the engine in the same loop."""
    from backend.db_init import init_db

    def runner(scenario):
        async def wrapped():
            await init_db()
            try:
                return await scenario()
            finally:
                await db.get_engine().dispose()

        return asyncio.run(wrapped())

    return runner
