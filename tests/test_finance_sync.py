"""Tests for pulling assets, accounts and investments from Notion."""

from __future__ import annotations

from backend import repositories
from backend.services import notion_service
from backend.settings import reset_settings

ASSETS_DB = "assets-db"
INVESTMENTS_DB = "investments-db"

DATABASES = {
    ASSETS_DB: {
        "properties": {
            "Name": {"type": "title", "name": "Name"},
            "Ticker": {"type": "rich_text", "name": "Ticker"},
            "Current Price": {"type": "number", "name": "Current Price"},
            "Type": {"type": "select", "name": "Type"},
        }
    },
    INVESTMENTS_DB: {
        "properties": {
            "Name": {"type": "title", "name": "Name"},
            "Units": {"type": "number", "name": "Units"},
            "Result": {"type": "formula", "name": "Result"},
            "Asset": {"type": "relation", "name": "Asset"},
        }
    },
}

PAGES = {
    ASSETS_DB: [
        {
            "id": "aaaa-1111",
            "properties": {
                "Name": {"type": "title", "title": [{"plain_text": "Vanguard"}]},
                "Ticker": {"type": "rich_text", "rich_text": [{"plain_text": "VWCE"}]},
                "Current Price": {"type": "number", "number": 110.5},
                "Type": {"type": "select", "select": {"name": "ETF"}},
            },
        },
        {"id": "gone-0000", "archived": True, "properties": {}},
    ],
    INVESTMENTS_DB: [
        {
            "id": "iiii-2222",
            "properties": {
                "Name": {"type": "title", "title": [{"plain_text": "VWCE lot"}]},
                "Units": {"type": "number", "number": 3},
                "Result": {"type": "formula", "formula": {"type": "number", "number": 331.5}},
                "Asset": {"type": "relation", "relation": [{"id": "aaaa-1111"}]},
            },
        }
    ],
}


def _configure(monkeypatch) -> None:
    monkeypatch.setenv("NOTION_ASSETS_DB_ID", ASSETS_DB)
    monkeypatch.setenv("NOTION_INVESTMENTS_DB_ID", INVESTMENTS_DB)
    reset_settings()

    async def retrieve_database(database_id):
        return DATABASES[database_id]

    async def query_database(database_id, filter=None, sorts=None):
        return PAGES[database_id]

    monkeypatch.setattr(notion_service, "retrieve_database", retrieve_database)
    monkeypatch.setattr(notion_service, "query_database", query_database)


def _record_writes(monkeypatch) -> list:
    calls = []

    def upsert(kind):
        async def run(user_id, rows):
            calls.append(("upsert", kind, user_id, rows))
            return len(rows)

        return run

    async def prune(kind, user_id, database_id, keep_page_ids):
        calls.append(("prune", kind, database_id, keep_page_ids))
        return 1

    monkeypatch.setattr(repositories, "upsert_assets", upsert("assets"))
    monkeypatch.setattr(repositories, "upsert_accounts", upsert("accounts"))
    monkeypatch.setattr(repositories, "upsert_investments", upsert("investments"))
    monkeypatch.setattr(repositories, "delete_finance_rows_missing_from", prune)
    return calls


def test_sync_without_databases_is_rejected(client) -> None:
    response = client.post("/api/finances/sync")
    assert response.status_code == 400
    assert response.json() == {"error": "Notion finance databases not configured"}


def test_sync_upserts_assets_before_investments(client, monkeypatch) -> None:
    _configure(monkeypatch)
    calls = _record_writes(monkeypatch)

    response = client.post("/api/finances/sync")
    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "synced": {"assets": 1, "investments": 1},
        "removed": {"assets": 1, "investments": 1},
    }
    assert [call[:2] for call in calls] == [
        ("upsert", "assets"),
        ("prune", "assets"),
        ("upsert", "investments"),
        ("prune", "investments"),
    ]
    asset_rows = calls[0][3]
    assert calls[0][2] == "user-1"
    assert asset_rows == [
        {
            "notion_page_id": "aaaa1111",
            "notion_database_id": ASSETS_DB,
            "name": "Vanguard",
            "symbol": "VWCE",
            "current_price": 110.5,
            "asset_type": "ETF",
            "currency": "USD",
        }
    ]
    assert calls[1][2:] == (ASSETS_DB, ["aaaa1111"])
    investment = calls[2][3][0]
    assert investment["asset_page_id"] == "aaaa1111"
    assert investment["quantity"] == 3.0
    assert investment["current_value"] == 331.5


def test_notion_failure_is_bad_gateway(client, monkeypatch) -> None:
    _configure(monkeypatch)
    calls = _record_writes(monkeypatch)

    async def query_database(database_id, filter=None, sorts=None):
        raise notion_service.NotionError("rate limited", status_code=429)

    monkeypatch.setattr(notion_service, "query_database", query_database)
    response = client.post("/api/finances/sync")
    assert response.status_code == 502
    assert response.json() == {"error": "Failed to sync assets from Notion"}
    assert calls == []
