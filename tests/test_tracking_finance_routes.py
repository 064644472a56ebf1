"""Tests for the tracking trend and allocation endpoints."""

from __future__ import annotations

import httpx
import pytest

from backend import repositories
from backend.services import exchange_rates


def _entries(count: int) -> list[dict]:
    return [
        {
            "id": f"e{i}",
            "period": "daily",
            "notion_page_id": f"p{i}",
            "title": f"2024-01-{i + 1:02d}",
            "date": f"2024-01-{i + 1:02d}",
            "properties": {"RHR": {"type": "number", "number": 50 + i}},
        }
        for i in range(count)
    ]


def _patch_entries(monkeypatch, entries):
    async def list_tracking_entries(user_id, period):
        return entries

    monkeypatch.setattr(repositories, "list_tracking_entries", list_tracking_entries)


def test_list_entries(client, monkeypatch) -> None:
    _patch_entries(monkeypatch, _entries(2))
    body = client.get("/api/tracking/daily").json()
    assert [entry["id"] for entry in body["entries"]] == ["e0", "e1"]


def test_trend_for_focal_entry(client, monkeypatch) -> None:
    _patch_entries(monkeypatch, _entries(5))
    body = client.get("/api/tracking/daily/e2/trend", params={"metric": "rhr"}).json()
    assert body["metric"] == "rhr"
    assert body["trend"]["focalIndex"] == 2
    assert [point["value"] for point in body["trend"]["points"]] == [50, 51, 52, 53, 54]


def test_trend_is_null_without_enough_points(client, monkeypatch) -> None:
    _patch_entries(monkeypatch, _entries(1))
    assert client.get("/api/tracking/daily/e0/trend").json() == {"metric": "rhr", "trend": None}


def test_unknown_metric_is_bad_request(client, monkeypatch) -> None:
    _patch_entries(monkeypatch, _entries(2))
    response = client.get("/api/tracking/daily/e0/trend", params={"metric": "mood"})
    assert response.status_code == 400
    assert response.json() == {"error": "Unknown metric: mood"}


def test_sync_requires_configured_database(client) -> None:
    response = client.post("/api/tracking/weekly/sync")
    assert response.status_code == 400


def _patch_finances(monkeypatch, rates=None, rates_error=False):
    async def list_assets(user_id):
        return [
            {"id": "a1", "name": "Fund", "symbol": None, "asset_type": "ETF", "total_worth": 300, "currency": "USD"},
            {"id": "a2", "name": "Bond", "symbol": None, "asset_type": "Fixed", "total_worth": 100, "currency": "USD"},
        ]

    async def list_accounts(user_id):
        return [{"id": "c1", "name": "Checking", "balance": 100, "currency": "USD"}]

    async def list_investments(user_id):
        return []

    async def get_rates(base="USD"):
        if rates_error:
            raise httpx.ConnectError("offline")
        return {"base": "USD", "rates": rates or {}, "date": None}

    monkeypatch.setattr(repositories, "list_assets", list_assets)
    monkeypatch.setattr(repositories, "list_accounts", list_accounts)
    monkeypatch.setattr(repositories, "list_investments", list_investments)
    monkeypatch.setattr(exchange_rates, "get_rates", get_rates)


def test_allocation_converts_and_sorts(client, monkeypatch) -> None:
    _patch_finances(monkeypatch, rates={"BRL": 2.0})
    body = client.get("/api/finances/allocation", params={"currency": "brl"}).json()
    assert body["currency"] == "BRL"
    assert body["total"] == 1000
    assert body["slices"] == [
        {"category": "Fund", "worth": 600, "percentage": 60},
        {"category": "Bond", "worth": 200, "percentage": 20},
        {"category": "Cash", "worth": 200, "percentage": 20},
    ]


def test_allocation_without_rates_stays_unconverted(client, monkeypatch) -> None:
    _patch_finances(monkeypatch, rates_error=True)
    body = client.get("/api/finances/allocation", params={"currency": "EUR", "group_by": "type"}).json()
    assert [s["category"] for s in body["slices"]] == ["ETF", "Fixed", "Cash"]
    assert body["total"] == 500


def test_allocation_rejects_unknown_grouping(client, monkeypatch) -> None:
    _patch_finances(monkeypatch)
    response = client.get("/api/finances/allocation", params={"group_by": "color"})
    assert response.status_code == 400


def test_exchange_rates_upstream_failure_is_bad_gateway(client, monkeypatch) -> None:
    _patch_finances(monkeypatch, rates_error=True)
    response = client.get("/api/finances/exchange-rates")
    assert response.status_code == 502
    assert response.json() == {"error": "Failed to fetch exchange rates"}


def test_assets_listing(client, monkeypatch) -> None:
    _patch_finances(monkeypatch)
    body = client.get("/api/finances/assets").json()
    assert [asset["name"] for asset in body["assets"]] == ["Fund", "Bond"]
    assert body["accounts"][0]["balance"] == 100


def test_exchange_rates_fetched_for_valid_base(client, monkeypatch) -> None:
    seen = []

    async def get_rates(base="USD"):
        seen.append(base)
        return {"base": base.upper(), "rates": {"USD": 1.1}, "date": "2024-05-01"}

    monkeypatch.setattr(exchange_rates, "get_rates", get_rates)
    body = client.get("/api/finances/exchange-rates", params={"base": "eur"}).json()
    assert body == {"base": "EUR", "rates": {"USD": 1.1}, "date": "2024-05-01"}
    assert seen == ["eur"]


@pytest.mark.parametrize("base", ["EURO", "E1R", "../x", "us"])
def test_exchange_rates_reject_malformed_base(client, monkeypatch, base) -> None:
    calls = []

    async def get_rates(base="USD"):
        calls.append(base)
        return {"base": base, "rates": {}, "date": None}

    monkeypatch.setattr(exchange_rates, "get_rates", get_rates)
    response = client.get("/api/finances/exchange-rates", params={"base": base})
    assert response.status_code == 400
    assert "error" in response.json()
    assert calls == []


def test_allocation_rejects_malformed_currency(client, monkeypatch) -> None:
    _patch_finances(monkeypatch)
    response = client.get("/api/finances/allocation", params={"currency": "DOLLARS"})
    assert response.status_code == 400
