"""Tests for the cached exchange-rate client."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from backend.services import exchange_rates


@pytest.fixture(autouse=True)
def empty_cache():
    exchange_rates.clear_cache()
    yield
    exchange_rates.clear_cache()


def test_rates_are_fetched_once_per_base() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json={"base": "USD", "rates": {"BRL": 5.0}, "date": "2024-05-01"})

    transport = httpx.MockTransport(handler)

    async def scenario():
        first = await exchange_rates.get_rates("usd", transport=transport)
        second = await exchange_rates.get_rates("USD", transport=transport)
        return first, second

    first, second = asyncio.run(scenario())
    assert first == {"base": "USD", "rates": {"BRL": 5.0}, "date": "2024-05-01"}
    assert second is first
    assert calls == ["/v4/latest/USD"]


def test_upstream_error_raises() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    with pytest.raises(httpx.HTTPStatusError):
        asyncio.run(exchange_rates.get_rates("EUR", transport=transport))
