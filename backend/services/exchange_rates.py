from __future__ import annotations

import logging
import time

import httpx

from backend.settings import get_settings

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 3600

_cache: dict[str, tuple[float, dict]] = {}


def clear_cache() -> None:
    _cache.clear()


async def get_rates(base: str = "USD", transport: httpx.AsyncBaseTransport | None = None) -> dict:
    """``{base, rates, date}`` for ``base``, cached in process for an hour."""
    base = (base or "USD").upper()
    cached = _cache.get(base)
    now = time.monotonic()
    if cached and now - cached[0] < CACHE_TTL_SECONDS:
        return cached[1]
    url = f"{get_settings().exchange_rate_api_url.rstrip('/')}/{base}"
    async with httpx.AsyncClient(timeout=15, transport=transport) as client:
        response = await client.get(url)
    response.raise_for_status()
    data = response.json()
    payload = {"base": data.get("base") or base, "rates": data.get("rates") or {}, "date": data.get("date")}
    _cache[base] = (now, payload)
    logger.info("Fetched %s exchange rates for %s", len(payload["rates"]), base)
    return payload
