from __future__ import annotations

import base64
import logging
from dataclasses import dataclass

import httpx

from backend.settings import get_settings

logger = logging.getLogger(__name__)

TRANSPARENT_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)
LONG_CACHE = "public, max-age=31536000, immutable"
NO_CACHE = "no-cache"
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@dataclass
class ProxiedImage:
    content: bytes
    content_type: str
    cache_control: str

    @property
    def is_fallback(self) -> bool:
        return self.cache_control == NO_CACHE


def fallback_image() -> ProxiedImage:
    return ProxiedImage(content=TRANSPARENT_PIXEL, content_type="image/png", cache_control=NO_CACHE)


def _looks_like_error_body(content_type: str) -> bool:
    # Expired signed S3 links answer with an XML error document.
    lowered = content_type.lower()
    return "xml" in lowered or "text" in lowered


async def fetch_image(
    url: str,
    *,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProxiedImage:
    timeout = get_settings().image_proxy_timeout if timeout is None else timeout
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
            response = await client.get(url, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as exc:
        logger.warning("Image fetch failed for %s: %s", url, exc)
        return fallback_image()
    if response.status_code >= 400:
        return fallback_image()
    content_type = response.headers.get("content-type", "")
    if _looks_like_error_body(content_type):
        return fallback_image()
    return ProxiedImage(
        content=response.content,
        content_type=content_type or "application/octet-stream",
        cache_control=LONG_CACHE,
    )
