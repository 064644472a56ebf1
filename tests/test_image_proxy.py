"""Tests for the image proxy service and route."""

from __future__ import annotations

import asyncio

import httpx

from backend.services import image_proxy


def _fetch(handler):
    return asyncio.run(image_proxy.fetch_image("https://img.example/a.jpg", transport=httpx.MockTransport(handler)))


def test_image_is_passed_through_with_long_cache() -> None:
    image = _fetch(lambda request: httpx.Response(200, content=b"\xff\xd8jpeg", headers={"content-type": "image/jpeg"}))
    assert image.content == b"\xff\xd8jpeg"
    assert image.content_type == "image/jpeg"
    assert image.cache_control == image_proxy.LONG_CACHE
    assert not image.is_fallback


def test_upstream_error_status_gives_transparent_pixel() -> None:
    image = _fetch(lambda request: httpx.Response(403, content=b"denied"))
    assert image.is_fallback
    assert image.content == image_proxy.TRANSPARENT_PIXEL
    assert image.content_type == "image/png"
    assert image.cache_control == "no-cache"


def test_xml_error_document_gives_transparent_pixel() -> None:
    image = _fetch(
        lambda request: httpx.Response(
            200, content=b"<Error>AccessDenied</Error>", headers={"content-type": "application/xml"}
        )
    )
    assert image.is_fallback


def test_network_failure_gives_transparent_pixel() -> None:
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    assert _fetch(handler).is_fallback


def test_route_requires_url(client) -> None:
    response = client.get("/api/image-proxy")
    assert response.status_code == 400
    assert response.json() == {"error": "Image URL is required"}


def test_route_serves_fallback_without_auth(app, monkeypatch) -> None:
    from fastapi.testclient import TestClient

    async def fake_fetch(url, **kwargs):
        return image_proxy.fallback_image()

    monkeypatch.setattr(image_proxy, "fetch_image", fake_fetch)
    response = TestClient(app).get("/api/media/image-proxy", params={"url": "https://img.example/x.png"})
    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "no-cache"
    assert response.content == image_proxy.TRANSPARENT_PIXEL
