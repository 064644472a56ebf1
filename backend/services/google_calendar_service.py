from __future__ import annotations

import base64
import hashlib
import logging
from datetime import date, datetime, timedelta, timezone
from urllib.parse import urlencode, quote

import httpx
from cryptography.fernet import Fernet

from backend.settings import get_settings
from backend import repositories

logger = logging.getLogger(__name__)

AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
CALENDAR_API = "https://www.googleapis.com/calendar/v3"


class CalendarError(RuntimeError):
    pass


def _fernet() -> Fernet:
    digest = hashlib.sha256(get_settings().token_encryption_key.encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encrypt_token(value: str) -> str:
    return _fernet().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_token(value: str) -> str:
    return _fernet().decrypt(value.encode("utf-8")).decode("utf-8")


def build_connect_url(user_id: str) -> str:
    settings = get_settings()
    params = {
        "client_id": settings.calendar_client_id,
        "redirect_uri": settings.calendar_redirect_uri,
        "response_type": "code",
        "scope": "https://www.googleapis.com/auth/calendar",
        "access_type": "offline",
        "prompt": "consent",
        "state": user_id,
    }
    return f"{AUTH_URL}?{urlencode(params)}"


def _expiry(token_data: dict) -> str:
    expires_in = int(token_data.get("expires_in", 3600) or 3600)
    return (datetime.now(timezone.utc) + timedelta(seconds=expires_in - 30)).isoformat()


async def _token_request(payload: dict) -> dict:
    async with httpx.AsyncClient(timeout=20) as client:
        response = await client.post(TOKEN_URL, data=payload)
    response.raise_for_status()
    return response.json()


async def exchange_code_for_tokens(user_id: str, code: str) -> None:
    settings = get_settings()
    token_data = await _token_request(
        {
            "code": code,
            "client_id": settings.calendar_client_id,
            "client_secret": settings.calendar_client_secret,
            "redirect_uri": settings.calendar_redirect_uri,
            "grant_type": "authorization_code",
        }
    )
    refresh_token = token_data.get("refresh_token")
    if not refresh_token:
        existing = await repositories.get_google_tokens(user_id)
        if not existing or not existing.get("refresh_token_enc"):
            raise CalendarError("Google OAuth did not return refresh_token")
        refresh_token = decrypt_token(existing["refresh_token_enc"])
    await repositories.store_google_tokens(
        user_id,
        encrypt_token(refresh_token),
        access_token=token_data.get("access_token"),
        expires_at=_expiry(token_data),
        scope=token_data.get("scope"),
    )


async def get_access_token(user_id: str) -> str | None:
    token_row = await repositories.get_google_tokens(user_id)
    if not token_row:
        return None
    access_token = token_row.get("access_token")
    expires_at = token_row.get("expires_at")
    if access_token and expires_at:
        try:
            expires_dt = datetime.fromisoformat(str(expires_at).replace("Z", "+00:00"))
        except ValueError:
            expires_dt = None
        if expires_dt and expires_dt > datetime.now(timezone.utc):
            return access_token
    if not token_row.get("refresh_token_enc"):
        return None
    settings = get_settings()
    token_data = await _token_request(
        {
            "client_id": settings.calendar_client_id,
            "client_secret": settings.calendar_client_secret,
            "refresh_token": decrypt_token(token_row["refresh_token_enc"]),
            "grant_type": "refresh_token",
        }
    )
    access_token = token_data.get("access_token")
    if not access_token:
        return None
    await repositories.update_google_access_token(user_id, access_token, _expiry(token_data), token_data.get("scope"))
    return access_token


async def _calendar_request(user_id: str, method: str, path: str, **kwargs) -> httpx.Response:
    access_token = await get_access_token(user_id)
    if not access_token:
        raise CalendarError("Google Calendar token unavailable")
    async with httpx.AsyncClient(timeout=20) as client:
        response = await client.request(
            method,
            f"{CALENDAR_API}{path}",
            headers={"Authorization": f"Bearer {access_token}"},
            **kwargs,
        )
    if response.status_code >= 400:
        try:
            body = response.json()
            message = body.get("error", {}).get("message") or response.text
        except ValueError:
            message = response.text
        raise CalendarError(f"Calendar API error ({response.status_code}): {message}")
    return response


def _events_path(calendar_id: str, event_id: str | None = None) -> str:
    path = f"/calendars/{quote(calendar_id, safe='')}/events"
    return f"{path}/{quote(event_id, safe='')}" if event_id else path


def normalize_event(event: dict, calendar_id: str) -> dict:
    start = event.get("start") or {}
    end = event.get("end") or {}
    return {
        "id": event.get("id"),
        "calendar_id": calendar_id,
        "summary": event.get("summary") or "(No title)",
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "all_day": "date" in start and "dateTime" not in start,
        "location": event.get("location"),
        "description": event.get("description"),
    }


def event_time(value, timezone_name: str) -> dict:
    if isinstance(value, datetime):
        return {"dateTime": value.isoformat(), "timeZone": timezone_name}
    if isinstance(value, date):
        return {"date": value.isoformat()}
    return {}


def build_event_body(payload: dict, timezone_name: str) -> dict:
    """Google event body from a create/patch payload; an all-day start without end spans one day."""
    body: dict = {}
    for key in ("summary", "description", "location"):
        if payload.get(key) is not None:
            body[key] = payload[key]
    start = payload.get("start")
    end = payload.get("end")
    if start is not None:
        body["start"] = event_time(start, timezone_name)
        if end is None:
            if isinstance(start, datetime):
                end = start + timedelta(hours=1)
            else:
                end = start + timedelta(days=1)
    if end is not None:
        body["end"] = event_time(end, timezone_name)
    return body


async def list_events(user_id: str, calendar_id: str, time_min: str, time_max: str) -> list[dict]:
    response = await _calendar_request(
        user_id,
        "GET",
        _events_path(calendar_id),
        params={
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": 250,
            "timeMin": time_min,
            "timeMax": time_max,
        },
    )
    items = response.json().get("items") or []
    return [normalize_event(item, calendar_id) for item in items if item.get("status") != "cancelled"]


async def create_event(user_id: str, calendar_id: str, body: dict) -> dict:
    response = await _calendar_request(user_id, "POST", _events_path(calendar_id), json=body)
    return normalize_event(response.json(), calendar_id)


async def update_event(user_id: str, calendar_id: str, event_id: str, patch: dict) -> dict:
    response = await _calendar_request(user_id, "PATCH", _events_path(calendar_id, event_id), json=patch)
    return normalize_event(response.json(), calendar_id)


async def delete_event(user_id: str, calendar_id: str, event_id: str) -> None:
    await _calendar_request(user_id, "DELETE", _events_path(calendar_id, event_id))
