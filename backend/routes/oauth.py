from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException

from backend.auth import require_user_id
from backend.settings import get_settings
from backend.services import google_calendar_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/oauth/google/connect")
async def google_connect(user_id: str = Depends(require_user_id)):
    if not get_settings().calendar_client_id:
        raise HTTPException(status_code=400, detail="Calendar OAuth not configured")
    return {"url": google_calendar_service.build_connect_url(user_id)}


@router.get("/api/oauth/google/callback")
async def google_callback(code: str, state: str):
    if not state:
        raise HTTPException(status_code=400, detail="Missing state")
    try:
        await google_calendar_service.exchange_code_for_tokens(state, code)
    except (httpx.HTTPError, google_calendar_service.CalendarError) as exc:
        logger.exception("Google OAuth exchange failed")
        raise HTTPException(status_code=502, detail="Google OAuth exchange failed") from exc
    return {"ok": True}
