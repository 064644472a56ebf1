from __future__ import annotations

import logging
from typing import Any, Dict, List, Union

from fastapi import APIRouter, Body, Depends, HTTPException

from backend.auth import require_user_id
from backend import repositories
from backend.schemas import RecentlyWatchedResponse
from backend.services import watch_history

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/youtube/recently-watched", response_model=RecentlyWatchedResponse)
async def recently_watched(user_id: str = Depends(require_user_id)):
    try:
        row = await repositories.get_latest_watched_video(user_id)
    except Exception as exc:
        logger.exception("Failed to load watch history for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch recently watched video") from exc
    if not row:
        return {"video": None}
    return {
        "video": {
            "video_id": row["video_id"],
            "title": row.get("video_title"),
            "channel_name": row.get("channel_name"),
            "channel_url": row.get("channel_url"),
            "video_url": row.get("video_url"),
            "thumbnail_url": row.get("thumbnail_url"),
            "watched_at": row.get("watched_at"),
        }
    }


@router.post("/api/youtube/sync-history")
async def sync_history(
    payload: Union[List[Dict[str, Any]], Dict[str, Any]] = Body(...),
    user_id: str = Depends(require_user_id),
):
    """Import a Takeout ``watch-history.json`` (the bare list or ``{"items": [...]}``)."""
    items = payload if isinstance(payload, list) else payload.get("items") or []
    if not isinstance(items, list):
        raise HTTPException(status_code=400, detail="items must be a list")
    parsed = watch_history.parse_takeout(items)
    if not parsed.total:
        return {"success": True, "message": "No YouTube items to sync", "synced": 0, "total": 0}
    try:
        synced = await repositories.insert_watched_videos(user_id, parsed.videos)
    except Exception as exc:
        logger.exception("Failed to store watch history for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to sync YouTube history") from exc
    logger.info("Watch history import for %s: %s new of %s", user_id, synced, parsed.total)
    return {
        "success": True,
        "message": f"Synced {synced} new videos from {parsed.total} YouTube items",
        "synced": synced,
        "total": parsed.total,
        "errors": parsed.errors,
        "date_range": parsed.date_range(),
    }
