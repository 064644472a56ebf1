from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.auth import require_user_id
from backend import repositories
from backend.derivations.trends import METRICS, build_trend_window
from backend.schemas import TrackingListResponse
from backend.services import notion_service
from backend.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/api/tracking/{period}", response_model=TrackingListResponse)
async def list_entries(period: str, user_id: str = Depends(require_user_id)):
    return {"entries": await repositories.list_tracking_entries(user_id, period)}


@router.post("/api/tracking/{period}/sync")
async def sync_entries(period: str, user_id: str = Depends(require_user_id)):
    database_id = get_settings().tracking_database_ids.get(period)
    if not database_id:
        raise HTTPException(status_code=400, detail=f"No Notion database configured for {period} tracking")
    try:
        pages = await notion_service.query_database(database_id)
    except notion_service.NotionError as exc:
        logger.exception("Notion tracking pull failed for %s", period)
        raise HTTPException(status_code=502, detail="Failed to sync tracking entries") from exc
    entries = [notion_service.build_tracking_entry(page) for page in pages if not page.get("archived")]
    synced = await repositories.upsert_tracking_entries(user_id, period, entries)
    return {"success": True, "synced": synced}


@router.get("/api/tracking/{period}/{entry_id}/trend")
async def entry_trend(
    period: str,
    entry_id: str,
    metric: str = Query("rhr"),
    user_id: str = Depends(require_user_id),
):
    extractor = METRICS.get(metric)
    if extractor is None:
        raise HTTPException(status_code=400, detail=f"Unknown metric: {metric}")
    entries = await repositories.list_tracking_entries(user_id, period)
    window = build_trend_window(entry_id, entries, extractor)
    return {"metric": metric, "trend": window.as_dict() if window else None}
