from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from backend.auth import require_user_id
from backend import repositories
from backend.derivations.clustering import cluster_groups, DisplayUnit
from backend.derivations.grouping import MEDIA_TABS, count_leaf_records, filter_media_tab, group_media, serialize_groups
from backend.locks import record_lock
from backend.schemas import MediaFromLink, MediaListResponse, MediaPatch
from backend.services import image_proxy, media_lookup, notion_service
from backend.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _unit_payload(unit) -> dict:
    if isinstance(unit, DisplayUnit):
        return {"grouped": unit.grouped, "members": unit.members}
    return unit


async def _with_month_labels(user_id: str, media: list[dict]) -> list[dict]:
    """Swap monthly-tracking page ids for the monthly entry titles."""
    if not any(item.get("monthly_tracking") for item in media):
        return media
    monthly = await repositories.list_tracking_entries(user_id, "monthly")
    titles = {entry["notion_page_id"]: entry.get("title") for entry in monthly if entry.get("notion_page_id")}
    return [
        {**item, "monthly_tracking": titles.get(item.get("monthly_tracking"), item.get("monthly_tracking"))}
        for item in media
    ]


@router.get("/api/media", response_model=MediaListResponse)
async def list_media(user_id: str = Depends(require_user_id)):
    try:
        media = await repositories.list_media(user_id)
    except Exception as exc:
        logger.exception("Failed to load media for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch media") from exc
    return {"media": media}


@router.get("/api/media/grouped")
async def grouped_media(
    tab: str = Query("movies-series"),
    group_done_by_month: bool = Query(False),
    cluster: bool = Query(True),
    user_id: str = Depends(require_user_id),
):
    if tab not in MEDIA_TABS:
        raise HTTPException(status_code=400, detail=f"Unknown tab: {tab}")
    try:
        media = await _with_month_labels(user_id, await repositories.list_media(user_id))
    except Exception as exc:
        logger.exception("Failed to load media for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch media") from exc
    groups = group_media(media, tab=tab, group_done_by_month=group_done_by_month, history=media)
    shown = count_leaf_records(groups)
    if cluster:
        groups = cluster_groups(groups)
    return {
        "tab": tab,
        "groups": serialize_groups(groups, item=_unit_payload),
        "shown": shown,
        "total": len(filter_media_tab(media, tab)),
    }


@router.post("/api/media/sync")
async def sync_media(user_id: str = Depends(require_user_id)):
    database_id = get_settings().notion_media_database_id
    if not database_id:
        raise HTTPException(status_code=400, detail="Notion media database not configured")
    try:
        schema = notion_service.database_schema(await notion_service.retrieve_database(database_id))
        pages = await notion_service.query_database(database_id)
    except notion_service.NotionError as exc:
        logger.exception("Notion media pull failed")
        raise HTTPException(status_code=502, detail="Failed to sync media from Notion") from exc
    rows = [notion_service.build_media_row(page, database_id, schema) for page in pages if not page.get("archived")]
    synced = await repositories.upsert_media_from_notion(user_id, rows)
    removed = await repositories.delete_media_missing_from(user_id, database_id, [row["notion_page_id"] for row in rows])
    logger.info("Media sync for %s: %s synced, %s removed", user_id, synced, removed)
    return {"success": True, "synced": synced, "removed": removed}


@router.post("/api/media/create-from-link")
async def create_from_link(payload: MediaFromLink, user_id: str = Depends(require_user_id)):
    try:
        looked_up = await media_lookup.lookup_link(payload.url)
    except media_lookup.LinkLookupError as exc:
        if exc.status_code >= 500:
            logger.error("Media lookup failed for %s: %s", payload.url, exc)
        raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc
    media = await repositories.insert_media(user_id, looked_up)
    await repositories.enqueue_outbox(user_id, "media", media["id"], "create")
    return {"success": True, "media": media}


@router.patch("/api/media/{media_id}")
async def patch_media(media_id: str, payload: MediaPatch, user_id: str = Depends(require_user_id)):
    patch = payload.model_dump(exclude_unset=True)
    if patch.get("status") == "To-do":
        patch["status"] = "Not started"
    async with record_lock("media", media_id):
        if not await repositories.get_media(user_id, media_id):
            raise HTTPException(status_code=404, detail="Media entry not found")
        media = await repositories.update_media(user_id, media_id, patch)
        if patch:
            await repositories.enqueue_outbox(user_id, "media", media_id, "update", patch)
    return {"success": True, "media": media}


@router.delete("/api/media/{media_id}")
async def delete_media(media_id: str, user_id: str = Depends(require_user_id)):
    async with record_lock("media", media_id):
        media = await repositories.get_media(user_id, media_id)
        if not media:
            raise HTTPException(status_code=404, detail="Media entry not found")
        await repositories.delete_media(user_id, media_id)
        if media.get("notion_page_id"):
            await repositories.enqueue_outbox(
                user_id, "media", media_id, "delete", {"notion_page_id": media["notion_page_id"]}
            )
    return {"success": True, "message": "Media entry deleted successfully"}


@router.get("/api/image-proxy")
@router.get("/api/media/image-proxy")
async def proxy_image(url: str | None = Query(None)):
    if not url:
        raise HTTPException(status_code=400, detail="Image URL is required")
    image = await image_proxy.fetch_image(url)
    return Response(
        content=image.content,
        media_type=image.content_type,
        headers={"Cache-Control": image.cache_control},
    )
