from __future__ import annotations

import json
import logging

from fastapi import APIRouter, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from backend import repositories
from backend.services import notion_service
from backend.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

UPSERT_EVENTS = {"page.properties_updated", "page.created", "page.content_updated"}
DELETE_EVENTS = {"page.deleted"}


def _same_database(left: str | None, right: str | None) -> bool:
    if not left or not right:
        return False
    return left.replace("-", "") == right.replace("-", "")


async def _sync_media_page(page_id: str, database_id: str) -> int:
    user_ids = await repositories.list_user_ids_for_media_database(database_id)
    if not user_ids:
        return 0
    schema = notion_service.database_schema(await notion_service.retrieve_database(database_id))
    page = await notion_service.retrieve_page(page_id)
    if page.get("archived"):
        return await repositories.delete_media_page(database_id, page_id)
    row = notion_service.build_media_row(page, database_id, schema)
    for user_id in user_ids:
        await repositories.upsert_media_from_notion(user_id, [row])
    return len(user_ids)


@router.post("/api/webhooks/notion")
async def notion_webhook(request: Request):
    raw_body = await request.body()
    try:
        body = json.loads(raw_body or b"{}")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON body") from exc
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    # one-time subscription handshake
    if body.get("verification_token") is not None and len(body) <= 2:
        logger.info("Notion webhook verification token received")
        return {"ok": True}

    settings = get_settings()
    signature = request.headers.get("x-notion-signature")
    if settings.notion_webhook_secret and signature:
        if not notion_service.verify_webhook_signature(raw_body, signature, settings.notion_webhook_secret):
            logger.warning("Notion webhook: invalid signature")
            raise HTTPException(status_code=401, detail="Invalid signature")

    event_type = body.get("type")
    entity = body.get("entity") or {}
    page_id = entity.get("id")
    if not event_type or not page_id or entity.get("type", "page") != "page":
        return {"ok": True}

    media_database_id = settings.notion_media_database_id
    parent = (body.get("data") or {}).get("parent") or {}
    database_id = parent.get("id") if parent.get("type") == "database" else None

    try:
        if event_type in DELETE_EVENTS:
            target = database_id or media_database_id
            removed = await repositories.delete_media_page(target, page_id) if target else 0
            return {"ok": True, "removed": removed}
        if event_type in UPSERT_EVENTS:
            if database_id is None:
                page = await notion_service.retrieve_page(page_id)
                database_id = (page.get("parent") or {}).get("database_id")
            if not _same_database(database_id, media_database_id):
                return {"ok": True}
            synced = await _sync_media_page(page_id, media_database_id)
            return {"ok": True, "synced": synced}
    except (notion_service.NotionError, SQLAlchemyError):
        logger.exception("Notion webhook handling failed for %s", page_id)
        return {"ok": False}
    return {"ok": True}
