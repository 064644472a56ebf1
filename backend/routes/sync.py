from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.auth import require_user_id
from backend import repositories
from backend.schemas import SyncStatusResponse
from backend.settings import get_settings
from backend.workers.sync_worker import process_outbox_once

router = APIRouter()


@router.get("/api/sync/status", response_model=SyncStatusResponse)
async def sync_status(user_id: str = Depends(require_user_id)):
    status = await repositories.outbox_status(user_id)
    return SyncStatusResponse(
        connected=bool(get_settings().notion_api_key),
        pending_outbox=status["pending"],
        last_error=status["last_error"],
    )


@router.post("/api/sync/run")
async def run_sync_once(user_id: str = Depends(require_user_id)):
    drained = await process_outbox_once(limit=25)
    return {"ok": True, "outbox_drained": drained}
