from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.auth import require_user_id
from backend import repositories
from backend.schemas import PreferencesPayload

router = APIRouter()


@router.get("/api/hq/preferences")
async def get_preferences(user_id: str = Depends(require_user_id)):
    return await repositories.get_preferences(user_id)


@router.put("/api/hq/preferences")
async def save_preferences(payload: PreferencesPayload, user_id: str = Depends(require_user_id)):
    return await repositories.save_preferences(user_id, payload.model_dump(exclude_none=True))
