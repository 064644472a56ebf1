from __future__ import annotations

import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from backend.auth import require_user_id
from backend import repositories
from backend.derivations.habits import build_habit_heatmap, completion_rate, current_streak
from backend.locks import record_lock
from backend.schemas import HabitColorPayload, HabitCreate, HabitRecord, HabitStatusPayload, HabitToggle, HabitUpdate
from backend.services import notion_service
from backend.settings import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


async def _require_habit(user_id: str, habit_id: str) -> dict:
    habit = await repositories.get_habit(user_id, habit_id)
    if not habit:
        raise HTTPException(status_code=404, detail="Habit not found")
    return habit


@router.get("/api/notion/habits", response_model=List[HabitRecord])
async def list_habits(user_id: str = Depends(require_user_id)):
    try:
        return await repositories.list_habits(user_id)
    except Exception as exc:
        logger.exception("Failed to load habits for %s", user_id)
        raise HTTPException(status_code=500, detail="Failed to fetch habits") from exc


@router.post("/api/notion/habits")
async def toggle_habit_day(payload: HabitToggle, user_id: str = Depends(require_user_id)):
    day_iso = payload.date.isoformat()
    async with record_lock("habit", payload.habitId):
        await _require_habit(user_id, payload.habitId)
        await repositories.set_habit_day(user_id, payload.habitId, day_iso, payload.completed)
        await repositories.enqueue_outbox(
            user_id, "habit", payload.habitId, "toggle", {"date": day_iso, "completed": payload.completed}
        )
    return {"success": True}


async def _update_habit(user_id: str, habit_id: str, patch: dict) -> dict:
    async with record_lock("habit", habit_id):
        await _require_habit(user_id, habit_id)
        await repositories.update_habit(user_id, habit_id, patch)
        await repositories.enqueue_outbox(user_id, "habit", habit_id, "update", patch)
    return {"success": True}


@router.post("/api/notion/habits/status")
async def set_habit_status(payload: HabitStatusPayload, user_id: str = Depends(require_user_id)):
    if not payload.status.strip():
        raise HTTPException(status_code=400, detail="Missing required fields")
    return await _update_habit(user_id, payload.habitId, {"status": payload.status})


@router.post("/api/notion/habits/color")
async def set_habit_color(payload: HabitColorPayload, user_id: str = Depends(require_user_id)):
    return await _update_habit(user_id, payload.habitId, {"colorCode": payload.colorCode})


@router.put("/api/notion/habits/update")
async def update_habit(payload: HabitUpdate, user_id: str = Depends(require_user_id)):
    patch = payload.model_dump(exclude={"habitId"}, exclude_none=True)
    if not patch:
        raise HTTPException(status_code=400, detail="Nothing to update")
    return await _update_habit(user_id, payload.habitId, patch)


@router.post("/api/notion/habits/create")
async def create_habit(payload: HabitCreate, user_id: str = Depends(require_user_id)):
    try:
        habit = await repositories.create_habit(user_id, payload.name, payload.status, payload.colorCode)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    await repositories.enqueue_outbox(user_id, "habit", habit["id"], "create")
    return habit


@router.post("/api/notion/habits/sync")
async def sync_habits(user_id: str = Depends(require_user_id)):
    settings = get_settings()
    if not settings.notion_habits_database_id:
        raise HTTPException(status_code=400, detail="Notion habits database not configured")
    try:
        pages = await notion_service.query_database(
            settings.notion_habits_database_id,
            sorts=[{"property": "Status", "direction": "ascending"}],
        )
        habits = []
        for page in pages:
            habit = notion_service.build_habit(page)
            days = []
            for day_page_id in habit.pop("day_page_ids"):
                day_page = await notion_service.retrieve_page(day_page_id)
                day_value = notion_service.get_property_value((day_page.get("properties") or {}).get("Date"), "date")
                if day_value:
                    days.append({"id": day_page_id, "date": day_value[:10]})
            habit["days"] = days
            habits.append(habit)
    except notion_service.NotionError as exc:
        logger.exception("Notion habits pull failed")
        raise HTTPException(status_code=502, detail="Failed to sync habits from Notion") from exc
    synced = await repositories.replace_habits_from_notion(user_id, habits)
    return {"success": True, "synced": synced}


@router.get("/api/notion/habits/{habit_id}/heatmap")
async def habit_heatmap(
    habit_id: str,
    year: int | None = Query(None, ge=1970, le=2100),
    user_id: str = Depends(require_user_id),
):
    habit = await _require_habit(user_id, habit_id)
    today = date.today()
    year = year or today.year
    return {
        "habit": {"id": habit["id"], "name": habit["name"], "colorCode": habit["colorCode"]},
        "heatmap": build_habit_heatmap(habit["days"], year=year),
        "streak": current_streak(habit["days"], today),
        "completion_rate": completion_rate(habit["days"], date(year, 1, 1), min(today, date(year, 12, 31))),
    }
