from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta

from backend import repositories
from backend.settings import get_settings
from backend.services import notion_service

logger = logging.getLogger(__name__)


def retry_delay_seconds(attempts: int) -> int:
    return min(300, 2 ** min(attempts, 8))


async def _handle_media_outbox(row: dict, payload: dict) -> None:
    settings = get_settings()
    user_id = row["user_id"]
    media_id = row["entity_id"]
    action = row["action"]

    if action == "delete":
        page_id = payload.get("notion_page_id")
        if page_id:
            await notion_service.archive_page(page_id)
        return

    media = await repositories.get_media(user_id, media_id)
    if not media:
        return

    if action == "create":
        if media.get("notion_page_id") or not settings.notion_media_database_id:
            return
        page = await notion_service.create_page(
            settings.notion_media_database_id,
            notion_service.media_create_properties(media),
        )
        await repositories.update_media(user_id, media_id, {"notion_page_id": page.get("id")})
        return

    if action == "update":
        page_id = media.get("notion_page_id")
        if not page_id:
            return
        schema = {}
        database_id = media.get("notion_database_id") or settings.notion_media_database_id
        if database_id:
            schema = notion_service.database_schema(await notion_service.retrieve_database(database_id))
        properties = notion_service.media_patch_properties(payload, schema)
        if properties:
            await notion_service.update_page(page_id, properties)


async def _handle_habit_outbox(row: dict, payload: dict) -> None:
    settings = get_settings()
    user_id = row["user_id"]
    habit_id = row["entity_id"]
    action = row["action"]

    habit = await repositories.get_habit(user_id, habit_id)
    if not habit:
        return

    if action == "create":
        if habit.get("notion_page_id") or not settings.notion_habits_database_id:
            return
        page = await notion_service.create_page(
            settings.notion_habits_database_id,
            notion_service.habit_properties(habit["name"], habit["status"], habit["colorCode"]),
        )
        await repositories.update_habit(user_id, habit_id, {"notion_page_id": page.get("id")})
        return

    page_id = habit.get("notion_page_id")
    if not page_id:
        return

    if action == "toggle":
        database_id = settings.notion_daily_tracking_database_id
        if not database_id:
            return
        day_page_id = await notion_service.find_or_create_day_page(database_id, payload["date"])
        await notion_service.set_habit_day_relation(page_id, day_page_id, bool(payload.get("completed")))
        return

    if action == "update":
        properties = notion_service.habit_properties(
            payload.get("name"),
            payload.get("status"),
            payload.get("colorCode"),
        )
        if properties:
            await notion_service.update_page(page_id, properties)


HANDLERS = {
    "media": _handle_media_outbox,
    "habit": _handle_habit_outbox,
}


async def process_outbox_once(limit: int = 25) -> int:
    rows = await repositories.list_pending_outbox(limit=limit)
    if not rows:
        return 0
    notion_ready = bool(get_settings().notion_api_key)
    for row in rows:
        try:
            handler = HANDLERS.get(row.get("entity_type"))
            if handler and notion_ready:
                payload = json.loads(row.get("payload_json") or "{}")
                await handler(row, payload)
            elif handler:
                logger.info("Notion not configured; dropping outbox %s %s", row.get("entity_type"), row.get("action"))
            await repositories.mark_outbox_done(row["id"])
        except Exception as exc:
            attempts = int(row.get("attempts") or 0) + 1
            next_retry_at = (datetime.utcnow() + timedelta(seconds=retry_delay_seconds(attempts))).isoformat()
            logger.warning("Outbox %s failed (attempt %s): %s", row["id"], attempts, exc)
            await repositories.mark_outbox_error(row["id"], attempts, next_retry_at, str(exc))
    return len(rows)


async def run_forever() -> None:
    while True:
        await process_outbox_once(limit=25)
        await asyncio.sleep(5)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    asyncio.run(run_forever())
