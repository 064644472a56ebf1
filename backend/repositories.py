from __future__ import annotations

import json
from datetime import datetime
from uuid import uuid4

from sqlalchemy import text as sql_text, bindparam

from backend.db import get_sessionmaker

SETTINGS_TABLE = "settings"
MEDIA_TABLE = "media"
HABITS_TABLE = "habits"
HABIT_DAYS_TABLE = "habit_days"
TRACKING_TABLE = "tracking_entries"
ASSETS_TABLE = "finance_assets"
ACCOUNTS_TABLE = "finance_accounts"
INVESTMENTS_TABLE = "finance_investments"
WATCH_HISTORY_TABLE = "youtube_watch_history"
PEOPLE_TABLE = "people"
EVENT_PEOPLE_TABLE = "event_people"
GOOGLE_TOKENS_TABLE = "google_calendar_tokens"
SYNC_OUTBOX_TABLE = "sync_outbox"

MEDIA_COLUMNS = [
    "id",
    "user_id",
    "notion_page_id",
    "notion_database_id",
    "name",
    "category",
    "status",
    "url",
    "by_json",
    "topic_json",
    "ai_synopsis",
    "thumbnail_url",
    "created",
    "monthly_tracking",
    "related_json",
    "updated_at",
    "last_synced_at",
]
MEDIA_PATCH_COLUMNS = {"name", "ai_synopsis", "status", "thumbnail_url", "notion_page_id"}

PREFERENCES_KEY = "hq_preferences"


def _new_id() -> str:
    return uuid4().hex


def _now() -> str:
    return datetime.utcnow().isoformat()


def _load_json(raw, default):
    if not raw:
        return default
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return default
    return decoded if isinstance(decoded, type(default)) else default


def _normalize_media_row(row) -> dict:
    if not row:
        return {}
    payload = dict(row)
    payload["by"] = _load_json(payload.pop("by_json", None), [])
    payload["topic"] = _load_json(payload.pop("topic_json", None), [])
    payload["related_notion_page_ids"] = _load_json(payload.pop("related_json", None), [])
    return payload


def _media_params(user_id: str, media: dict) -> dict:
    return {
        "id": media.get("id") or _new_id(),
        "user_id": user_id,
        "notion_page_id": media.get("notion_page_id"),
        "notion_database_id": media.get("notion_database_id"),
        "name": media.get("name") or "Untitled",
        "category": media.get("category"),
        "status": media.get("status"),
        "url": media.get("url"),
        "by_json": json.dumps(media.get("by") or [], ensure_ascii=False),
        "topic_json": json.dumps(media.get("topic") or [], ensure_ascii=False),
        "ai_synopsis": media.get("ai_synopsis"),
        "thumbnail_url": media.get("thumbnail_url"),
        "created": media.get("created"),
        "monthly_tracking": media.get("monthly_tracking"),
        "related_json": json.dumps(media.get("related_notion_page_ids") or [], ensure_ascii=False),
        "updated_at": _now(),
        "last_synced_at": media.get("last_synced_at"),
    }


async def get_setting(user_id: str, key: str, scoped: bool = True) -> str | None:
    setting_key = f"{user_id}::{key}" if scoped else key
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(f"SELECT value FROM {SETTINGS_TABLE} WHERE key = :key"),
            {"key": setting_key},
        )).fetchone()
    return row[0] if row else None


async def set_setting(user_id: str, key: str, value: str, scoped: bool = True) -> None:
    setting_key = f"{user_id}::{key}" if scoped else key
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"INSERT INTO {SETTINGS_TABLE} (key, value) VALUES (:key, :value) "
                "ON CONFLICT(key) DO UPDATE SET value=EXCLUDED.value"
            ),
            {"key": setting_key, "value": value},
        )
        await session.commit()


async def get_preferences(user_id: str) -> dict:
    payload = _load_json(await get_setting(user_id, PREFERENCES_KEY), {})
    collapsed = payload.get("collapsed_groups")
    toggles = payload.get("toggles")
    return {
        "collapsed_groups": [str(item) for item in collapsed] if isinstance(collapsed, list) else [],
        "toggles": {str(k): bool(v) for k, v in toggles.items()} if isinstance(toggles, dict) else {},
    }


async def save_preferences(user_id: str, patch: dict) -> dict:
    current = await get_preferences(user_id)
    if patch.get("collapsed_groups") is not None:
        seen = []
        for item in patch["collapsed_groups"]:
            if item not in seen:
                seen.append(item)
        current["collapsed_groups"] = seen
    if patch.get("toggles") is not None:
        current["toggles"].update({str(k): bool(v) for k, v in patch["toggles"].items()})
    await set_setting(user_id, PREFERENCES_KEY, json.dumps(current, ensure_ascii=False))
    return current


async def list_media(user_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT {', '.join(MEDIA_COLUMNS)}
                FROM {MEDIA_TABLE}
                WHERE user_id = :user_id
                ORDER BY created IS NULL, created DESC
                """
            ),
            {"user_id": user_id},
        )).mappings().all()
    return [_normalize_media_row(row) for row in rows]


async def get_media(user_id: str, media_id: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"SELECT {', '.join(MEDIA_COLUMNS)} FROM {MEDIA_TABLE} "
                "WHERE user_id = :user_id AND id = :id"
            ),
            {"user_id": user_id, "id": media_id},
        )).mappings().fetchone()
    return _normalize_media_row(row) if row else None


async def insert_media(user_id: str, media: dict) -> dict:
    params = _media_params(user_id, media)
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {MEDIA_TABLE} ({', '.join(MEDIA_COLUMNS)})
                VALUES ({', '.join(f':{col}' for col in MEDIA_COLUMNS)})
                """
            ),
            params,
        )
        await session.commit()
    return await get_media(user_id, params["id"])


async def upsert_media_from_notion(user_id: str, rows: list[dict]) -> int:
    if not rows:
        return 0
    update_columns = [col for col in MEDIA_COLUMNS if col not in {"id", "user_id", "notion_page_id"}]
    updates = ", ".join(f"{col}=EXCLUDED.{col}" for col in update_columns)
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        for media in rows:
            await session.execute(
                sql_text(
                    f"""
                    INSERT INTO {MEDIA_TABLE} ({', '.join(MEDIA_COLUMNS)})
                    VALUES ({', '.join(f':{col}' for col in MEDIA_COLUMNS)})
                    ON CONFLICT(user_id, notion_page_id) DO UPDATE SET {updates}
                    """
                ),
                _media_params(user_id, {**media, "last_synced_at": _now()}),
            )
        await session.commit()
    return len(rows)


async def _delete_missing(table: str, user_id: str, database_id: str, keep_page_ids: list[str]) -> int:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        if keep_page_ids:
            statement = sql_text(
                f"""
                DELETE FROM {table}
                WHERE user_id = :user_id
                  AND notion_database_id = :database_id
                  AND notion_page_id NOT IN :keep
                """
            ).bindparams(bindparam("keep", expanding=True))
            params = {"user_id": user_id, "database_id": database_id, "keep": keep_page_ids}
        else:
            statement = sql_text(
                f"DELETE FROM {table} WHERE user_id = :user_id AND notion_database_id = :database_id"
            )
            params = {"user_id": user_id, "database_id": database_id}
        result = await session.execute(statement, params)
        await session.commit()
    return int(result.rowcount or 0)


async def delete_media_missing_from(user_id: str, database_id: str, keep_page_ids: list[str]) -> int:
    return await _delete_missing(MEDIA_TABLE, user_id, database_id, keep_page_ids)


async def update_media(user_id: str, media_id: str, patch: dict) -> dict | None:
    clean = {key: value for key, value in (patch or {}).items() if key in MEDIA_PATCH_COLUMNS}
    if clean:
        clean["updated_at"] = _now()
        assignments = ", ".join(f"{col} = :{col}" for col in clean)
        session_factory = get_sessionmaker()
        async with session_factory() as session:
            await session.execute(
                sql_text(
                    f"UPDATE {MEDIA_TABLE} SET {assignments} WHERE user_id = :user_id AND id = :id"
                ),
                {**clean, "user_id": user_id, "id": media_id},
            )
            await session.commit()
    return await get_media(user_id, media_id)


async def delete_media(user_id: str, media_id: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(f"DELETE FROM {MEDIA_TABLE} WHERE user_id = :user_id AND id = :id"),
            {"user_id": user_id, "id": media_id},
        )
        await session.commit()


async def list_user_ids_for_media_database(database_id: str) -> list[str]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(f"SELECT DISTINCT user_id FROM {MEDIA_TABLE} WHERE notion_database_id = :database_id"),
            {"database_id": database_id},
        )).fetchall()
    return [row[0] for row in rows]


async def delete_media_page(database_id: str, page_id: str) -> int:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        result = await session.execute(
            sql_text(
                f"DELETE FROM {MEDIA_TABLE} WHERE notion_database_id = :database_id AND notion_page_id = :page_id"
            ),
            {"database_id": database_id, "page_id": page_id},
        )
        await session.commit()
    return int(result.rowcount or 0)


async def list_habits(user_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        habits = (await session.execute(
            sql_text(
                f"""
                SELECT id, notion_page_id, name, status, color_code, created_at
                FROM {HABITS_TABLE}
                WHERE user_id = :user_id
                ORDER BY status, created_at
                """
            ),
            {"user_id": user_id},
        )).mappings().all()
        days = (await session.execute(
            sql_text(
                f"SELECT id, habit_id, date FROM {HABIT_DAYS_TABLE} WHERE user_id = :user_id ORDER BY date"
            ),
            {"user_id": user_id},
        )).mappings().all()
    days_by_habit: dict[str, list] = {}
    for day in days:
        days_by_habit.setdefault(day["habit_id"], []).append({"id": day["id"], "date": day["date"]})
    return [
        {
            "id": habit["id"],
            "notion_page_id": habit["notion_page_id"],
            "name": habit["name"] or "Unnamed Habit",
            "status": habit["status"] or "Unplanned",
            "colorCode": habit["color_code"] or "#22c55e",
            "days": days_by_habit.get(habit["id"], []),
        }
        for habit in habits
    ]


async def get_habit(user_id: str, habit_id: str) -> dict | None:
    for habit in await list_habits(user_id):
        if habit["id"] == habit_id:
            return habit
    return None


async def create_habit(user_id: str, name: str, status: str, color_code: str, notion_page_id: str | None = None) -> dict:
    name = " ".join(str(name or "").split()).strip()[:120]
    if not name:
        raise ValueError("Habit name cannot be empty")
    record = {
        "id": _new_id(),
        "user_id": user_id,
        "notion_page_id": notion_page_id,
        "name": name,
        "status": status,
        "color_code": color_code,
        "created_at": _now(),
        "updated_at": _now(),
    }
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {HABITS_TABLE} (id, user_id, notion_page_id, name, status, color_code, created_at, updated_at)
                VALUES (:id, :user_id, :notion_page_id, :name, :status, :color_code, :created_at, :updated_at)
                """
            ),
            record,
        )
        await session.commit()
    return {"id": record["id"], "name": name, "status": status, "colorCode": color_code, "days": []}


async def update_habit(user_id: str, habit_id: str, patch: dict) -> bool:
    columns = {"name": "name", "status": "status", "colorCode": "color_code", "notion_page_id": "notion_page_id"}
    clean = {columns[key]: value for key, value in (patch or {}).items() if key in columns and value is not None}
    if not clean:
        return False
    clean["updated_at"] = _now()
    assignments = ", ".join(f"{col} = :{col}" for col in clean)
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        result = await session.execute(
            sql_text(f"UPDATE {HABITS_TABLE} SET {assignments} WHERE user_id = :user_id AND id = :id"),
            {**clean, "user_id": user_id, "id": habit_id},
        )
        await session.commit()
    return bool(result.rowcount)


async def set_habit_day(user_id: str, habit_id: str, day_iso: str, completed: bool) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        if completed:
            await session.execute(
                sql_text(
                    f"""
                    INSERT INTO {HABIT_DAYS_TABLE} (id, habit_id, user_id, date)
                    VALUES (:id, :habit_id, :user_id, :date)
                    ON CONFLICT(habit_id, date) DO NOTHING
                    """
                ),
                {"id": _new_id(), "habit_id": habit_id, "user_id": user_id, "date": day_iso},
            )
        else:
            await session.execute(
                sql_text(
                    f"DELETE FROM {HABIT_DAYS_TABLE} WHERE user_id = :user_id AND habit_id = :habit_id AND date = :date"
                ),
                {"habit_id": habit_id, "user_id": user_id, "date": day_iso},
            )
        await session.commit()


async def replace_habits_from_notion(user_id: str, habits: list[dict]) -> int:
    """Mirror Notion habits locally, keyed by Notion page id."""
    existing = {habit.get("notion_page_id"): habit for habit in await list_habits(user_id) if habit.get("notion_page_id")}
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        for habit in habits:
            page_id = habit["notion_page_id"]
            local = existing.get(page_id)
            habit_id = local["id"] if local else _new_id()
            if local:
                await session.execute(
                    sql_text(
                        f"""
                        UPDATE {HABITS_TABLE}
                        SET name = :name, status = :status, color_code = :color_code, updated_at = :updated_at
                        WHERE id = :id
                        """
                    ),
                    {
                        "id": habit_id,
                        "name": habit["name"],
                        "status": habit["status"],
                        "color_code": habit["colorCode"],
                        "updated_at": _now(),
                    },
                )
            else:
                await session.execute(
                    sql_text(
                        f"""
                        INSERT INTO {HABITS_TABLE} (id, user_id, notion_page_id, name, status, color_code, created_at, updated_at)
                        VALUES (:id, :user_id, :notion_page_id, :name, :status, :color_code, :created_at, :updated_at)
                        """
                    ),
                    {
                        "id": habit_id,
                        "user_id": user_id,
                        "notion_page_id": page_id,
                        "name": habit["name"],
                        "status": habit["status"],
                        "color_code": habit["colorCode"],
                        "created_at": _now(),
                        "updated_at": _now(),
                    },
                )
            await session.execute(
                sql_text(f"DELETE FROM {HABIT_DAYS_TABLE} WHERE habit_id = :habit_id"),
                {"habit_id": habit_id},
            )
            for day in habit.get("days") or []:
                await session.execute(
                    sql_text(
                        f"""
                        INSERT INTO {HABIT_DAYS_TABLE} (id, habit_id, user_id, date, notion_page_id)
                        VALUES (:id, :habit_id, :user_id, :date, :notion_page_id)
                        ON CONFLICT(habit_id, date) DO NOTHING
                        """
                    ),
                    {
                        "id": _new_id(),
                        "habit_id": habit_id,
                        "user_id": user_id,
                        "date": day["date"],
                        "notion_page_id": day.get("id"),
                    },
                )
        await session.commit()
    return len(habits)


async def list_tracking_entries(user_id: str, period: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT id, period, notion_page_id, title, date, properties_json
                FROM {TRACKING_TABLE}
                WHERE user_id = :user_id AND period = :period
                ORDER BY date
                """
            ),
            {"user_id": user_id, "period": period},
        )).mappings().all()
    entries = []
    for row in rows:
        payload = dict(row)
        payload["properties"] = _load_json(payload.pop("properties_json", None), {})
        entries.append(payload)
    return entries


async def upsert_tracking_entries(user_id: str, period: str, entries: list[dict]) -> int:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        for entry in entries:
            await session.execute(
                sql_text(
                    f"""
                    INSERT INTO {TRACKING_TABLE} (id, user_id, period, notion_page_id, title, date, properties_json, updated_at)
                    VALUES (:id, :user_id, :period, :notion_page_id, :title, :date, :properties_json, :updated_at)
                    ON CONFLICT(user_id, period, notion_page_id) DO UPDATE SET
                        title = EXCLUDED.title,
                        date = EXCLUDED.date,
                        properties_json = EXCLUDED.properties_json,
                        updated_at = EXCLUDED.updated_at
                    """
                ),
                {
                    "id": _new_id(),
                    "user_id": user_id,
                    "period": period,
                    "notion_page_id": entry.get("notion_page_id"),
                    "title": entry.get("title"),
                    "date": entry.get("date"),
                    "properties_json": json.dumps(entry.get("properties") or {}, ensure_ascii=False, default=str),
                    "updated_at": _now(),
                },
            )
        await session.commit()
    return len(entries)


ASSET_COLUMNS = [
    "id",
    "user_id",
    "notion_page_id",
    "notion_database_id",
    "name",
    "symbol",
    "asset_type",
    "current_price",
    "total_worth",
    "currency",
    "updated_at",
    "last_synced_at",
]
ACCOUNT_COLUMNS = [
    "id",
    "user_id",
    "notion_page_id",
    "notion_database_id",
    "name",
    "balance",
    "currency",
    "updated_at",
    "last_synced_at",
]
INVESTMENT_COLUMNS = [
    "id",
    "user_id",
    "notion_page_id",
    "notion_database_id",
    "name",
    "asset_id",
    "account_id",
    "quantity",
    "current_price",
    "current_value",
    "currency",
    "updated_at",
    "last_synced_at",
]
FINANCE_TABLES = {"assets": ASSETS_TABLE, "accounts": ACCOUNTS_TABLE, "investments": INVESTMENTS_TABLE}


async def _upsert_notion_rows(
    table: str,
    columns: list[str],
    user_id: str,
    rows: list[dict],
    expressions: dict | None = None,
    extra_binds: tuple = (),
) -> int:
    if not rows:
        return 0
    expressions = expressions or {}
    values = ", ".join(expressions.get(col, f":{col}") for col in columns)
    updates = ", ".join(
        f"{col}=EXCLUDED.{col}" for col in columns if col not in {"id", "user_id", "notion_page_id"}
    )
    statement = sql_text(
        f"""
        INSERT INTO {table} ({', '.join(columns)})
        VALUES ({values})
        ON CONFLICT(user_id, notion_page_id) DO UPDATE SET {updates}
        """
    )
    now = _now()
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        for row in rows:
            params = {name: row.get(name) for name in (*columns, *extra_binds)}
            params.update({"id": _new_id(), "user_id": user_id, "updated_at": now, "last_synced_at": now})
            await session.execute(statement, params)
        await session.commit()
    return len(rows)


async def upsert_assets(user_id: str, rows: list[dict]) -> int:
    return await _upsert_notion_rows(ASSETS_TABLE, ASSET_COLUMNS, user_id, rows)


async def upsert_accounts(user_id: str, rows: list[dict]) -> int:
    return await _upsert_notion_rows(ACCOUNTS_TABLE, ACCOUNT_COLUMNS, user_id, rows)


async def upsert_investments(user_id: str, rows: list[dict]) -> int:
    """Upsert investments, linking them to already-synced assets and accounts by Notion page id."""
    asset_lookup = f"FROM {ASSETS_TABLE} WHERE user_id = :user_id AND notion_page_id = :asset_page_id"
    expressions = {
        "asset_id": f"(SELECT id {asset_lookup})",
        "account_id": (
            f"(SELECT id FROM {ACCOUNTS_TABLE} WHERE user_id = :user_id AND notion_page_id = :account_page_id)"
        ),
        # price falls back to the linked asset's price
        "current_price": f"COALESCE(:current_price, (SELECT current_price {asset_lookup}))",
    }
    return await _upsert_notion_rows(
        INVESTMENTS_TABLE,
        INVESTMENT_COLUMNS,
        user_id,
        rows,
        expressions=expressions,
        extra_binds=("asset_page_id", "account_page_id"),
    )


async def delete_finance_rows_missing_from(kind: str, user_id: str, database_id: str, keep_page_ids: list[str]) -> int:
    return await _delete_missing(FINANCE_TABLES[kind], user_id, database_id, keep_page_ids)


async def list_assets(user_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT id, name, symbol, asset_type, current_price, total_worth, currency, color
                FROM {ASSETS_TABLE}
                WHERE user_id = :user_id
                ORDER BY name
                """
            ),
            {"user_id": user_id},
        )).mappings().all()
    return [dict(row) for row in rows]


async def list_accounts(user_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"SELECT id, name, balance, currency FROM {ACCOUNTS_TABLE} WHERE user_id = :user_id ORDER BY name"
            ),
            {"user_id": user_id},
        )).mappings().all()
    return [dict(row) for row in rows]


async def list_investments(user_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT id, name, asset_id, account_id, quantity, current_price, current_value, current_worth, currency
                FROM {INVESTMENTS_TABLE}
                WHERE user_id = :user_id
                """
            ),
            {"user_id": user_id},
        )).mappings().all()
    return [dict(row) for row in rows]


async def get_latest_watched_video(user_id: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"""
                SELECT video_id, video_title, channel_name, channel_url, video_url, thumbnail_url, watched_at
                FROM {WATCH_HISTORY_TABLE}
                WHERE user_id = :user_id
                ORDER BY watched_at DESC
                LIMIT 1
                """
            ),
            {"user_id": user_id},
        )).mappings().fetchone()
    return dict(row) if row else None


async def insert_watched_videos(user_id: str, videos: list[dict]) -> int:
    """Insert watch history rows; a video already recorded at the same time is skipped."""
    if not videos:
        return 0
    inserted = 0
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        for video in videos:
            result = await session.execute(
                sql_text(
                    f"""
                    INSERT INTO {WATCH_HISTORY_TABLE}
                        (id, user_id, video_id, video_title, channel_name, channel_url, video_url, thumbnail_url, watched_at)
                    VALUES
                        (:id, :user_id, :video_id, :video_title, :channel_name, :channel_url, :video_url, :thumbnail_url, :watched_at)
                    ON CONFLICT(user_id, video_id, watched_at) DO NOTHING
                    """
                ),
                {
                    "id": _new_id(),
                    "user_id": user_id,
                    "video_id": video["video_id"],
                    "video_title": video.get("title"),
                    "channel_name": video.get("channel_name"),
                    "channel_url": video.get("channel_url"),
                    "video_url": video.get("video_url"),
                    "thumbnail_url": video.get("thumbnail_url"),
                    "watched_at": video["watched_at"],
                },
            )
            inserted += int(result.rowcount or 0)
        await session.commit()
    return inserted


async def list_people(user_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"SELECT id, name, image_url, nicknames_json FROM {PEOPLE_TABLE} WHERE user_id = :user_id ORDER BY name"
            ),
            {"user_id": user_id},
        )).mappings().all()
    people = []
    for row in rows:
        payload = dict(row)
        payload["nicknames"] = _load_json(payload.pop("nicknames_json", None), [])
        people.append(payload)
    return people


async def create_person(user_id: str, name: str, image_url: str | None, nicknames: list[str]) -> dict:
    name = " ".join(str(name or "").split()).strip()
    if not name:
        raise ValueError("Person name cannot be empty")
    record = {
        "id": _new_id(),
        "user_id": user_id,
        "name": name,
        "image_url": image_url,
        "nicknames_json": json.dumps(nicknames or [], ensure_ascii=False),
        "created_at": _now(),
    }
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {PEOPLE_TABLE} (id, user_id, name, image_url, nicknames_json, created_at)
                VALUES (:id, :user_id, :name, :image_url, :nicknames_json, :created_at)
                """
            ),
            record,
        )
        await session.commit()
    return {"id": record["id"], "name": name, "image_url": image_url, "nicknames": nicknames or []}


async def list_event_people(user_id: str, event_id: str) -> list[dict]:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT ep.id AS link_id, p.id, p.name, p.image_url, p.nicknames_json
                FROM {EVENT_PEOPLE_TABLE} ep
                JOIN {PEOPLE_TABLE} p ON p.id = ep.person_id
                WHERE ep.user_id = :user_id AND ep.event_id = :event_id
                ORDER BY ep.created_at
                """
            ),
            {"user_id": user_id, "event_id": event_id},
        )).mappings().all()
    return [
        {
            "id": row["id"],
            "name": row["name"],
            "image_url": row["image_url"],
            "nicknames": _load_json(row["nicknames_json"], []),
            "linkId": row["link_id"],
        }
        for row in rows
    ]


async def link_person_to_event(user_id: str, event_id: str, person_id: str) -> str:
    link_id = _new_id()
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        person = (await session.execute(
            sql_text(f"SELECT id FROM {PEOPLE_TABLE} WHERE user_id = :user_id AND id = :id"),
            {"user_id": user_id, "id": person_id},
        )).fetchone()
        if not person:
            raise LookupError("Person not found")
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {EVENT_PEOPLE_TABLE} (id, user_id, event_id, person_id, created_at)
                VALUES (:id, :user_id, :event_id, :person_id, :created_at)
                ON CONFLICT(user_id, event_id, person_id) DO NOTHING
                """
            ),
            {"id": link_id, "user_id": user_id, "event_id": event_id, "person_id": person_id, "created_at": _now()},
        )
        # an existing link keeps its id
        stored = (await session.execute(
            sql_text(
                f"SELECT id FROM {EVENT_PEOPLE_TABLE} "
                "WHERE user_id = :user_id AND event_id = :event_id AND person_id = :person_id"
            ),
            {"user_id": user_id, "event_id": event_id, "person_id": person_id},
        )).fetchone()
        await session.commit()
    return stored[0]


async def unlink_event_person(user_id: str, event_id: str, link_id: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"DELETE FROM {EVENT_PEOPLE_TABLE} WHERE user_id = :user_id AND event_id = :event_id AND id = :id"
            ),
            {"user_id": user_id, "event_id": event_id, "id": link_id},
        )
        await session.commit()


async def enqueue_outbox(user_id: str, entity_type: str, entity_id: str, action: str, payload: dict | None = None) -> None:
    session_factory = get_sessionmaker()
    now = _now()
    row = {
        "id": _new_id(),
        "user_id": user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "payload_json": json.dumps(payload or {}, ensure_ascii=False, default=str),
        "status": "pending",
        "attempts": 0,
        "next_retry_at": None,
        "last_error": None,
        "created_at": now,
        "updated_at": now,
    }
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {SYNC_OUTBOX_TABLE}
                (id, user_id, entity_type, entity_id, action, payload_json, status, attempts, next_retry_at, last_error, created_at, updated_at)
                VALUES (:id, :user_id, :entity_type, :entity_id, :action, :payload_json, :status, :attempts, :next_retry_at, :last_error, :created_at, :updated_at)
                """
            ),
            row,
        )
        await session.commit()


async def list_pending_outbox(limit: int = 25) -> list[dict]:
    session_factory = get_sessionmaker()
    now = _now()
    async with session_factory() as session:
        rows = (await session.execute(
            sql_text(
                f"""
                SELECT id, user_id, entity_type, entity_id, action, payload_json,
                       status, attempts, next_retry_at, last_error, created_at, updated_at
                FROM {SYNC_OUTBOX_TABLE}
                WHERE status = 'pending'
                  AND (next_retry_at IS NULL OR next_retry_at <= :now)
                ORDER BY created_at ASC
                LIMIT :limit
                """
            ),
            {"now": now, "limit": limit},
        )).mappings().all()
    return [dict(row) for row in rows]


async def outbox_status(user_id: str) -> dict:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        pending = (await session.execute(
            sql_text(
                f"SELECT COUNT(*) FROM {SYNC_OUTBOX_TABLE} WHERE user_id = :user_id AND status = 'pending'"
            ),
            {"user_id": user_id},
        )).scalar_one()
        last_error = (await session.execute(
            sql_text(
                f"""
                SELECT last_error FROM {SYNC_OUTBOX_TABLE}
                WHERE user_id = :user_id AND status = 'pending' AND last_error IS NOT NULL
                ORDER BY updated_at DESC
                LIMIT 1
                """
            ),
            {"user_id": user_id},
        )).scalar()
    return {"pending": int(pending or 0), "last_error": last_error}


async def mark_outbox_done(outbox_id: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                UPDATE {SYNC_OUTBOX_TABLE}
                SET status = 'done', updated_at = :updated_at
                WHERE id = :id
                """
            ),
            {"id": outbox_id, "updated_at": _now()},
        )
        await session.commit()


async def mark_outbox_error(outbox_id: str, attempts: int, next_retry_at: str, error: str) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                UPDATE {SYNC_OUTBOX_TABLE}
                SET status = 'pending',
                    attempts = :attempts,
                    next_retry_at = :next_retry_at,
                    last_error = :last_error,
                    updated_at = :updated_at
                WHERE id = :id
                """
            ),
            {
                "id": outbox_id,
                "attempts": attempts,
                "next_retry_at": next_retry_at,
                "last_error": error[:500],
                "updated_at": _now(),
            },
        )
        await session.commit()


async def get_google_tokens(user_id: str) -> dict | None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        row = (await session.execute(
            sql_text(
                f"SELECT user_id, refresh_token_enc, access_token, expires_at, scope, updated_at FROM {GOOGLE_TOKENS_TABLE} WHERE user_id = :user_id"
            ),
            {"user_id": user_id},
        )).mappings().fetchone()
    return dict(row) if row else None


async def store_google_tokens(
    user_id: str,
    refresh_token_enc: str,
    access_token: str | None = None,
    expires_at: str | None = None,
    scope: str | None = None,
) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                INSERT INTO {GOOGLE_TOKENS_TABLE}
                    (user_id, refresh_token_enc, access_token, expires_at, scope, updated_at)
                VALUES
                    (:user_id, :refresh_token_enc, :access_token, :expires_at, :scope, :updated_at)
                ON CONFLICT(user_id) DO UPDATE SET
                    refresh_token_enc = EXCLUDED.refresh_token_enc,
                    access_token = COALESCE(EXCLUDED.access_token, {GOOGLE_TOKENS_TABLE}.access_token),
                    expires_at = COALESCE(EXCLUDED.expires_at, {GOOGLE_TOKENS_TABLE}.expires_at),
                    scope = COALESCE(EXCLUDED.scope, {GOOGLE_TOKENS_TABLE}.scope),
                    updated_at = EXCLUDED.updated_at
                """
            ),
            {
                "user_id": user_id,
                "refresh_token_enc": refresh_token_enc,
                "access_token": access_token,
                "expires_at": expires_at,
                "scope": scope,
                "updated_at": _now(),
            },
        )
        await session.commit()


async def update_google_access_token(user_id: str, access_token: str, expires_at: str, scope: str | None = None) -> None:
    session_factory = get_sessionmaker()
    async with session_factory() as session:
        await session.execute(
            sql_text(
                f"""
                UPDATE {GOOGLE_TOKENS_TABLE}
                SET access_token = :access_token,
                    expires_at = :expires_at,
                    scope = COALESCE(:scope, scope),
                    updated_at = :updated_at
                WHERE user_id = :user_id
                """
            ),
            {
                "user_id": user_id,
                "access_token": access_token,
                "expires_at": expires_at,
                "scope": scope,
                "updated_at": _now(),
            },
        )
        await session.commit()
