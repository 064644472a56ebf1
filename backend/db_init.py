from __future__ import annotations

import logging

from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from backend.db import get_engine

logger = logging.getLogger(__name__)

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


async def init_db():
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {SETTINGS_TABLE} (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {MEDIA_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    notion_page_id TEXT,
                    notion_database_id TEXT,
                    name TEXT NOT NULL,
                    category TEXT,
                    status TEXT,
                    url TEXT,
                    by_json TEXT,
                    topic_json TEXT,
                    ai_synopsis TEXT,
                    thumbnail_url TEXT,
                    created TEXT,
                    monthly_tracking TEXT,
                    related_json TEXT,
                    updated_at TEXT,
                    last_synced_at TEXT,
                    UNIQUE (user_id, notion_page_id)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {HABITS_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    notion_page_id TEXT,
                    name TEXT NOT NULL,
                    status TEXT,
                    color_code TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {HABIT_DAYS_TABLE} (
                    id TEXT PRIMARY KEY,
                    habit_id TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    date TEXT NOT NULL,
                    notion_page_id TEXT,
                    UNIQUE (habit_id, date)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {TRACKING_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    period TEXT NOT NULL,
                    notion_page_id TEXT,
                    title TEXT,
                    date TEXT,
                    properties_json TEXT,
                    updated_at TEXT,
                    UNIQUE (user_id, period, notion_page_id)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {ASSETS_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    notion_page_id TEXT,
                    notion_database_id TEXT,
                    name TEXT NOT NULL,
                    symbol TEXT,
                    asset_type TEXT,
                    current_price REAL,
                    total_worth REAL,
                    currency TEXT DEFAULT 'USD',
                    color TEXT,
                    updated_at TEXT,
                    last_synced_at TEXT,
                    UNIQUE (user_id, notion_page_id)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {ACCOUNTS_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    notion_page_id TEXT,
                    notion_database_id TEXT,
                    name TEXT NOT NULL,
                    balance REAL,
                    currency TEXT DEFAULT 'USD',
                    updated_at TEXT,
                    last_synced_at TEXT,
                    UNIQUE (user_id, notion_page_id)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {INVESTMENTS_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    notion_page_id TEXT,
                    notion_database_id TEXT,
                    name TEXT,
                    asset_id TEXT,
                    account_id TEXT,
                    quantity REAL,
                    current_price REAL,
                    current_value REAL,
                    current_worth REAL,
                    currency TEXT DEFAULT 'USD',
                    updated_at TEXT,
                    last_synced_at TEXT,
                    UNIQUE (user_id, notion_page_id)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {WATCH_HISTORY_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    video_id TEXT NOT NULL,
                    video_title TEXT,
                    channel_name TEXT,
                    channel_url TEXT,
                    video_url TEXT,
                    thumbnail_url TEXT,
                    watched_at TEXT NOT NULL,
                    UNIQUE (user_id, video_id, watched_at)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {PEOPLE_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    image_url TEXT,
                    nicknames_json TEXT,
                    created_at TEXT NOT NULL
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {EVENT_PEOPLE_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    event_id TEXT NOT NULL,
                    person_id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    UNIQUE (user_id, event_id, person_id)
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {GOOGLE_TOKENS_TABLE} (
                    user_id TEXT PRIMARY KEY,
                    refresh_token_enc TEXT NOT NULL,
                    access_token TEXT,
                    expires_at TEXT,
                    scope TEXT,
                    updated_at TEXT NOT NULL
                )
                """
            )
        )
        await conn.execute(
            sql_text(
                f"""
                CREATE TABLE IF NOT EXISTS {SYNC_OUTBOX_TABLE} (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    entity_type TEXT NOT NULL,
                    entity_id TEXT NOT NULL,
                    action TEXT NOT NULL,
                    payload_json TEXT,
                    status TEXT NOT NULL DEFAULT 'pending',
                    attempts INTEGER DEFAULT 0,
                    next_retry_at TEXT,
                    last_error TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
        )

    async def ensure_index(index_sql: str) -> None:
        try:
            async with engine.begin() as conn:
                await conn.execute(sql_text(index_sql))
        except SQLAlchemyError as exc:
            logger.warning("Index creation skipped: %s", exc)

    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{MEDIA_TABLE}_user_created "
        f"ON {MEDIA_TABLE} (user_id, created)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{HABIT_DAYS_TABLE}_user_date "
        f"ON {HABIT_DAYS_TABLE} (user_id, date)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{TRACKING_TABLE}_user_period "
        f"ON {TRACKING_TABLE} (user_id, period, date)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{WATCH_HISTORY_TABLE}_user_watched "
        f"ON {WATCH_HISTORY_TABLE} (user_id, watched_at)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{EVENT_PEOPLE_TABLE}_event "
        f"ON {EVENT_PEOPLE_TABLE} (user_id, event_id)"
    )
    await ensure_index(
        f"CREATE INDEX IF NOT EXISTS idx_{SYNC_OUTBOX_TABLE}_status "
        f"ON {SYNC_OUTBOX_TABLE} (status, next_retry_at)"
    )
