from __future__ import annotations

import os
from typing import Dict, List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = Field(..., alias="DATABASE_URL")
    token_encryption_key: str = Field(..., alias="TOKEN_ENCRYPTION_KEY")
    backend_session_secret: str = Field(..., alias="BACKEND_SESSION_SECRET")

    allowed_users_raw: str = Field("", alias="ALLOWED_USERS")

    notion_api_key: str | None = Field(None, alias="NOTION_API_KEY")
    notion_media_database_id: str | None = Field(None, alias="NOTION_MEDIA_DB_ID")
    notion_habits_database_id: str | None = Field(None, alias="NOTION_HABITS_DB_ID")
    notion_daily_tracking_database_id: str | None = Field(None, alias="NOTION_DAILY_TRACKING_DB_ID")
    notion_tracking_databases_raw: str = Field("", alias="NOTION_TRACKING_DB_IDS")
    notion_assets_database_id: str | None = Field(None, alias="NOTION_ASSETS_DB_ID")
    notion_investments_database_id: str | None = Field(None, alias="NOTION_INVESTMENTS_DB_ID")
    notion_places_database_id: str | None = Field(None, alias="NOTION_PLACES_DB_ID")
    notion_webhook_secret: str | None = Field(None, alias="NOTION_WEBHOOK_SECRET")

    calendar_timezone: str = Field("UTC", alias="CALENDAR_TIMEZONE")
    calendar_ids_raw: str = Field("", alias="GOOGLE_ALLOWED_CALENDAR_IDS")
    calendar_client_id: str | None = Field(None, alias="CALENDAR_CLIENT_ID")
    calendar_client_secret: str | None = Field(None, alias="CALENDAR_CLIENT_SECRET")
    calendar_redirect_uri: str | None = Field(None, alias="CALENDAR_REDIRECT_URI")

    omdb_api_key: str | None = Field(None, alias="OMDB_API_KEY")
    google_books_api_key: str | None = Field(None, alias="GOOGLE_BOOKS_API_KEY")
    exchange_rate_api_url: str = Field("https://api.exchangerate-api.com/v4/latest", alias="EXCHANGE_RATE_API_URL")

    image_proxy_timeout: float = Field(8.0, alias="IMAGE_PROXY_TIMEOUT")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def allowed_users(self) -> List[str]:
        return [item.strip() for item in self.allowed_users_raw.split(",") if item.strip()]

    @property
    def allowed_calendar_ids(self) -> list[str]:
        items = [item.strip() for item in str(self.calendar_ids_raw).split(",") if item.strip()]
        dedup = []
        seen = set()
        for item in items:
            if item in seen:
                continue
            seen.add(item)
            dedup.append(item)
        return dedup

    @property
    def tracking_database_ids(self) -> Dict[str, str]:
        """Period -> Notion database id, from ``daily:abc,monthly:def``."""
        mapping = {}
        for item in self.notion_tracking_databases_raw.split(","):
            period, sep, database_id = item.partition(":")
            if sep and period.strip() and database_id.strip():
                mapping[period.strip().lower()] = database_id.strip()
        if self.notion_daily_tracking_database_id and "daily" not in mapping:
            mapping["daily"] = self.notion_daily_tracking_database_id
        return mapping


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


# For local dev convenience only.
if os.getenv("BACKEND_DEBUG_SETTINGS"):
    print(get_settings())
