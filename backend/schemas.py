from __future__ import annotations

from datetime import date as dt_date, datetime
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, ConfigDict, Field


class MediaRecord(BaseModel):
    id: str
    user_id: Optional[str] = None
    notion_page_id: Optional[str] = None
    notion_database_id: Optional[str] = None
    name: str
    category: Optional[str] = None
    status: Optional[str] = None
    url: Optional[str] = None
    by: List[str] = Field(default_factory=list)
    topic: List[str] = Field(default_factory=list)
    ai_synopsis: Optional[str] = None
    thumbnail_url: Optional[str] = None
    created: Optional[str] = None
    monthly_tracking: Optional[str] = None
    related_notion_page_ids: List[str] = Field(default_factory=list)
    updated_at: Optional[str] = None
    last_synced_at: Optional[str] = None


class MediaPatch(BaseModel):
    name: Optional[str] = None
    ai_synopsis: Optional[str] = None
    status: Optional[str] = None


class MediaFromLink(BaseModel):
    url: str


class HabitDay(BaseModel):
    id: str
    date: str


class HabitRecord(BaseModel):
    id: str
    name: str
    status: str = "Unplanned"
    colorCode: str = "#22c55e"
    days: List[HabitDay] = Field(default_factory=list)


class HabitToggle(BaseModel):
    habitId: str
    date: dt_date
    completed: bool


class HabitStatusPayload(BaseModel):
    habitId: str
    status: str


class HabitColorPayload(BaseModel):
    habitId: str
    colorCode: str


class HabitUpdate(BaseModel):
    habitId: str
    name: Optional[str] = None
    status: Optional[str] = None
    colorCode: Optional[str] = None


class HabitCreate(BaseModel):
    name: str
    status: str = "Active"
    colorCode: str = "#22c55e"


class TrackingEntry(BaseModel):
    id: str
    period: str
    title: Optional[str] = None
    date: Optional[str] = None
    properties: Dict[str, Any] = Field(default_factory=dict)
    notion_page_id: Optional[str] = None


class AssetRecord(BaseModel):
    id: str
    name: str
    symbol: Optional[str] = None
    asset_type: Optional[str] = None
    current_price: Optional[float] = None
    total_worth: Optional[float] = None
    currency: str = "USD"
    color: Optional[str] = None


class AccountRecord(BaseModel):
    id: str
    name: str
    balance: Optional[float] = None
    currency: str = "USD"


class InvestmentRecord(BaseModel):
    id: str
    name: Optional[str] = None
    asset_id: Optional[str] = None
    account_id: Optional[str] = None
    quantity: Optional[float] = None
    current_price: Optional[float] = None
    current_value: Optional[float] = None
    current_worth: Optional[float] = None
    currency: str = "USD"


class WatchedVideo(BaseModel):
    video_id: str
    title: Optional[str] = None
    channel_name: Optional[str] = None
    channel_url: Optional[str] = None
    video_url: Optional[str] = None
    thumbnail_url: Optional[str] = None
    watched_at: str


class CalendarEvent(BaseModel):
    id: str
    calendar_id: str
    summary: str
    start: Optional[str] = None
    end: Optional[str] = None
    all_day: bool = False
    location: Optional[str] = None
    description: Optional[str] = None


class EventCreate(BaseModel):
    calendar_id: str = "primary"
    summary: str
    start: datetime | dt_date
    end: Optional[datetime | dt_date] = None
    description: Optional[str] = None
    location: Optional[str] = None


class EventPatch(BaseModel):
    summary: Optional[str] = None
    start: Optional[datetime | dt_date] = None
    end: Optional[datetime | dt_date] = None
    description: Optional[str] = None
    location: Optional[str] = None


class PersonCreate(BaseModel):
    name: str
    image_url: Optional[str] = None
    nicknames: List[str] = Field(default_factory=list)


class EventPersonLink(BaseModel):
    personId: str


class PreferencesPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    collapsed_groups: Optional[List[str]] = None
    toggles: Optional[Dict[str, bool]] = None


class SyncStatusResponse(BaseModel):
    connected: bool
    pending_outbox: int
    last_error: Optional[str]


class MediaListResponse(BaseModel):
    media: List[MediaRecord]


class TrackingListResponse(BaseModel):
    entries: List[TrackingEntry]


class FinanceAssetsResponse(BaseModel):
    assets: List[AssetRecord]
    accounts: List[AccountRecord]
    investments: List[InvestmentRecord]


class RecentlyWatchedResponse(BaseModel):
    video: Optional[WatchedVideo] = None


class CalendarEventsResponse(BaseModel):
    events: List[CalendarEvent]
