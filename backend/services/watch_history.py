"""Google Takeout YouTube history: pick out watched videos and their metadata."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

THUMBNAIL_URL = "https://img.youtube.com/vi/{video_id}/maxresdefault.jpg"

_VIDEO_ID_PARAM = re.compile(r"[?&]v=([^&#]+)")
_WATCHED_PREFIX = re.compile(r"^Watched\s+", re.IGNORECASE)


@dataclass
class TakeoutImport:
    videos: list = field(default_factory=list)
    total: int = 0
    errors: list = field(default_factory=list)
    oldest: datetime | None = None
    newest: datetime | None = None

    @property
    def days_back(self) -> int:
        if self.oldest is None or self.newest is None:
            return 0
        return math.ceil((self.newest - self.oldest).total_seconds() / 86400)

    def date_range(self) -> dict:
        return {
            "oldest": self.oldest.isoformat() if self.oldest else None,
            "newest": self.newest.isoformat() if self.newest else None,
            "days_back": self.days_back,
        }


def extract_video_id(url: str | None) -> str | None:
    if not url:
        return None
    values = parse_qs(urlparse(url).query).get("v")
    if values and values[0]:
        return values[0]
    match = _VIDEO_ID_PARAM.search(url)
    return match.group(1) if match else None


def extract_video_title(title: str | None) -> str:
    return _WATCHED_PREFIX.sub("", title or "").strip()


def parse_watched_at(value) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_youtube_item(item) -> bool:
    if not isinstance(item, dict):
        return False
    url = item.get("titleUrl") or ""
    return item.get("header") == "YouTube" and "youtube.com" in url


def parse_takeout(items: list) -> TakeoutImport:
    """Videos from a ``watch-history.json`` export; other products and unreadable rows are skipped."""
    result = TakeoutImport()
    youtube_items = [item for item in items or [] if is_youtube_item(item)]
    result.total = len(youtube_items)
    for item in youtube_items:
        watched_at = parse_watched_at(item.get("time"))
        if watched_at is not None:
            result.oldest = watched_at if result.oldest is None else min(result.oldest, watched_at)
            result.newest = watched_at if result.newest is None else max(result.newest, watched_at)

        video_id = extract_video_id(item["titleUrl"])
        if not video_id:
            result.errors.append(f"Failed to extract video ID from: {item['titleUrl']}")
            continue
        if watched_at is None:
            result.errors.append(f"Missing watch time for video {video_id}")
            continue
        channel = (item.get("subtitles") or [{}])[0] or {}
        result.videos.append(
            {
                "video_id": video_id,
                "title": extract_video_title(item.get("title")),
                "channel_name": channel.get("name"),
                "channel_url": channel.get("url"),
                "video_url": item["titleUrl"],
                "thumbnail_url": THUMBNAIL_URL.format(video_id=video_id),
                "watched_at": watched_at.isoformat(),
            }
        )
    return result
