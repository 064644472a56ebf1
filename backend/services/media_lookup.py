from __future__ import annotations

import logging
import re

import httpx

from backend.settings import get_settings

logger = logging.getLogger(__name__)

OMDB_URL = "https://www.omdbapi.com/"
GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"
GOODREADS_BOOK_URL = "https://www.goodreads.com/book/show/{book_id}"
LOOKUP_TIMEOUT = 10
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

_IMDB_ID = re.compile(r"imdb\.com/title/(tt\d+)")
_GOODREADS_ID = re.compile(r"goodreads\.com/book/show/(\d+)")
_OG_TITLE = re.compile(r'<meta[^>]*property="og:title"[^>]*content="([^"]+)"', re.IGNORECASE)
_H1_TITLE = re.compile(r'<h1[^>]*data-testid="bookTitle"[^>]*>([^<]+)<', re.IGNORECASE)
_TAGS = re.compile(r"<[^>]+>")


class LinkLookupError(Exception):
    """Lookup failure; ``status_code`` 400 for bad input, 502 for upstream trouble."""

    def __init__(self, message: str, status_code: int = 502):
        super().__init__(message)
        self.status_code = status_code


def extract_imdb_id(url: str) -> str | None:
    match = _IMDB_ID.search(url or "")
    return match.group(1) if match else None


def extract_goodreads_id(url: str) -> str | None:
    match = _GOODREADS_ID.search(url or "")
    return match.group(1) if match else None


def _present(value) -> str | None:
    if not value or value == "N/A":
        return None
    return str(value)


def _split_names(value) -> list[str]:
    return [name.strip() for name in str(value).split(",") if name.strip()]


def omdb_to_media(data: dict) -> dict:
    year = _present(data.get("Year"))
    title = data.get("Title") or ""
    by = []
    if _present(data.get("Director")):
        by = _split_names(data["Director"])
    elif _present(data.get("Writer")):
        by = _split_names(data["Writer"])
    return {
        "name": f"{title} ({year})" if year else title,
        "category": "Series" if data.get("Type") == "series" else "Movie",
        "by": by,
        "thumbnail_url": _present(data.get("Poster")),
        "ai_synopsis": _present(data.get("Plot")),
    }


def goodreads_title_from_html(html: str) -> str | None:
    match = _OG_TITLE.search(html or "")
    if match:
        return match.group(1).split(" by ")[0].strip() or None
    match = _H1_TITLE.search(html or "")
    return " ".join(match.group(1).split()) if match else None


def google_book_to_media(volume: dict) -> dict:
    published = volume.get("publishedDate")
    year = published.split("-")[0] if published else None
    title = volume.get("title") or ""
    links = volume.get("imageLinks") or {}
    thumbnail = None
    for size in ("thumbnail", "smallThumbnail", "medium", "large"):
        if links.get(size):
            thumbnail = links[size].replace("http://", "https://")
            break
    description = volume.get("description")
    if description:
        description = " ".join(_TAGS.sub("", description).split())[:500]
    return {
        "name": f"{title} ({year})" if year else title,
        "category": "Book",
        "by": list(volume.get("authors") or []),
        "thumbnail_url": thumbnail,
        "ai_synopsis": description or None,
    }


async def fetch_imdb(imdb_id: str, transport: httpx.AsyncBaseTransport | None = None) -> dict:
    api_key = get_settings().omdb_api_key
    if not api_key:
        raise LinkLookupError("OMDb API key not configured", status_code=500)
    async with httpx.AsyncClient(timeout=LOOKUP_TIMEOUT, transport=transport) as client:
        response = await client.get(OMDB_URL, params={"i": imdb_id, "apikey": api_key})
    if response.status_code >= 400:
        raise LinkLookupError(f"OMDb request failed ({response.status_code})")
    data = response.json()
    if data.get("Response") == "False":
        raise LinkLookupError(data.get("Error") or "Failed to fetch IMDb data")
    return omdb_to_media(data)


async def fetch_goodreads(book_id: str, transport: httpx.AsyncBaseTransport | None = None) -> dict:
    async with httpx.AsyncClient(timeout=LOOKUP_TIMEOUT, transport=transport, follow_redirects=True) as client:
        page = await client.get(GOODREADS_BOOK_URL.format(book_id=book_id), headers={"User-Agent": USER_AGENT})
        title = goodreads_title_from_html(page.text) if page.status_code < 400 else None
        if not title:
            raise LinkLookupError("Could not extract book title from Goodreads URL")
        params = {"q": title, "maxResults": 1}
        api_key = get_settings().google_books_api_key
        if api_key:
            params["key"] = api_key
        response = await client.get(GOOGLE_BOOKS_URL, params=params)
    if response.status_code >= 400:
        raise LinkLookupError(f"Google Books request failed ({response.status_code})")
    items = response.json().get("items") or []
    if not items:
        raise LinkLookupError(f'No book found for "{title}"')
    return google_book_to_media(items[0].get("volumeInfo") or {})


async def lookup_link(url: str, transport: httpx.AsyncBaseTransport | None = None) -> dict:
    """Media fields for an IMDb or Goodreads link."""
    lowered = (url or "").strip().lower()
    if not lowered:
        raise LinkLookupError("URL is required", status_code=400)
    try:
        if "imdb.com" in lowered:
            imdb_id = extract_imdb_id(url)
            if not imdb_id:
                raise LinkLookupError("Invalid IMDb URL", status_code=400)
            media = await fetch_imdb(imdb_id, transport)
        elif "goodreads.com" in lowered:
            book_id = extract_goodreads_id(url)
            if not book_id:
                raise LinkLookupError("Invalid Goodreads URL", status_code=400)
            media = await fetch_goodreads(book_id, transport)
        else:
            raise LinkLookupError("URL must be from IMDb or Goodreads", status_code=400)
    except httpx.HTTPError as exc:
        logger.warning("Media lookup failed for %s: %s", url, exc)
        raise LinkLookupError("Media lookup timed out or failed") from exc
    if not media.get("name"):
        raise LinkLookupError("Failed to extract media data", status_code=500)
    media["url"] = url.strip()
    media["status"] = "Not started"
    return media
