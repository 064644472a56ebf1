from __future__ import annotations

import hashlib
import hmac
import logging
from datetime import datetime

import httpx

from backend.settings import get_settings

logger = logging.getLogger(__name__)

NOTION_API = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
PAGE_SIZE = 100

SYNOPSIS_PROPERTY_NAMES = ("Synopsys", "AI synopsis", "AI Synopsis", "Synopsis", "Description")


class NotionError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _headers() -> dict:
    settings = get_settings()
    if not settings.notion_api_key:
        raise NotionError("Notion API key not configured")
    return {
        "Authorization": f"Bearer {settings.notion_api_key}",
        "Notion-Version": NOTION_VERSION,
        "Content-Type": "application/json",
    }


async def _request(method: str, path: str, payload: dict | None = None) -> dict:
    headers = _headers()
    async with httpx.AsyncClient(timeout=25) as client:
        response = await client.request(method, f"{NOTION_API}{path}", headers=headers, json=payload)
    if response.status_code >= 400:
        try:
            message = response.json().get("message") or response.text
        except ValueError:
            message = response.text
        raise NotionError(f"Notion API error ({response.status_code}): {message}", response.status_code)
    return response.json()


async def query_database(database_id: str, filter: dict | None = None, sorts: list | None = None) -> list[dict]:
    """All pages of a database, following ``next_cursor`` until exhausted."""
    results: list[dict] = []
    cursor = None
    while True:
        body: dict = {"page_size": PAGE_SIZE}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts
        if cursor:
            body["start_cursor"] = cursor
        payload = await _request("POST", f"/databases/{database_id}/query", body)
        results.extend(payload.get("results") or [])
        cursor = payload.get("next_cursor")
        if not payload.get("has_more") or not cursor:
            return results


async def retrieve_database(database_id: str) -> dict:
    return await _request("GET", f"/databases/{database_id}")


async def retrieve_page(page_id: str) -> dict:
    return await _request("GET", f"/pages/{page_id}")


async def create_page(database_id: str, properties: dict) -> dict:
    return await _request("POST", "/pages", {"parent": {"database_id": database_id}, "properties": properties})


async def update_page(page_id: str, properties: dict) -> dict:
    return await _request("PATCH", f"/pages/{page_id}", {"properties": properties})


async def archive_page(page_id: str) -> dict:
    return await _request("PATCH", f"/pages/{page_id}", {"archived": True})


def get_property_value(prop: dict | None, prop_type: str | None = None):
    if not prop:
        return None
    prop_type = prop_type or prop.get("type")
    if prop_type == "title":
        parts = prop.get("title") or []
        return parts[0].get("plain_text", "") if parts else ""
    if prop_type == "rich_text":
        parts = prop.get("rich_text") or []
        return parts[0].get("plain_text", "") if parts else ""
    if prop_type == "select":
        return (prop.get("select") or {}).get("name")
    if prop_type == "multi_select":
        return [item.get("name") for item in prop.get("multi_select") or [] if item.get("name")]
    if prop_type == "date":
        return (prop.get("date") or {}).get("start")
    if prop_type == "created_time":
        return prop.get("created_time")
    if prop_type == "status":
        return (prop.get("status") or {}).get("name")
    if prop_type == "url":
        return prop.get("url")
    if prop_type == "files":
        return prop.get("files") or []
    if prop_type == "relation":
        return [rel.get("id") for rel in prop.get("relation") or [] if rel.get("id")]
    if prop_type == "number":
        return prop.get("number")
    if prop_type == "formula":
        formula = prop.get("formula") or {}
        return formula.get(formula.get("type"))
    if prop_type == "rollup":
        rollup = prop.get("rollup") or {}
        return rollup.get("number") if rollup.get("type") == "number" else None
    return None


def get_thumbnail_url(files) -> str | None:
    if not isinstance(files, list) or not files:
        return None
    first = files[0] or {}
    if first.get("type") == "external":
        return (first.get("external") or {}).get("url")
    if first.get("type") == "file":
        return (first.get("file") or {}).get("url")
    return None


def database_schema(database: dict) -> dict:
    return {
        key: {"type": prop.get("type"), "name": prop.get("name") or key}
        for key, prop in (database.get("properties") or {}).items()
    }


def _iso(value) -> str | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).isoformat()
    except ValueError:
        return str(value)


def build_media_row(page: dict, database_id: str, schema: dict) -> dict:
    properties = page.get("properties") or {}
    row = {
        "notion_page_id": page.get("id"),
        "notion_database_id": database_id,
        "name": "Untitled",
        "by": [],
        "topic": [],
        "related_notion_page_ids": [],
    }
    title_key = next((key for key, prop in schema.items() if prop.get("type") == "title"), None)
    if title_key:
        row["name"] = get_property_value(properties.get(title_key), "title") or "Untitled"

    for key, prop in schema.items():
        value_prop = properties.get(key)
        if not value_prop:
            continue
        value = get_property_value(value_prop, prop.get("type"))
        name = prop.get("name") or key
        if name == "Name":
            row["name"] = value or row["name"]
        elif name == "Category":
            row["category"] = value
        elif name == "Status":
            row["status"] = value
        elif name == "URL":
            row["url"] = value
        elif name == "By":
            row["by"] = value if isinstance(value, list) else []
        elif name == "Topic":
            row["topic"] = value if isinstance(value, list) else []
        elif name == "Thumbnail":
            row["thumbnail_url"] = get_thumbnail_url(value)
        elif name in {"Synopsys", "AI synopsis"}:
            row["ai_synopsis"] = value
        elif name == "Created":
            row["created"] = _iso(value)
        elif name == "Related":
            row["related_notion_page_ids"] = value if isinstance(value, list) else []
        elif prop.get("type") == "relation" and value:
            row["monthly_tracking"] = value[0]
    if not row.get("created"):
        row["created"] = _iso(page.get("created_time"))
    return row


def media_patch_properties(patch: dict, schema: dict | None = None) -> dict:
    """Notion property payload for a local media patch, resolved against the schema when known."""
    names = {prop.get("name") or key: key for key, prop in (schema or {}).items()}
    properties: dict = {}
    if patch.get("name") is not None:
        properties[names.get("Name", "Name")] = {"title": [{"text": {"content": patch["name"]}}]}
    if patch.get("status") is not None:
        status = "Not started" if patch["status"] == "To-do" else patch["status"]
        properties[names.get("Status", "Status")] = {"status": {"name": status}}
    if "ai_synopsis" in patch:
        key = next((names[name] for name in SYNOPSIS_PROPERTY_NAMES if name in names), "Synopsys")
        text = patch.get("ai_synopsis")
        properties[key] = {"rich_text": [{"text": {"content": text}}] if text else []}
    return properties


def media_create_properties(media: dict) -> dict:
    properties = {
        "Name": {"title": [{"text": {"content": media.get("name") or "Untitled"}}]},
        "Status": {"status": {"name": media.get("status") or "Not started"}},
    }
    if media.get("category"):
        properties["Category"] = {"select": {"name": media["category"]}}
    if media.get("url"):
        properties["URL"] = {"url": media["url"]}
    if media.get("by"):
        properties["By"] = {"multi_select": [{"name": name[:100]} for name in media["by"]]}
    if media.get("ai_synopsis"):
        properties["Synopsys"] = {"rich_text": [{"text": {"content": media["ai_synopsis"][:2000]}}]}
    if media.get("thumbnail_url"):
        properties["Thumbnail"] = {
            "files": [{"type": "external", "name": "thumbnail", "external": {"url": media["thumbnail_url"]}}]
        }
    return properties


def build_habit(page: dict) -> dict:
    properties = page.get("properties") or {}
    return {
        "notion_page_id": page.get("id"),
        "name": get_property_value(properties.get("Name"), "title") or "Unnamed Habit",
        "status": get_property_value(properties.get("Status"), "status") or "Unplanned",
        "colorCode": get_property_value(properties.get("Color Code"), "rich_text") or "#22c55e",
        "day_page_ids": get_property_value(properties.get("Days"), "relation") or [],
    }


def habit_properties(name: str | None = None, status: str | None = None, color_code: str | None = None) -> dict:
    properties: dict = {}
    if name is not None:
        properties["Name"] = {"title": [{"text": {"content": name}}]}
    if status is not None:
        properties["Status"] = {"status": {"name": status}}
    if color_code is not None:
        properties["Color Code"] = {"rich_text": [{"text": {"content": color_code}}]}
    return properties


def build_tracking_entry(page: dict) -> dict:
    properties = page.get("properties") or {}
    title = ""
    entry_date = None
    for prop in properties.values():
        prop_type = prop.get("type")
        if prop_type == "title" and not title:
            title = get_property_value(prop, "title") or ""
        elif prop_type == "date" and entry_date is None:
            entry_date = get_property_value(prop, "date")
    return {
        "notion_page_id": page.get("id"),
        "title": title,
        "date": entry_date[:10] if entry_date else None,
        "properties": properties,
    }


# lower-cased Notion property name -> column
ASSET_FIELDS = {
    "ticker": "symbol",
    "symbol": "symbol",
    "current price": "current_price",
    "type": "asset_type",
    "asset type": "asset_type",
    "category": "asset_type",
    "total worth": "total_worth",
    "worth": "total_worth",
    "currency": "currency",
}
INVESTMENT_FIELDS = {
    "units": "quantity",
    "quantity": "quantity",
    "qty": "quantity",
    "result": "current_value",
    "current value": "current_value",
    "value": "current_value",
    "current price": "current_price",
    "price": "current_price",
    "currency": "currency",
}
INVESTMENT_RELATIONS = {
    "asset": "asset_page_id",
    "facet in nw": "account_page_id",
    "facets in nw": "account_page_id",
}
ACCOUNT_FIELDS = {
    "value [bank]": "balance",
    "balance": "balance",
    "value [usd]": "balance_usd",
    "currency": "currency",
}
_NUMERIC_COLUMNS = {"current_price", "total_worth", "quantity", "current_value", "balance", "balance_usd"}


def normalize_page_id(page_id) -> str | None:
    """Page ids compare without dashes; Notion returns both spellings."""
    return str(page_id).replace("-", "") if page_id else None


def _number(value) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _finance_row(page: dict, database_id: str, schema: dict, fields: dict, relations: dict | None = None) -> dict:
    properties = page.get("properties") or {}
    row: dict = {
        "notion_page_id": normalize_page_id(page.get("id")),
        "notion_database_id": database_id,
        "name": "Untitled",
    }
    for key, prop in schema.items():
        value_prop = properties.get(key)
        if not value_prop:
            continue
        prop_type = prop.get("type")
        value = get_property_value(value_prop, prop_type)
        name = (prop.get("name") or key).strip().lower()
        if prop_type == "title":
            row["name"] = value or "Untitled"
        elif relations and name in relations:
            if prop_type == "relation" and value:
                row[relations[name]] = normalize_page_id(value[0])
        elif name in fields:
            column = fields[name]
            if isinstance(value, list):
                value = value[0] if value else None
            row[column] = _number(value) if column in _NUMERIC_COLUMNS else value
    row["currency"] = str(row.get("currency") or "USD").upper()
    return row


def build_asset_row(page: dict, database_id: str, schema: dict) -> dict:
    return _finance_row(page, database_id, schema, ASSET_FIELDS)


def build_investment_row(page: dict, database_id: str, schema: dict) -> dict:
    return _finance_row(page, database_id, schema, INVESTMENT_FIELDS, INVESTMENT_RELATIONS)


def build_account_row(page: dict, database_id: str, schema: dict) -> dict:
    row = _finance_row(page, database_id, schema, ACCOUNT_FIELDS)
    usd = row.pop("balance_usd", None)
    if row.get("balance") is None and usd is not None:
        row["balance"] = usd
        row["currency"] = "USD"
    return row


async def find_or_create_day_page(database_id: str, day_iso: str) -> str:
    existing = await query_database(database_id, filter={"property": "Date", "date": {"equals": day_iso}})
    if existing:
        return existing[0]["id"]
    created = await create_page(database_id, {"Date": {"date": {"start": day_iso}}})
    return created["id"]


async def set_habit_day_relation(habit_page_id: str, day_page_id: str, completed: bool) -> None:
    page = await retrieve_page(habit_page_id)
    current = get_property_value((page.get("properties") or {}).get("Days"), "relation") or []
    if completed:
        relations = current if day_page_id in current else [*current, day_page_id]
    else:
        relations = [page_id for page_id in current if page_id != day_page_id]
    await update_page(habit_page_id, {"Days": {"relation": [{"id": page_id} for page_id in relations]}})


def verify_webhook_signature(body: bytes, signature_header: str | None, secret: str | None) -> bool:
    if not secret or not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header)
