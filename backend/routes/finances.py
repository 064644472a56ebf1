from __future__ import annotations

import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from backend.auth import require_user_id
from backend import repositories
from backend.derivations.allocation import build_distribution_records, compute_allocation
from backend.schemas import FinanceAssetsResponse
from backend.services import exchange_rates, notion_service
from backend.settings import get_settings

logger = logging.getLogger(__name__)

CURRENCY_PATTERN = "^[A-Za-z]{3}$"

# investments link to the assets and accounts synced before them
FINANCE_SOURCES = (
    ("assets", "notion_assets_database_id", "build_asset_row", "upsert_assets"),
    ("accounts", "notion_places_database_id", "build_account_row", "upsert_accounts"),
    ("investments", "notion_investments_database_id", "build_investment_row", "upsert_investments"),
)

router = APIRouter()


@router.get("/api/finances/assets", response_model=FinanceAssetsResponse)
async def list_assets(user_id: str = Depends(require_user_id)):
    return {
        "assets": await repositories.list_assets(user_id),
        "accounts": await repositories.list_accounts(user_id),
        "investments": await repositories.list_investments(user_id),
    }


@router.post("/api/finances/sync")
async def sync_finances(user_id: str = Depends(require_user_id)):
    settings = get_settings()
    sources = [
        (kind, getattr(settings, setting), builder, upsert)
        for kind, setting, builder, upsert in FINANCE_SOURCES
        if getattr(settings, setting)
    ]
    if not sources:
        raise HTTPException(status_code=400, detail="Notion finance databases not configured")
    synced: dict = {}
    removed: dict = {}
    for kind, database_id, builder, upsert in sources:
        try:
            schema = notion_service.database_schema(await notion_service.retrieve_database(database_id))
            pages = await notion_service.query_database(database_id)
        except notion_service.NotionError as exc:
            logger.exception("Notion %s pull failed", kind)
            raise HTTPException(status_code=502, detail=f"Failed to sync {kind} from Notion") from exc
        build_row = getattr(notion_service, builder)
        rows = [build_row(page, database_id, schema) for page in pages if not page.get("archived")]
        synced[kind] = await getattr(repositories, upsert)(user_id, rows)
        removed[kind] = await repositories.delete_finance_rows_missing_from(
            kind, user_id, database_id, [row["notion_page_id"] for row in rows]
        )
    logger.info("Finance sync for %s: synced %s, removed %s", user_id, synced, removed)
    return {"success": True, "synced": synced, "removed": removed}


@router.get("/api/finances/exchange-rates")
async def get_exchange_rates(
    base: str = Query("USD", pattern=CURRENCY_PATTERN),
    user_id: str = Depends(require_user_id),
):
    try:
        return await exchange_rates.get_rates(base)
    except httpx.HTTPError as exc:
        logger.exception("Exchange rate fetch failed for %s", base)
        raise HTTPException(status_code=502, detail="Failed to fetch exchange rates") from exc


@router.get("/api/finances/allocation")
async def get_allocation(
    currency: str = Query("USD", pattern=CURRENCY_PATTERN),
    group_by: str = Query("asset", pattern="^(asset|type)$"),
    user_id: str = Depends(require_user_id),
):
    currency = currency.upper()
    rates = None
    try:
        rates = (await exchange_rates.get_rates("USD"))["rates"]
    except httpx.HTTPError as exc:
        # amounts stay in their own currency when rates are unavailable
        logger.warning("Exchange rates unavailable, allocating unconverted: %s", exc)
    rows = build_distribution_records(
        await repositories.list_assets(user_id),
        await repositories.list_accounts(user_id),
        await repositories.list_investments(user_id),
        currency=currency,
        rates=rates,
        group_by=group_by,
    )
    slices = compute_allocation(rows, worth_of=lambda row: row["worth"], category_of=lambda row: row["category"])
    return {
        "currency": currency,
        "total": sum(item.worth for item in slices),
        "slices": [item.as_dict() for item in slices],
    }
