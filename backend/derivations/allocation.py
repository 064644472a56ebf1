from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, Sequence

from backend.derivations.records import field, text_or_none

CASH_CATEGORY = "Cash"
UNCATEGORIZED = "Other"


@dataclass
class AllocationSlice:
    category: str
    worth: float
    percentage: int

    def as_dict(self) -> dict:
        return {"category": self.category, "worth": self.worth, "percentage": self.percentage}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def convert_amount(
    amount: float,
    from_currency: str | None,
    to_currency: str | None,
    rates: Mapping[str, float] | None,
    base: str = "USD",
) -> float:
    """Convert through ``base``-denominated rates; unknown rates leave the amount as is."""
    source = (from_currency or base).upper()
    target = (to_currency or base).upper()
    if not amount or not rates or source == target:
        return amount
    if source == base:
        rate = rates.get(target)
        return amount * rate if rate else amount
    from_rate = rates.get(source)
    if target == base:
        return amount / from_rate if from_rate else amount
    to_rate = rates.get(target)
    if from_rate and to_rate:
        return amount / from_rate * to_rate
    return amount


def compute_allocation(
    records: Iterable[Any],
    *,
    worth_of: Callable[[Any], Any],
    category_of: Callable[[Any], Any],
) -> list[AllocationSlice]:
    totals: dict[str, float] = {}
    for record in records:
        category = text_or_none(category_of(record)) or UNCATEGORIZED
        try:
            worth = float(worth_of(record) or 0)
        except (TypeError, ValueError):
            worth = 0.0
        totals[category] = totals.get(category, 0.0) + worth

    positive = [(category, worth) for category, worth in totals.items() if worth > 0]
    total = sum(worth for _, worth in positive)
    if total <= 0:
        return []
    # sorted() is stable: equal worths keep discovery order
    positive.sort(key=lambda pair: pair[1], reverse=True)
    return [
        AllocationSlice(category=category, worth=worth, percentage=_round_half_up(worth / total * 100))
        for category, worth in positive
    ]


def investment_worth(investment: Any) -> float:
    worth = field(investment, "current_worth")
    if worth is not None:
        return float(worth)
    value = field(investment, "current_value")
    if value is not None:
        return float(value)
    price = field(investment, "current_price")
    quantity = field(investment, "quantity")
    if price and quantity:
        return float(price) * float(quantity)
    return 0.0


def asset_worth(asset: Any, investments: Sequence[Any]) -> float:
    asset_id = field(asset, "id")
    calculated = sum(investment_worth(inv) for inv in investments if field(inv, "asset_id") == asset_id)
    if calculated > 0:
        return calculated
    return float(field(asset, "total_worth", 0) or 0)


def asset_label(asset: Any) -> str:
    name = text_or_none(field(asset, "name")) or UNCATEGORIZED
    symbol = text_or_none(field(asset, "symbol"))
    return f"{name} ({symbol})" if symbol else name


def build_distribution_records(
    assets: Sequence[Any],
    accounts: Sequence[Any],
    investments: Sequence[Any],
    *,
    currency: str = "USD",
    rates: Mapping[str, float] | None = None,
    group_by: str = "asset",
) -> list[dict]:
    """Flatten assets plus positive cash balances into ``{category, worth}`` rows."""
    rows = []
    for asset in assets:
        worth = convert_amount(asset_worth(asset, investments), field(asset, "currency"), currency, rates)
        if group_by == "type":
            category = text_or_none(field(asset, "asset_type")) or UNCATEGORIZED
        else:
            category = asset_label(asset)
        rows.append({"category": category, "worth": worth})
    for account in accounts:
        balance = field(account, "balance")
        if balance is None or float(balance) <= 0:
            continue
        rows.append(
            {
                "category": CASH_CATEGORY,
                "worth": convert_amount(float(balance), field(account, "currency"), currency, rates),
            }
        )
    return rows
