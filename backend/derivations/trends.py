"""Chronologically centred metric windows for sparkline charts."""

from __future__ import annotations

import re
from dataclasses import dataclass, field as dc_field
from datetime import date, datetime
from typing import Any, Callable, Sequence

from backend.derivations.records import field, text_or_none

WINDOW_RADIUS = 14

_TITLE_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")


@dataclass
class TrendPoint:
    label: str
    value: float
    is_focal: bool
    is_future: bool


@dataclass
class TrendWindow:
    points: list[TrendPoint] = dc_field(default_factory=list)
    focal_index: int = 0

    @property
    def history(self) -> list[float | None]:
        return [p.value if idx <= self.focal_index else None for idx, p in enumerate(self.points)]

    @property
    def projection(self) -> list[float | None]:
        return [p.value if idx >= self.focal_index else None for idx, p in enumerate(self.points)]

    def as_dict(self) -> dict:
        return {
            "points": [
                {"label": p.label, "value": p.value, "isFocal": p.is_focal, "isFuture": p.is_future}
                for p in self.points
            ],
            "focalIndex": self.focal_index,
            "history": self.history,
            "projection": self.projection,
        }


def property_value(prop: Any) -> Any:
    """Unwrap a Notion-shaped property (number, formula, rollup, date, text)."""
    if prop is None:
        return None
    if isinstance(prop, (int, float, str)) and not isinstance(prop, bool):
        return prop
    if not isinstance(prop, dict):
        return None
    prop_type = prop.get("type")
    if prop_type == "number":
        return prop.get("number")
    if prop_type == "formula":
        return property_value(prop.get("formula"))
    if prop_type == "rollup":
        return property_value(prop.get("rollup"))
    if prop_type == "date":
        return prop.get("date")
    if prop_type in {"string", "title", "rich_text"}:
        value = prop.get(prop_type)
        if isinstance(value, list):
            return "".join(part.get("plain_text", "") for part in value if isinstance(part, dict))
        return value
    if "start" in prop:
        return prop
    return None


def _numeric(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


def metric_rule(*names: str) -> Callable[[Any], float | None]:
    def extract(record: Any) -> float | None:
        properties = field(record, "properties", {}) or {}
        for name in names:
            if name in properties:
                value = _numeric(property_value(properties[name]))
                if value is not None:
                    return value
        return None

    return extract


METRICS: dict[str, Callable[[Any], float | None]] = {
    "rhr": metric_rule("RHR [bpm]", "RHR"),
    "weight": metric_rule("Weight [kg]", "Weight"),
    "steps": metric_rule("Steps"),
    "sleep": metric_rule("Sleep [h]", "Sleep"),
}


def extract_entry_date(record: Any) -> str:
    explicit = field(record, "date")
    if isinstance(explicit, (date, datetime)):
        return explicit.isoformat()
    if text_or_none(explicit):
        return str(explicit)
    properties = field(record, "properties", {}) or {}
    raw = properties.get("Date") or properties.get("date")
    value = property_value(raw)
    if isinstance(value, dict):
        value = value.get("start")
    if text_or_none(value):
        return str(value)
    match = _TITLE_DATE.search(str(field(record, "title", "")))
    return match.group(0) if match else ""


def _display_label(record: Any, date_str: str) -> str:
    if date_str:
        try:
            parsed = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
            return f"{parsed.strftime('%b')} {parsed.day}"
        except ValueError:
            pass
    return str(field(record, "title", ""))


def build_trend_window(
    focal_id: Any,
    records: Sequence[Any],
    metric: Callable[[Any], float | None],
    radius: int = WINDOW_RADIUS,
) -> TrendWindow | None:
    """Slice up to ``radius`` points either side of the focal record.

    When history runs out on the right, the left side takes up the shortfall
    so the window stays near ``2 * radius + 1`` points. Returns None when the
    focal record is unknown, has no value, or fewer than two points survive.
    """
    dated = [(extract_entry_date(record), record) for record in records]
    dated.sort(key=lambda pair: pair[0])
    ordered = [record for _, record in dated]
    dates = [date_str for date_str, _ in dated]

    focal_index = next((i for i, record in enumerate(ordered) if field(record, "id") == focal_id), -1)
    if focal_index == -1:
        return None
    if metric(ordered[focal_index]) is None:
        return None

    available_after = len(ordered) - focal_index - 1
    after = max(0, min(radius, available_after))
    before = radius + (radius - after)
    start = max(0, focal_index - before)
    end = min(len(ordered), focal_index + after + 1)

    points = []
    for position in range(start, end):
        record = ordered[position]
        value = metric(record)
        if value is None:
            continue
        points.append(
            TrendPoint(
                label=_display_label(record, dates[position]),
                value=value,
                is_focal=position == focal_index,
                is_future=position > focal_index,
            )
        )
    if len(points) < 2:
        return None
    focal_point = next(i for i, point in enumerate(points) if point.is_focal)
    return TrendWindow(points=points, focal_index=focal_point)
