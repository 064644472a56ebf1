from __future__ import annotations

import calendar as _calendar
from datetime import date, timedelta
from typing import Any, Iterable

from backend.derivations.records import field

DAY_LABELS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def completed_dates(days: Iterable[Any]) -> set[date]:
    done = set()
    for day in days or []:
        raw = day if isinstance(day, (str, date)) else field(day, "date")
        if isinstance(raw, date):
            done.add(raw)
            continue
        try:
            done.add(date.fromisoformat(str(raw)[:10]))
        except ValueError:
            continue
    return done


def build_habit_heatmap(days: Iterable[Any], *, year: int) -> dict:
    """Week-column grid for one year: rows are weekdays, columns ISO weeks.

    Cells outside the year are None, completed days 1, open days 0.
    """
    done = completed_dates(days)
    start = date(year, 1, 1)
    end = date(year, 12, 31)
    grid_start = start - timedelta(days=start.weekday())
    total_weeks = ((end - grid_start).days // 7) + 1

    z = [[None for _ in range(total_weeks)] for _ in range(7)]
    hover_text = [["" for _ in range(total_weeks)] for _ in range(7)]
    x_labels = ["" for _ in range(total_weeks)]
    for month in range(1, 13):
        first = date(year, month, 1)
        x_labels[(first - grid_start).days // 7] = _calendar.month_abbr[month]

    current = start
    while current <= end:
        offset = (current - grid_start).days
        col, row = offset // 7, current.weekday()
        hit = current in done
        z[row][col] = 1 if hit else 0
        hover_text[row][col] = f"{current.isoformat()} • {'done' if hit else 'open'}"
        current += timedelta(days=1)

    return {"x_labels": x_labels, "y_labels": DAY_LABELS, "z": z, "hover_text": hover_text}


def current_streak(days: Iterable[Any], today: date) -> int:
    done = completed_dates(days)
    current = today if today in done else today - timedelta(days=1)
    count = 0
    while current in done:
        count += 1
        current -= timedelta(days=1)
    return count


def completion_rate(days: Iterable[Any], start: date, end: date) -> float:
    if end < start:
        return 0.0
    done = completed_dates(days)
    total = (end - start).days + 1
    hits = sum(1 for offset in range(total) if start + timedelta(days=offset) in done)
    return round(hits / total * 100, 1)
