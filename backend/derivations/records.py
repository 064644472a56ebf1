from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def field(record: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from a mapping row or a model instance."""
    if record is None:
        return default
    if isinstance(record, Mapping):
        value = record.get(name, default)
    else:
        value = getattr(record, name, default)
    return default if value is None else value


def text_or_none(value: Any) -> str | None:
    if value is None:
        return None
    value_str = str(value).strip()
    return value_str or None
