from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)


class PreferenceStore:
    """UI preferences loaded once per session and written back through :meth:`save`."""

    def __init__(self, loader: Callable[[], dict], saver: Callable[[dict], dict]):
        self._loader = loader
        self._saver = saver
        self._collapsed: list[str] = []
        self._toggles: dict[str, bool] = {}
        self._loaded = False
        self._dirty = False

    def load(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        try:
            payload = self._loader() or {}
        except Exception as exc:
            logger.warning("Preferences unavailable, using defaults: %s", exc)
            return
        self._apply(payload)

    def _apply(self, payload: dict) -> None:
        collapsed = payload.get("collapsed_groups")
        toggles = payload.get("toggles")
        self._collapsed = [str(item) for item in collapsed] if isinstance(collapsed, list) else []
        self._toggles = {str(k): bool(v) for k, v in toggles.items()} if isinstance(toggles, dict) else {}

    def is_collapsed(self, group_key: str) -> bool:
        return group_key in self._collapsed

    def set_collapsed(self, group_key: str, collapsed: bool) -> None:
        if collapsed == self.is_collapsed(group_key):
            return
        if collapsed:
            self._collapsed.append(group_key)
        else:
            self._collapsed.remove(group_key)
        self._dirty = True

    def toggle(self, name: str, default: bool = False) -> bool:
        return self._toggles.get(name, default)

    def set_toggle(self, name: str, value: bool) -> None:
        if self._toggles.get(name) == bool(value):
            return
        self._toggles[name] = bool(value)
        self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def snapshot(self) -> dict:
        return {"collapsed_groups": list(self._collapsed), "toggles": dict(self._toggles)}

    def save(self) -> bool:
        if not self._dirty:
            return True
        try:
            stored = self._saver(self.snapshot())
        except Exception as exc:
            logger.warning("Failed to persist preferences: %s", exc)
            return False
        if isinstance(stored, dict):
            self._apply(stored)
        self._dirty = False
        return True
