"""Optimistic writes with per-key versions.

Every write becomes a :class:`Transaction`: the new value is shown right
away, the last server-confirmed value is kept for rollback, and the key's
version counter tells completions apart. Only the newest transaction on a
key may change what is displayed. An older success still updates the
confirmed value unless a newer write has already been confirmed, so the
rollback target only ever moves forward.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass(frozen=True)
class Transaction:
    key: Hashable
    version: int
    pending: Any
    rollback: Any


class OptimisticStore:
    def __init__(self):
        self._lock = threading.Lock()
        self._shown: dict = {}
        self._confirmed: dict = {}
        self._confirmed_versions: dict = {}
        self._versions: dict = {}
        self._inflight: dict = {}

    def get(self, key, default=None):
        with self._lock:
            return self._shown.get(key, default)

    def is_pending(self, key) -> bool:
        with self._lock:
            return bool(self._inflight.get(key))

    def seed(self, key, value) -> None:
        """Load a server value; ignored while writes on the key are in flight."""
        with self._lock:
            self._confirmed[key] = value
            self._confirmed_versions[key] = self._versions.get(key, 0)
            if not self._inflight.get(key):
                self._shown[key] = value

    def begin(self, key, value) -> Transaction:
        with self._lock:
            version = self._versions.get(key, 0) + 1
            self._versions[key] = version
            self._inflight[key] = self._inflight.get(key, 0) + 1
            rollback = self._confirmed.get(key, self._shown.get(key))
            self._shown[key] = value
            return Transaction(key=key, version=version, pending=value, rollback=rollback)

    def _settle(self, txn: Transaction) -> bool:
        remaining = self._inflight.get(txn.key, 1) - 1
        if remaining > 0:
            self._inflight[txn.key] = remaining
        else:
            self._inflight.pop(txn.key, None)
        return txn.version == self._versions.get(txn.key)

    def confirm(self, txn: Transaction, server_value: Any = _MISSING) -> bool:
        """Record success; returns whether the displayed value was updated."""
        value = txn.pending if server_value is _MISSING else server_value
        with self._lock:
            latest = self._settle(txn)
            if txn.version >= self._confirmed_versions.get(txn.key, 0):
                self._confirmed[txn.key] = value
                self._confirmed_versions[txn.key] = txn.version
            if latest:
                self._shown[txn.key] = value
            return latest

    def fail(self, txn: Transaction) -> bool:
        """Record failure; only the newest transaction rolls the display back."""
        with self._lock:
            latest = self._settle(txn)
            if latest:
                self._shown[txn.key] = self._confirmed.get(txn.key, txn.rollback)
            return latest

    def run(self, key, value, action: Callable[[], Any]) -> tuple[bool, Exception | None]:
        txn = self.begin(key, value)
        try:
            action()
        except Exception as exc:
            logger.warning("Optimistic write on %s failed: %s", key, exc)
            self.fail(txn)
            return False, exc
        self.confirm(txn)
        return True, None
