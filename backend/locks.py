from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator

_locks: dict[tuple[str, str], asyncio.Lock] = {}
_waiters: dict[tuple[str, str], int] = {}


@asynccontextmanager
async def record_lock(kind: str, record_id: str) -> AsyncIterator[None]:
    """Serialize mutations of one record; unrelated records never wait on each other."""
    key = (kind, str(record_id))
    lock = _locks.get(key)
    if lock is None:
        lock = _locks[key] = asyncio.Lock()
    _waiters[key] = _waiters.get(key, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _waiters[key] -= 1
        if _waiters[key] == 0:
            _waiters.pop(key, None)
            _locks.pop(key, None)


def active_lock_count() -> int:
    return len(_locks)
