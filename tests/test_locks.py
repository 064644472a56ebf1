"""Tests for per-record mutation locks."""

from __future__ import annotations

import asyncio

from backend.locks import active_lock_count, record_lock


def test_same_record_mutations_run_one_at_a_time() -> None:
    events = []

    async def mutate(label: str) -> None:
        async with record_lock("media", "m1"):
            events.append(f"{label}-start")
            await asyncio.sleep(0.01)
            events.append(f"{label}-end")

    async def scenario():
        await asyncio.gather(mutate("a"), mutate("b"))

    asyncio.run(scenario())
    assert events == ["a-start", "a-end", "b-start", "b-end"]
    assert active_lock_count() == 0


def test_different_records_do_not_wait_on_each_other() -> None:
    events = []

    async def mutate(record_id: str) -> None:
        async with record_lock("media", record_id):
            events.append(f"{record_id}-start")
            await asyncio.sleep(0.01)
            events.append(f"{record_id}-end")

    async def scenario():
        await asyncio.gather(mutate("m1"), mutate("m2"))

    asyncio.run(scenario())
    assert events[:2] == ["m1-start", "m2-start"]


def test_lock_released_when_body_raises() -> None:
    async def scenario():
        try:
            async with record_lock("habit", "h1"):
                raise ValueError("boom")
        except ValueError:
            pass
        async with record_lock("habit", "h1"):
            return active_lock_count()

    assert asyncio.run(scenario()) == 1
    assert active_lock_count() == 0
