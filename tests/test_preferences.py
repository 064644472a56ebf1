"""Tests for the dashboard preference store."""

from __future__ import annotations

from dashboard.state.preferences import PreferenceStore


class FakeBackend:
    def __init__(self, payload=None, fail_load=False, fail_save=False):
        self.payload = payload or {"collapsed_groups": [], "toggles": {}}
        self.fail_load = fail_load
        self.fail_save = fail_save
        self.loads = 0
        self.saved = []

    def load(self):
        self.loads += 1
        if self.fail_load:
            raise ConnectionError("backend down")
        return self.payload

    def save(self, payload):
        if self.fail_save:
            raise ConnectionError("backend down")
        self.saved.append(payload)
        return payload


def test_loads_once() -> None:
    backend = FakeBackend({"collapsed_groups": ["Done"], "toggles": {"cluster_related": False}})
    store = PreferenceStore(backend.load, backend.save)
    store.load()
    store.load()
    assert backend.loads == 1
    assert store.is_collapsed("Done")
    assert store.toggle("cluster_related", True) is False


def test_load_failure_falls_back_to_defaults() -> None:
    backend = FakeBackend(fail_load=True)
    store = PreferenceStore(backend.load, backend.save)
    store.load()
    assert not store.is_collapsed("Done")
    assert store.toggle("group_done_by_month") is False
    assert not store.dirty


def test_changes_mark_dirty_and_save_once() -> None:
    backend = FakeBackend()
    store = PreferenceStore(backend.load, backend.save)
    store.load()
    store.set_collapsed("To-do", True)
    store.set_collapsed("To-do", True)
    store.set_toggle("group_done_by_month", True)
    assert store.dirty
    assert store.save() is True
    assert backend.saved == [{"collapsed_groups": ["To-do"], "toggles": {"group_done_by_month": True}}]
    assert store.save() is True
    assert len(backend.saved) == 1


def test_expanding_removes_collapsed_group() -> None:
    backend = FakeBackend({"collapsed_groups": ["Done"], "toggles": {}})
    store = PreferenceStore(backend.load, backend.save)
    store.load()
    store.set_collapsed("Done", False)
    assert store.snapshot()["collapsed_groups"] == []


def test_failed_save_keeps_changes_dirty() -> None:
    backend = FakeBackend(fail_save=True)
    store = PreferenceStore(backend.load, backend.save)
    store.load()
    store.set_collapsed("Done", True)
    assert store.save() is False
    assert store.dirty
    assert store.is_collapsed("Done")
