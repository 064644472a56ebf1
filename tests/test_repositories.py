"""Storage tests against a throwaway SQLite database."""

from __future__ import annotations

from backend import repositories


def test_preferences_round_trip_and_dedupe(run_db) -> None:
    async def scenario():
        empty = await repositories.get_preferences("u1")
        await repositories.save_preferences("u1", {"collapsed_groups": ["Done", "Done", "To-do"]})
        await repositories.save_preferences("u1", {"toggles": {"cluster_related": False}})
        other_user = await repositories.get_preferences("u2")
        return empty, await repositories.get_preferences("u1"), other_user

    empty, stored, other_user = run_db(scenario)
    assert empty == {"collapsed_groups": [], "toggles": {}}
    assert stored == {"collapsed_groups": ["Done", "To-do"], "toggles": {"cluster_related": False}}
    assert other_user == empty


def test_media_insert_update_and_order(run_db) -> None:
    async def scenario():
        older = await repositories.insert_media("u1", {"name": "Old", "created": "2024-01-01T00:00:00", "by": ["A"]})
        await repositories.insert_media("u1", {"name": "Undated"})
        await repositories.insert_media("u1", {"name": "New", "created": "2024-06-01T00:00:00"})
        await repositories.insert_media("u2", {"name": "Someone else's"})
        updated = await repositories.update_media("u1", older["id"], {"status": "Done", "category": "ignored"})
        return older, updated, await repositories.list_media("u1")

    older, updated, listed = run_db(scenario)
    assert older["by"] == ["A"]
    assert updated["status"] == "Done"
    assert updated["category"] is None
    assert [item["name"] for item in listed] == ["New", "Old", "Undated"]


def test_notion_upsert_is_idempotent_and_prunes_missing(run_db) -> None:
    rows = [
        {"notion_page_id": "p1", "notion_database_id": "db", "name": "One", "related_notion_page_ids": ["p2"]},
        {"notion_page_id": "p2", "notion_database_id": "db", "name": "Two"},
    ]

    async def scenario():
        await repositories.upsert_media_from_notion("u1", rows)
        await repositories.upsert_media_from_notion("u1", [{**rows[0], "name": "One renamed"}])
        removed = await repositories.delete_media_missing_from("u1", "db", ["p1"])
        return removed, await repositories.list_media("u1")

    removed, listed = run_db(scenario)
    assert removed == 1
    assert len(listed) == 1
    assert listed[0]["name"] == "One renamed"
    assert listed[0]["related_notion_page_ids"] == ["p2"]


def test_habit_days_toggle(run_db) -> None:
    async def scenario():
        habit = await repositories.create_habit("u1", "  Read   daily ", "Active", "#123456")
        await repositories.set_habit_day("u1", habit["id"], "2024-05-01", True)
        await repositories.set_habit_day("u1", habit["id"], "2024-05-01", True)
        await repositories.set_habit_day("u1", habit["id"], "2024-05-02", True)
        await repositories.set_habit_day("u1", habit["id"], "2024-05-02", False)
        await repositories.update_habit("u1", habit["id"], {"colorCode": "#abcdef"})
        return await repositories.get_habit("u1", habit["id"])

    habit = run_db(scenario)
    assert habit["name"] == "Read daily"
    assert habit["colorCode"] == "#abcdef"
    assert [day["date"] for day in habit["days"]] == ["2024-05-01"]


def test_outbox_lifecycle(run_db) -> None:
    async def scenario():
        await repositories.enqueue_outbox("u1", "media", "m1", "update", {"status": "Done"})
        pending = await repositories.list_pending_outbox()
        await repositories.mark_outbox_error(pending[0]["id"], 1, "2999-01-01T00:00:00", "Notion 502")
        status_after_error = await repositories.outbox_status("u1")
        not_due = await repositories.list_pending_outbox()
        await repositories.mark_outbox_done(pending[0]["id"])
        return pending, status_after_error, not_due, await repositories.outbox_status("u1")

    pending, status_after_error, not_due, final = run_db(scenario)
    assert pending[0]["payload_json"] == '{"status": "Done"}'
    assert status_after_error == {"pending": 1, "last_error": "Notion 502"}
    assert not_due == []
    assert final == {"pending": 0, "last_error": None}


def test_event_people_links(run_db) -> None:
    async def scenario():
        person = await repositories.create_person("u1", "Ana", None, ["Aninha"])
        link_id = await repositories.link_person_to_event("u1", "evt-1", person["id"])
        linked = await repositories.list_event_people("u1", "evt-1")
        await repositories.unlink_event_person("u1", "evt-1", link_id)
        return linked, await repositories.list_event_people("u1", "evt-1")

    linked, after = run_db(scenario)
    assert [person["name"] for person in linked] == ["Ana"]
    assert after == []


def test_linking_twice_keeps_the_first_link(run_db) -> None:
    async def scenario():
        person = await repositories.create_person("u1", "Ana", None, [])
        first = await repositories.link_person_to_event("u1", "evt-1", person["id"])
        second = await repositories.link_person_to_event("u1", "evt-1", person["id"])
        return first, second, await repositories.list_event_people("u1", "evt-1")

    first, second, linked = run_db(scenario)
    assert first == second
    assert [person["linkId"] for person in linked] == [first]


def test_finance_upserts_link_investments_to_assets(run_db) -> None:
    asset = {
        "notion_page_id": "a1",
        "notion_database_id": "assets-db",
        "name": "Vanguard",
        "symbol": "VWCE",
        "asset_type": "ETF",
        "current_price": 110.0,
        "currency": "EUR",
    }
    account = {"notion_page_id": "acc1", "notion_database_id": "places-db", "name": "Broker", "balance": 5.0}
    investment = {
        "notion_page_id": "i1",
        "notion_database_id": "inv-db",
        "name": "Lot",
        "asset_page_id": "a1",
        "account_page_id": "acc1",
        "quantity": 2.0,
        "currency": "EUR",
    }
    orphan = {"notion_page_id": "i2", "notion_database_id": "inv-db", "name": "Loose", "asset_page_id": "nope"}

    async def scenario():
        await repositories.upsert_assets("u1", [asset])
        await repositories.upsert_accounts("u1", [account])
        await repositories.upsert_investments("u1", [investment, orphan])
        await repositories.upsert_investments("u1", [{**investment, "quantity": 3.0}])
        assets = await repositories.list_assets("u1")
        accounts = await repositories.list_accounts("u1")
        investments = await repositories.list_investments("u1")
        other_user = await repositories.list_investments("u2")
        return assets, accounts, investments, other_user

    assets, accounts, investments, other_user = run_db(scenario)
    assert len(assets) == 1
    assert assets[0]["current_price"] == 110.0
    by_name = {row["name"]: row for row in investments}
    assert set(by_name) == {"Lot", "Loose"}
    assert by_name["Lot"]["asset_id"] == assets[0]["id"]
    assert by_name["Lot"]["account_id"] == accounts[0]["id"]
    assert by_name["Lot"]["quantity"] == 3.0
    assert by_name["Lot"]["current_price"] == 110.0
    assert by_name["Loose"]["asset_id"] is None
    assert by_name["Loose"]["current_price"] is None
    assert other_user == []


def test_finance_rows_missing_from_notion_are_pruned(run_db) -> None:
    rows = [
        {"notion_page_id": "a1", "notion_database_id": "assets-db", "name": "Keep"},
        {"notion_page_id": "a2", "notion_database_id": "assets-db", "name": "Drop"},
        {"notion_page_id": "a3", "notion_database_id": "other-db", "name": "Other database"},
    ]

    async def scenario():
        synced = await repositories.upsert_assets("u1", rows)
        removed = await repositories.delete_finance_rows_missing_from("assets", "u1", "assets-db", ["a1"])
        return synced, removed, await repositories.list_assets("u1")

    synced, removed, listed = run_db(scenario)
    assert synced == 3
    assert removed == 1
    assert [row["name"] for row in listed] == ["Keep", "Other database"]


def test_watched_videos_are_inserted_once(run_db) -> None:
    videos = [
        {"video_id": "v1", "title": "First", "watched_at": "2024-05-01T10:00:00+00:00"},
        {"video_id": "v2", "title": "Second", "watched_at": "2024-05-03T10:00:00+00:00"},
        {"video_id": "v1", "title": "First again", "watched_at": "2024-05-04T10:00:00+00:00"},
    ]

    async def scenario():
        first = await repositories.insert_watched_videos("u1", videos)
        second = await repositories.insert_watched_videos("u1", videos)
        return first, second, await repositories.get_latest_watched_video("u1")

    first, second, latest = run_db(scenario)
    assert first == 3
    assert second == 0
    assert latest["video_id"] == "v1"
    assert latest["video_title"] == "First again"
