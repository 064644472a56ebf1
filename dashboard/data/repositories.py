from datetime import date

from dashboard.data import api_client


def api_enabled():
    return api_client.is_enabled()


def get_grouped_media(tab, group_done_by_month=False, cluster=True):
    return api_client.request(
        "GET",
        "/api/media/grouped",
        params={
            "tab": tab,
            "group_done_by_month": str(bool(group_done_by_month)).lower(),
            "cluster": str(bool(cluster)).lower(),
        },
    )


def sync_media():
    return api_client.request("POST", "/api/media/sync", timeout=120)


def create_media_from_link(url):
    return api_client.request("POST", "/api/media/create-from-link", json={"url": url}, timeout=30)["media"]


def update_media(media_id, patch):
    return api_client.request("PATCH", f"/api/media/{media_id}", json=patch)["media"]


def delete_media(media_id):
    return api_client.request("DELETE", f"/api/media/{media_id}")


def list_habits():
    return api_client.request("GET", "/api/notion/habits") or []


def toggle_habit_day(habit_id, day, completed):
    day_iso = day.isoformat() if isinstance(day, date) else str(day)
    return api_client.request(
        "POST",
        "/api/notion/habits",
        json={"habitId": habit_id, "date": day_iso, "completed": bool(completed)},
    )


def set_habit_status(habit_id, status):
    return api_client.request("POST", "/api/notion/habits/status", json={"habitId": habit_id, "status": status})


def set_habit_color(habit_id, color_code):
    return api_client.request("POST", "/api/notion/habits/color", json={"habitId": habit_id, "colorCode": color_code})


def create_habit(name, status, color_code):
    return api_client.request(
        "POST",
        "/api/notion/habits/create",
        json={"name": name, "status": status, "colorCode": color_code},
    )


def sync_habits():
    return api_client.request("POST", "/api/notion/habits/sync", timeout=120)


def get_habit_heatmap(habit_id, year):
    return api_client.request("GET", f"/api/notion/habits/{habit_id}/heatmap", params={"year": year})


def list_tracking_entries(period):
    return api_client.request("GET", f"/api/tracking/{period}").get("entries", [])


def sync_tracking(period):
    return api_client.request("POST", f"/api/tracking/{period}/sync", timeout=120)


def get_trend(period, entry_id, metric):
    return api_client.request("GET", f"/api/tracking/{period}/{entry_id}/trend", params={"metric": metric}).get("trend")


def get_allocation(currency, group_by):
    return api_client.request("GET", "/api/finances/allocation", params={"currency": currency, "group_by": group_by})


def sync_finances():
    return api_client.request("POST", "/api/finances/sync", timeout=120)


def get_recently_watched():
    return api_client.request("GET", "/api/youtube/recently-watched").get("video")


def import_watch_history(items):
    return api_client.request("POST", "/api/youtube/sync-history", json={"items": items}, timeout=120)


def get_preferences():
    return api_client.request("GET", "/api/hq/preferences")


def save_preferences(payload):
    return api_client.request("PUT", "/api/hq/preferences", json=payload)


def get_sync_status():
    return api_client.request("GET", "/api/sync/status")
