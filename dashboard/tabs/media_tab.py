import html
import logging

import streamlit as st

from dashboard.constants import (
    CATEGORY_ICONS,
    MEDIA_STATUSES,
    MEDIA_TABS,
    STATUS_COLORS,
    TOGGLE_CLUSTER_RELATED,
    TOGGLE_GROUP_DONE_BY_MONTH,
)
from dashboard.data import api_client, repositories
from dashboard.state.session_slices import optimistic_store

logger = logging.getLogger(__name__)

CARDS_PER_ROW = 6


def _status_key(media_id):
    return ("media.status", media_id)


def display_status(status):
    """Status as the board shows it; Notion's "Not started" reads as To-do."""
    status = (status or "").strip()
    if not status or status == "Not started":
        return "To-do"
    return status


def status_options(status):
    return MEDIA_STATUSES if status in MEDIA_STATUSES else [status, *MEDIA_STATUSES]


def _change_status(media_id, widget_key):
    store = optimistic_store("media")
    status = st.session_state.get(widget_key)
    ok, error = store.run(_status_key(media_id), status, lambda: repositories.update_media(media_id, {"status": status}))
    if not ok:
        st.toast(f"Could not update status: {error}")


def _delete(media_id):
    try:
        repositories.delete_media(media_id)
    except api_client.ApiError as exc:
        st.toast(f"Delete failed: {exc.message}")
        return
    st.toast("Deleted")


def _render_card(item, grouped=False):
    store = optimistic_store("media")
    store.seed(_status_key(item["id"]), display_status(item.get("status")))
    status = store.get(_status_key(item["id"]), display_status(item.get("status")))
    thumb = api_client.image_proxy_url(item.get("thumbnail_url"))
    color = STATUS_COLORS.get(status, "#8f8aa3")
    st.markdown(
        "<div class='media-card'>"
        + (f"<img src='{html.escape(thumb)}' loading='lazy'/>" if thumb else "<img alt=''/>")
        + f"<div class='media-title'>{html.escape(item.get('name') or 'Untitled')}</div>"
        + f"<span class='status-pill' style='background:{color}'>{html.escape(status)}</span>"
        + ("<span class='cluster-badge'> • related</span>" if grouped else "")
        + "</div>",
        unsafe_allow_html=True,
    )
    with st.popover("Edit", use_container_width=True):
        widget_key = f"media.status.{item['id']}"
        options = status_options(status)
        st.selectbox(
            "Status",
            options,
            index=options.index(status),
            key=widget_key,
            on_change=_change_status,
            args=(item["id"], widget_key),
        )
        if item.get("ai_synopsis"):
            st.caption(item["ai_synopsis"])
        st.button("Delete", key=f"media.delete.{item['id']}", on_click=_delete, args=(item["id"],))


def _render_units(units):
    cards = []
    for unit in units:
        if isinstance(unit, dict) and "members" in unit:
            cards.extend((member, unit["grouped"]) for member in unit["members"])
        else:
            cards.append((unit, False))
    for start in range(0, len(cards), CARDS_PER_ROW):
        cols = st.columns(CARDS_PER_ROW)
        for col, (item, grouped) in zip(cols, cards[start : start + CARDS_PER_ROW]):
            with col:
                _render_card(item, grouped)


def _render_group(group, prefs):
    expanded = not prefs.is_collapsed(group["key"])
    with st.expander(f"{group['key']} ({group['count']})", expanded=expanded):
        collapse = st.checkbox("Keep collapsed", value=not expanded, key=f"media.collapse.{group['key']}")
        prefs.set_collapsed(group["key"], collapse)
        if "buckets" in group:
            for bucket in group["buckets"]:
                icon = CATEGORY_ICONS.get(bucket["key"], "")
                st.markdown(
                    f"<div class='small-label'>{icon} {html.escape(bucket['key'])} · {bucket['count']}</div>",
                    unsafe_allow_html=True,
                )
                if bucket["items"]:
                    _render_units(bucket["items"])
                else:
                    st.caption("Nothing here yet.")
        else:
            _render_units(group["items"])


def _render_toolbar():
    cols = st.columns([3, 1, 1])
    with cols[0]:
        url = st.text_input("Add from IMDb or Goodreads link", key="media.new_link", placeholder="https://www.imdb.com/title/tt...")
    with cols[1]:
        if st.button("Add", key="media.add") and url:
            try:
                media = repositories.create_media_from_link(url)
            except api_client.ApiError as exc:
                st.error(exc.message)
            else:
                st.toast(f"Added {media['name']}")
    with cols[2]:
        if st.button("Sync from Notion", key="media.sync"):
            try:
                result = repositories.sync_media()
            except api_client.ApiError as exc:
                st.error(f"Sync failed: {exc.message}")
            else:
                st.toast(f"Synced {result['synced']} · removed {result['removed']}")


def render_media_tab(ctx):
    prefs = ctx.preferences
    st.markdown("<div class='section-title'>Media</div>", unsafe_allow_html=True)
    _render_toolbar()

    tab_label = st.segmented_control("Shelf", list(MEDIA_TABS), key="media.tab", default=list(MEDIA_TABS)[0])
    toggle_cols = st.columns(2)
    with toggle_cols[0]:
        by_month = st.toggle("Group Done by month", value=prefs.toggle(TOGGLE_GROUP_DONE_BY_MONTH))
    with toggle_cols[1]:
        cluster = st.toggle("Cluster related items", value=prefs.toggle(TOGGLE_CLUSTER_RELATED, True))
    prefs.set_toggle(TOGGLE_GROUP_DONE_BY_MONTH, by_month)
    prefs.set_toggle(TOGGLE_CLUSTER_RELATED, cluster)

    try:
        view = repositories.get_grouped_media(MEDIA_TABS[tab_label or list(MEDIA_TABS)[0]], by_month, cluster)
    except api_client.ApiError as exc:
        logger.warning("Media load failed: %s", exc)
        st.error("Could not load media.")
        st.button("Retry", key="media.retry")
        return

    st.caption(f"Showing {view['shown']} of {view['total']}")
    if not view["groups"]:
        st.info("No media yet. Add a link or sync from Notion.")
        return
    for group in view["groups"]:
        _render_group(group, prefs)
