import html
import logging
from datetime import datetime

import streamlit as st

from dashboard.data import api_client, repositories

logger = logging.getLogger(__name__)


def _watched_label(watched_at):
    if not watched_at:
        return ""
    try:
        parsed = datetime.fromisoformat(str(watched_at).replace("Z", "+00:00"))
    except ValueError:
        return str(watched_at)
    return parsed.strftime("%b %d, %H:%M")


@st.fragment
def render_global_header(ctx):
    st.markdown("<div class='small-label'>Life HQ • " + ctx.today.isoformat() + "</div>", unsafe_allow_html=True)
    try:
        video = repositories.get_recently_watched()
    except api_client.ApiError as exc:
        logger.warning("Recently watched unavailable: %s", exc)
        st.caption("Recently watched unavailable.")
        return
    if not video:
        st.caption("Nothing watched recently.")
        return
    title = html.escape(video.get("title") or "Untitled video")
    channel = html.escape(video.get("channel_name") or "")
    link = video.get("video_url") or "#"
    thumb = api_client.image_proxy_url(video.get("thumbnail_url"))
    cols = st.columns([0.12, 0.88])
    with cols[0]:
        if thumb:
            st.image(thumb, use_container_width=True)
    with cols[1]:
        st.markdown(
            f"<div class='small-label'>Recently watched</div>"
            f"<div class='media-title'><a href='{html.escape(link)}' target='_blank'>{title}</a></div>"
            f"<div class='cluster-badge'>{channel} • {_watched_label(video.get('watched_at'))}</div>",
            unsafe_allow_html=True,
        )
