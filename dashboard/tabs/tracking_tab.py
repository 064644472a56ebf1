import pandas as pd
import streamlit as st

from dashboard.constants import TRACKING_PERIODS, TREND_METRICS
from dashboard.data import api_client, repositories
from dashboard.visualizations import trend_sparkline


def _entries_frame(entries):
    frame = pd.DataFrame(
        [{"id": entry["id"], "date": entry.get("date") or "", "title": entry.get("title") or ""} for entry in entries]
    )
    if frame.empty:
        return frame
    return frame.sort_values("date", ascending=False).reset_index(drop=True)


def render_tracking_tab(ctx):
    st.markdown("<div class='section-title'>Tracking</div>", unsafe_allow_html=True)
    cols = st.columns([1, 1, 1])
    with cols[0]:
        period = st.selectbox("Period", TRACKING_PERIODS, key="tracking.period")
    with cols[1]:
        metric = st.selectbox("Metric", list(TREND_METRICS), format_func=TREND_METRICS.get, key="tracking.metric")
    with cols[2]:
        if st.button("Sync from Notion", key="tracking.sync"):
            try:
                result = repositories.sync_tracking(period)
            except api_client.ApiError as exc:
                st.error(f"Sync failed: {exc.message}")
            else:
                st.toast(f"Synced {result['synced']} entries")

    try:
        entries = repositories.list_tracking_entries(period)
    except api_client.ApiError as exc:
        st.error(f"Could not load entries: {exc.message}")
        st.button("Retry", key="tracking.retry")
        return

    frame = _entries_frame(entries)
    if frame.empty:
        st.info("No entries for this period yet.")
        return

    labels = {row.id: f"{row.date} {row.title}".strip() for row in frame.itertuples()}
    focal_id = st.selectbox("Entry", list(labels), format_func=labels.get, key="tracking.entry")
    try:
        trend = repositories.get_trend(period, focal_id, metric)
    except api_client.ApiError as exc:
        st.error(f"Could not build trend: {exc.message}")
        return
    if not trend:
        st.caption("Not enough data around this entry for a trend.")
        return
    st.plotly_chart(
        trend_sparkline(trend, TREND_METRICS[metric]),
        use_container_width=True,
        key=f"tracking.trend.{period}.{metric}",
    )
