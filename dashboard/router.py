import streamlit as st

from dashboard.tabs.finances_tab import render_finances_tab
from dashboard.tabs.habits_tab import render_habits_tab
from dashboard.tabs.media_tab import render_media_tab
from dashboard.tabs.tracking_tab import render_tracking_tab


TAB_OPTIONS = [
    "Media",
    "Habits",
    "Tracking",
    "Finances",
]


def render_router(ctx):
    active = st.session_state.get("ui.active_tab", TAB_OPTIONS[0])
    active = st.segmented_control(
        "Workspace",
        TAB_OPTIONS,
        key="ui.active_tab",
        default=active,
    )

    if active == "Habits":
        return _render_habits(ctx)

    if active == "Tracking":
        return _render_tracking(ctx)

    if active == "Finances":
        return _render_finances(ctx)

    return _render_media(ctx)


@st.fragment
def _render_media(ctx):
    render_media_tab(ctx)


@st.fragment
def _render_habits(ctx):
    render_habits_tab(ctx)


@st.fragment
def _render_tracking(ctx):
    render_tracking_tab(ctx)


@st.fragment
def _render_finances(ctx):
    render_finances_tab(ctx)
