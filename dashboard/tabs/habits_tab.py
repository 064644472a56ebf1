import html
from datetime import timedelta

import streamlit as st

from dashboard.constants import DEFAULT_HABIT_COLOR, HABIT_STATUSES
from dashboard.data import api_client, repositories
from dashboard.state.session_slices import optimistic_store
from dashboard.visualizations import habit_heatmap


def _day_key(habit_id, day):
    return ("habit.day", habit_id, day.isoformat())


def _toggle_day(habit_id, day, widget_key):
    completed = bool(st.session_state.get(widget_key))
    ok, error = optimistic_store("habits").run(
        _day_key(habit_id, day),
        completed,
        lambda: repositories.toggle_habit_day(habit_id, day, completed),
    )
    if not ok:
        st.toast(f"Could not save habit: {error}")


def _change_status(habit_id, widget_key):
    status = st.session_state.get(widget_key)
    ok, error = optimistic_store("habits").run(
        ("habit.status", habit_id), status, lambda: repositories.set_habit_status(habit_id, status)
    )
    if not ok:
        st.toast(f"Could not update status: {error}")


def _change_color(habit_id, widget_key):
    color_code = st.session_state.get(widget_key)
    ok, error = optimistic_store("habits").run(
        ("habit.color", habit_id), color_code, lambda: repositories.set_habit_color(habit_id, color_code)
    )
    if not ok:
        st.toast(f"Could not update color: {error}")


def _create_habit():
    name = (st.session_state.get("habits.new_name") or "").strip()
    if not name:
        return
    try:
        repositories.create_habit(
            name,
            st.session_state.get("habits.new_status", HABIT_STATUSES[0]),
            st.session_state.get("habits.new_color", DEFAULT_HABIT_COLOR),
        )
    except api_client.ApiError as exc:
        st.toast(f"Could not create habit: {exc.message}")
        return
    st.session_state["habits.new_name"] = ""


def _render_week(habit, today):
    store = optimistic_store("habits")
    done = {day["date"] for day in habit.get("days") or []}
    week = [today - timedelta(days=offset) for offset in range(6, -1, -1)]
    cols = st.columns(len(week))
    for col, day in zip(cols, week):
        key = _day_key(habit["id"], day)
        store.seed(key, day.isoformat() in done)
        widget_key = f"habits.day.{habit['id']}.{day.isoformat()}"
        st.session_state[widget_key] = bool(store.get(key))
        with col:
            st.checkbox(
                day.strftime("%a %d"),
                key=widget_key,
                on_change=_toggle_day,
                args=(habit["id"], day, widget_key),
            )


def render_habits_tab(ctx):
    st.markdown("<div class='section-title'>Habits</div>", unsafe_allow_html=True)
    top = st.columns([3, 1])
    with top[1]:
        if st.button("Sync from Notion", key="habits.sync"):
            try:
                result = repositories.sync_habits()
            except api_client.ApiError as exc:
                st.error(f"Sync failed: {exc.message}")
            else:
                st.toast(f"Synced {result['synced']} habits")

    try:
        habits = repositories.list_habits()
    except api_client.ApiError as exc:
        st.error(f"Could not load habits: {exc.message}")
        st.button("Retry", key="habits.retry")
        return

    if not habits:
        st.info("No habits yet.")
    store = optimistic_store("habits")
    for habit in habits:
        store.seed(("habit.status", habit["id"]), habit["status"])
        store.seed(("habit.color", habit["id"]), habit["colorCode"])
        status = store.get(("habit.status", habit["id"]), habit["status"])
        color = store.get(("habit.color", habit["id"]), habit["colorCode"])
        st.markdown(
            f"<div class='panel'><span class='status-pill' style='background:{html.escape(color)}'>"
            f"{html.escape(status)}</span> <b>{html.escape(habit['name'])}</b></div>",
            unsafe_allow_html=True,
        )
        _render_week(habit, ctx.today)
        with st.expander("Year view"):
            status_key = f"habits.status.{habit['id']}"
            options = HABIT_STATUSES if status in HABIT_STATUSES else [status, *HABIT_STATUSES]
            st.selectbox(
                "Status",
                options,
                index=options.index(status),
                key=status_key,
                on_change=_change_status,
                args=(habit["id"], status_key),
            )
            color_key = f"habits.color.{habit['id']}"
            st.color_picker(
                "Color", color, key=color_key, on_change=_change_color, args=(habit["id"], color_key)
            )
            try:
                detail = repositories.get_habit_heatmap(habit["id"], ctx.today.year)
            except api_client.ApiError as exc:
                st.caption(f"Heatmap unavailable: {exc.message}")
                continue
            st.caption(f"Streak: {detail['streak']} days · {detail['completion_rate']}% this year")
            st.plotly_chart(
                habit_heatmap(detail["heatmap"], color),
                use_container_width=True,
                key=f"habits.heatmap.{habit['id']}",
            )

    with st.expander("New habit"):
        st.text_input("Name", key="habits.new_name")
        st.selectbox("Status", HABIT_STATUSES, key="habits.new_status")
        st.color_picker("Color", DEFAULT_HABIT_COLOR, key="habits.new_color")
        st.button("Create", key="habits.create", on_click=_create_habit)
