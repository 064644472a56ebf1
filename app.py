import json
from datetime import date

import streamlit as st

from dashboard.auth import enforce_backend_configured, get_current_user_id, get_secret, load_local_env
from dashboard.context import DashboardContext
from dashboard.data import api_client, repositories
from dashboard.header import render_global_header
from dashboard.logging_config import configure_logging
from dashboard.router import render_router
from dashboard.state.session_slices import preference_store
from dashboard.theme import inject_theme_css, toggle_theme


st.set_page_config(page_title="Life HQ", layout="wide")
configure_logging()
load_local_env()
api_client.configure(get_secret, get_current_user_id)
theme = inject_theme_css()
enforce_backend_configured(repositories.api_enabled())

with st.sidebar:
    st.button("Toggle theme", on_click=toggle_theme)
    try:
        status = repositories.get_sync_status()
    except api_client.ApiError as exc:
        st.caption(f"Sync status unavailable: {exc.message}")
    else:
        if status.get("connected"):
            st.caption(f"Notion sync · {status.get('pending_outbox', 0)} pending")
            if status.get("last_error"):
                st.caption(f"Last error: {status['last_error']}")
        else:
            st.caption("Notion not connected.")
    with st.expander("Watch history"):
        upload = st.file_uploader("Takeout watch-history.json", type="json", key="youtube.history")
        if upload is not None and st.button("Import", key="youtube.import"):
            try:
                items = json.loads(upload.getvalue().decode("utf-8"))
            except ValueError:
                st.error("That file is not valid JSON.")
            else:
                try:
                    result = repositories.import_watch_history(items if isinstance(items, list) else [])
                except api_client.ApiError as exc:
                    st.error(f"Import failed: {exc.message}")
                else:
                    st.toast(result.get("message") or "Imported")

prefs = preference_store(repositories.get_preferences, repositories.save_preferences)
context = DashboardContext(
    user_id=get_current_user_id(),
    today=date.today(),
    preferences=prefs,
    extras={"theme": theme},
)

render_global_header(context)
render_router(context)

if not prefs.save():
    st.toast("Could not save preferences.")
