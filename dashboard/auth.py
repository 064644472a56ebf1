from __future__ import annotations

import os

import streamlit as st

ENV_PATH = os.path.join(os.path.dirname(__file__), "..", ".env")

ENV_FALLBACK_KEYS = {
    ("app", "API_BASE_URL"): "API_BASE_URL",
    ("app", "BACKEND_SESSION_SECRET"): "BACKEND_SESSION_SECRET",
    ("app", "user_id"): "DASHBOARD_USER_ID",
}


def load_local_env():
    if not os.path.exists(ENV_PATH):
        return
    with open(ENV_PATH, "r", encoding="utf-8") as env_file:
        for raw_line in env_file:
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


def get_secret(path, default=None):
    env_key = ENV_FALLBACK_KEYS.get(tuple(path))
    if env_key:
        env_value = os.getenv(env_key)
        if env_value:
            return env_value
    try:
        current = st.secrets
        for key in path:
            if key not in current:
                return default
            current = current[key]
    except (FileNotFoundError, KeyError, AttributeError):
        # no secrets.toml configured
        return default
    return current


def get_current_user_id():
    user_id = str(get_secret(("app", "user_id")) or "").strip()
    if user_id:
        return user_id
    email = str(getattr(getattr(st, "user", None), "email", "") or "").strip().lower()
    return email or None


def enforce_backend_configured(api_enabled):
    if api_enabled and get_current_user_id():
        return
    st.markdown("<div class='section-title'>Backend Setup Required</div>", unsafe_allow_html=True)
    st.markdown("Point the dashboard at the API before using it.")
    st.code(
        "[app]\n"
        "API_BASE_URL = \"http://localhost:8000\"\n"
        "BACKEND_SESSION_SECRET = \"same value as the backend\"\n"
        "user_id = \"you@example.com\"",
        language="toml",
    )
    st.stop()
