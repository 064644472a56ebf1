import streamlit as st

THEME_PRESETS = {
    "dark": {
        "bg_main": "#121017",
        "bg_card": "#1e1a27",
        "bg_panel": "#2a2335",
        "border": "#5b4f70",
        "text_main": "#f3edf9",
        "text_soft": "#c8bbd8",
        "button": "#5f4f79",
        "button_hover": "#725f90",
        "accent": "#8e79af",
        "plot_grid": "#3d3550",
        "heat_empty": "#2a2335",
        "heat_open": "#3a3148",
    },
    "light": {
        "bg_main": "#f7f3ed",
        "bg_card": "#fff9f1",
        "bg_panel": "#f6efe3",
        "border": "#c4b59f",
        "text_main": "#1b1b1b",
        "text_soft": "#5d5d5d",
        "button": "#b29a7d",
        "button_hover": "#9f876b",
        "accent": "#8f7aa9",
        "plot_grid": "#d9ccbb",
        "heat_empty": "#f6efe3",
        "heat_open": "#e6dccd",
    },
}


def ensure_theme_state():
    if st.session_state.get("ui_theme") not in THEME_PRESETS:
        st.session_state["ui_theme"] = "dark"
    return st.session_state["ui_theme"]


def get_active_theme():
    name = ensure_theme_state()
    return name, THEME_PRESETS[name]


def toggle_theme():
    current = ensure_theme_state()
    st.session_state["ui_theme"] = "light" if current == "dark" else "dark"


def inject_theme_css() -> dict:
    _, theme = get_active_theme()
    variables = "\n".join(f"    --{name.replace('_', '-')}: {value};" for name, value in theme.items())
    st.markdown(
        f"""
<style>
@import url('https://fonts.googleapis.com/css2?family=Crimson+Text:wght@400;600&family=IBM+Plex+Sans:wght@300;400;500&display=swap');
:root {{
{variables}
}}
.stApp {{
    background: var(--bg-main);
    color: var(--text-main);
    font-family: 'IBM Plex Sans', sans-serif;
}}
.section-title {{
    font-family: 'Crimson Text', serif;
    font-size: 1.6rem;
    font-weight: 600;
    margin: 0.4rem 0 0.6rem;
}}
.small-label {{
    color: var(--text-soft);
    font-size: 0.78rem;
    letter-spacing: 0.04em;
    text-transform: uppercase;
}}
.panel {{
    background: var(--bg-card);
    border: 1px solid var(--border);
    border-radius: 12px;
    padding: 10px 14px;
    margin-bottom: 10px;
}}
.media-card img {{
    border-radius: 8px;
    width: 100%;
    aspect-ratio: 2 / 3;
    object-fit: cover;
    background: linear-gradient(135deg, var(--bg-panel), var(--accent));
}}
.media-title {{
    font-size: 0.88rem;
    font-weight: 500;
    margin-top: 4px;
}}
.status-pill {{
    display: inline-block;
    border-radius: 999px;
    padding: 1px 8px;
    font-size: 0.72rem;
    color: #fff;
}}
.cluster-badge {{
    color: var(--text-soft);
    font-size: 0.72rem;
}}
div.stButton > button {{
    background: var(--button);
    color: #f6f0ff;
    border: 1px solid var(--border);
    border-radius: 10px;
}}
div.stButton > button:hover {{
    background: var(--button-hover);
}}
</style>
""",
        unsafe_allow_html=True,
    )
    return theme
