import streamlit as st

from dashboard.state.optimistic import OptimisticStore
from dashboard.state.preferences import PreferenceStore

PREFIX = "slice"


def optimistic_store(name):
    key = f"{PREFIX}.optimistic.{name}"
    if key not in st.session_state:
        st.session_state[key] = OptimisticStore()
    return st.session_state[key]


def preference_store(loader, saver):
    key = f"{PREFIX}.preferences"
    if key not in st.session_state:
        store = PreferenceStore(loader, saver)
        store.load()
        st.session_state[key] = store
    return st.session_state[key]
