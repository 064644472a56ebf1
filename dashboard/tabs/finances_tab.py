import pandas as pd
import streamlit as st

from dashboard.constants import ALLOCATION_GROUPINGS, CURRENCIES
from dashboard.data import api_client, repositories
from dashboard.visualizations import allocation_donut


def render_finances_tab(ctx):
    st.markdown("<div class='section-title'>Finances</div>", unsafe_allow_html=True)
    cols = st.columns([1, 1, 1])
    with cols[0]:
        currency = st.selectbox("Currency", CURRENCIES, key="finances.currency")
    with cols[1]:
        grouping = st.segmented_control(
            "Group", list(ALLOCATION_GROUPINGS), key="finances.group", default=list(ALLOCATION_GROUPINGS)[0]
        )
    with cols[2]:
        if st.button("Sync from Notion", key="finances.sync"):
            try:
                result = repositories.sync_finances()
            except api_client.ApiError as exc:
                st.error(f"Sync failed: {exc.message}")
            else:
                synced = result.get("synced") or {}
                st.toast(" · ".join(f"{count} {kind}" for kind, count in synced.items()) or "Nothing to sync")

    try:
        allocation = repositories.get_allocation(currency, ALLOCATION_GROUPINGS[grouping or list(ALLOCATION_GROUPINGS)[0]])
    except api_client.ApiError as exc:
        st.error(f"Could not load allocation: {exc.message}")
        st.button("Retry", key="finances.retry")
        return

    slices = allocation["slices"]
    if not slices:
        st.info("No positive holdings to chart. Sync from Notion to load assets.")
        return
    st.metric("Total", f"{allocation['total']:,.2f} {allocation['currency']}")
    st.plotly_chart(allocation_donut(slices, allocation["currency"]), use_container_width=True, key="finances.donut")
    table = pd.DataFrame(slices).rename(columns={"category": "Holding", "worth": "Worth", "percentage": "%"})
    st.dataframe(table, hide_index=True, use_container_width=True)
