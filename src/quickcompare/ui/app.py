"""
Streamlit UI for QuickCompare.
- Grocery list editing
- Pincode + platform selection (max 4)
- Comparison run with per-platform report
- Ranked results per item
"""

import uuid

import streamlit as st

from quickcompare.core.db import ComparisonStore, init_database
from quickcompare.extraction.adapter import ExtractionAdapter
from quickcompare.extraction.backends import get_extraction_backend
from quickcompare.models.api import ErrorKind, RunSummary
from quickcompare.pipeline.orchestrator import ComparisonOrchestrator
from quickcompare.pipeline.ranker import rank
from quickcompare.pipeline.validator import MESSAGES, PlatformSelection, SelectionError, build_selection_request


def summary_messages(summary: RunSummary):
    """Translate a RunSummary into (level, text) pairs for display."""
    if not summary.started:
        if summary.error == ErrorKind.NO_ITEMS:
            return [("error", "No grocery items found. Please add items to your list first.")]
        return [("error", f"Comparison could not start: {summary.cause}")]

    messages = []
    for outcome in summary.per_platform.values():
        if outcome.ok:
            messages.append(("success", f"Scraped {outcome.records_saved} prices from {outcome.platform_name}"))
        elif outcome.error == ErrorKind.UNSUPPORTED_PLATFORM:
            messages.append(("warning", f"{outcome.platform_name} is not supported yet, skipped"))
        else:
            failed = sum(1 for a in outcome.attempts if not a.ok)
            messages.append((
                "warning",
                f"{outcome.platform_name}: {failed}/{len(outcome.attempts)} items failed "
                f"({outcome.error.value}: {outcome.cause})"
            ))
    return messages


@st.cache_resource
def get_store() -> ComparisonStore:
    init_database()
    return ComparisonStore()


@st.cache_resource
def get_adapter() -> ExtractionAdapter:
    return ExtractionAdapter(get_extraction_backend())


# -------------------------------------------------
# Page config
# -------------------------------------------------
st.set_page_config(
    page_title="QuickCompare",
    page_icon="🛒",
    layout="wide",
)

store = get_store()
platforms = store.list_platforms()
platform_names = {p.id: p.name for p in platforms}

# -------------------------------------------------
# Session state
# -------------------------------------------------
if "owner" not in st.session_state:
    st.session_state.owner = str(uuid.uuid4())

if "selection" not in st.session_state:
    st.session_state.selection = PlatformSelection([p.id for p in platforms])

if "last_summary" not in st.session_state:
    st.session_state.last_summary = None

# -------------------------------------------------
# Header
# -------------------------------------------------
st.markdown(
    "<h1 style='color:#1f77b4'>🛒 QuickCompare - Grocery Price Comparison</h1>",
    unsafe_allow_html=True
)
owner = st.text_input("User ID", value=st.session_state.owner).strip() or st.session_state.owner
st.caption(f"Comparing as `{owner}`")

tab_list, tab_platforms, tab_results = st.tabs(
    ["📝 Grocery List", "🏪 Platforms", "📊 Results"]
)

# =================================================
# GROCERY LIST TAB
# =================================================
with tab_list:
    st.subheader("Your grocery list")

    with st.form("add_item", clear_on_submit=True):
        new_item = st.text_input("Add an item", placeholder="e.g. amul butter 500g")
        if st.form_submit_button("➕ Add"):
            if not new_item.strip():
                st.warning("Please enter an item name.")
            else:
                store.add_item(owner, new_item)
                st.success("Item added to list")

    items = store.list_items(owner)
    if not items:
        st.info("Your list is empty.")

    for item in items:
        col_name, col_save, col_delete = st.columns([6, 1, 1])
        edited = col_name.text_input("Item", value=item.name, key=f"item_{item.id}", label_visibility="collapsed")
        if col_save.button("💾", key=f"save_{item.id}") and edited.strip() and edited.strip() != item.name:
            store.update_item(owner, item.id, edited)
            st.rerun()
        if col_delete.button("🗑️", key=f"delete_{item.id}"):
            store.delete_item(owner, item.id)
            st.rerun()

# =================================================
# PLATFORM SELECTION TAB
# =================================================
with tab_platforms:
    st.subheader("Quick Commerce Platform Selection")
    st.caption("Choose platforms to compare prices and enter your location")

    pincode = st.text_input("Enter Pincode", max_chars=6, placeholder="400001")

    selection: PlatformSelection = st.session_state.selection
    st.markdown("**Select Platforms (Max 4)**")
    columns = st.columns(len(platforms) or 1)
    for column, platform in zip(columns, platforms):
        label = f"✅ {platform.name}" if selection.is_selected(platform.id) else platform.name
        if column.button(label, key=f"toggle_{platform.id}"):
            result = selection.toggle(platform.id)
            if result.reason is not None:
                st.error(MESSAGES[result.reason])
            else:
                st.rerun()

    if st.button("🚀 Compare Prices", type="primary"):
        try:
            request = build_selection_request(owner, pincode.strip(), selection.selected, platform_names.keys())
        except SelectionError as e:
            st.error(e.message)
            st.stop()

        orchestrator = ComparisonOrchestrator(store, get_adapter(), platforms)
        with st.spinner("🤖 Scraping prices..."):
            summary = orchestrator.run(request, [i.name for i in store.list_items(owner)])
        st.session_state.last_summary = summary

    summary = st.session_state.last_summary
    if summary is not None:
        st.markdown("---")
        st.subheader("Run report")
        for level, text in summary_messages(summary):
            getattr(st, level)(text)

# =================================================
# RESULTS TAB
# =================================================
with tab_results:
    st.subheader("Price Comparison")

    groups = rank(store, owner, [i.name for i in store.list_items(owner)])
    if all(group.is_empty for group in groups):
        st.info("No results found. Try searching for different items.")

    for group in groups:
        st.markdown(f"### {group.grocery_item.title()}")
        if group.is_empty:
            st.caption("No results")
            continue

        for ranked in group.ranked:
            record = ranked.record
            col_info, col_price = st.columns([4, 1])
            badges = []
            if ranked.is_best_price:
                badges.append("🟢 **Best Price**")
            if ranked.is_out_of_stock:
                badges.append("🔴 Out of stock")
            col_info.markdown(" ".join(badges + [f"**{record.product_name}**"]))
            details = [platform_names.get(record.platform_id, record.platform_id)]
            if record.unit_size:
                details.append(f"Size: {record.unit_size}")
            if record.special_offer:
                details.append(record.special_offer)
            col_info.caption(" · ".join(details))
            col_price.markdown(f"### ₹{record.price:.2f}")
