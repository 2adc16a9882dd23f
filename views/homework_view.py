import logging

import streamlit as st

import auth
from infrastructure.identity.base import IdentityProviderError
from services import homework_service
from utils import session_manager
from views.student_dashboard_view import render_homework_cards

log = logging.getLogger(__name__)

FILTER_LABELS = {"all": "All", "pending": "Pending", "overdue": "Overdue"}


def render_homework():
    runtime = session_manager.get_runtime()
    st.title("Homework")

    st.pills(
        "Filter",
        options=list(homework_service.FILTERS),
        format_func=FILTER_LABELS.get,
        selection_mode="single",
        key="homework_filter",
        label_visibility="collapsed",
    )
    # Clicking the active pill deselects it.
    mode = st.session_state.homework_filter or "all"

    try:
        with st.spinner("Loading homework..."):
            df = runtime.run(homework_service.fetch_homework(runtime.provider))
    except (IdentityProviderError, auth.SessionError):
        log.exception("Failed to load homework")
        st.error("Could not load homework. Please try again later.")
        return
    render_homework_cards(homework_service.filter_homework(df, mode), "Nothing matches this filter.")
