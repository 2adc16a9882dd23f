import logging

import pandas as pd
import streamlit as st

import auth
import ui
from infrastructure.identity.base import IdentityProviderError
from services import dashboard_service
from services.homework_service import urgency_badge
from utils import session_manager

log = logging.getLogger(__name__)


def _text(value):
    return str(value) if pd.notna(value) and value != "" else ""


def render_homework_cards(df, empty_message="No homework here."):
    if df.empty:
        st.info(empty_message)
        return
    for _, row in df.iterrows():
        badge = urgency_badge(row["deadline"])
        meta = " · ".join(
            part for part in (_text(row.get("subject")), f"Due {row['deadline']:%d %b %Y, %H:%M}", badge.text) if part
        )
        ui.render_card(row["title"], meta=meta, body=_text(row.get("description")), level=badge.level)


def render_student_dashboard():
    runtime = session_manager.get_runtime()
    profile = runtime.snapshot.profile
    st.title(f"Hi, {profile.name}")
    if profile.school_class:
        st.caption(f"Class {profile.school_class}")

    placeholder = st.empty()
    with placeholder.container():
        ui.render_skeleton_kpis(num_cols=3)
    try:
        df, stats = runtime.run(dashboard_service.fetch_student_overview(runtime.provider))
    except (IdentityProviderError, auth.SessionError):
        log.exception("Failed to load student overview")
        placeholder.empty()
        st.error("Could not load your homework. Please try again later.")
        return
    placeholder.empty()

    c1, c2, c3 = st.columns(3)
    c1.metric("Pending", stats["pending"])
    c2.metric("Completed", stats["completed"])
    c3.metric("Overdue", stats["overdue"])

    st.subheader("Upcoming homework")
    render_homework_cards(df, "No homework assigned yet.")
    if st.button("View all homework"):
        session_manager.redirect("/student/homework")
