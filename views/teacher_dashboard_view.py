import datetime as dt
import logging

import streamlit as st

import auth
import ui
from infrastructure.identity.base import IdentityProviderError
from services import dashboard_service, homework_service
from utils import session_manager

log = logging.getLogger(__name__)


def _render_create_form(runtime, profile):
    with st.expander("Create homework", expanded=False):
        with st.form("create_homework_form", clear_on_submit=True):
            title = st.text_input("Title *")
            description = st.text_area("Description")
            subject = st.text_input("Subject", value=profile.subject or "")
            c1, c2 = st.columns(2)
            due_date = c1.date_input("Due date", value=dt.date.today() + dt.timedelta(days=7))
            due_time = c2.time_input("Due time", value=dt.time(23, 59))
            submitted = st.form_submit_button("Publish", type="primary")
        if submitted:
            deadline = dt.datetime.combine(due_date, due_time)
            try:
                runtime.run(homework_service.create_homework(
                    runtime.provider, profile, title, deadline, description=description, subject=subject,
                ))
            except (ValueError, PermissionError) as e:
                st.error(str(e))
                return
            except (IdentityProviderError, auth.SessionError):
                log.exception("Failed to create homework for %s", profile.id)
                st.error("Could not publish homework. Please try again.")
                return
            st.success("Homework published.")


def render_teacher_dashboard():
    runtime = session_manager.get_runtime()
    profile = runtime.snapshot.profile
    st.title(f"Welcome, {profile.name}")
    if profile.subject:
        st.caption(f"Teaching {profile.subject}")

    _render_create_form(runtime, profile)

    placeholder = st.empty()
    with placeholder.container():
        ui.render_skeleton_kpis(num_cols=4)
    try:
        stats = runtime.run(dashboard_service.fetch_teacher_stats(runtime.provider, profile))
    except (IdentityProviderError, auth.SessionError):
        log.exception("Failed to load teacher stats for %s", profile.id)
        placeholder.empty()
        st.error("Could not load your dashboard. Please try again later.")
        return
    placeholder.empty()

    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Homework", stats.homework)
    c2.metric("Students", stats.students)
    c3.metric("Doubts", stats.doubts)
    c4.metric("Notes", stats.notes)

    st.subheader("Recent homework")
    df = homework_service.homework_frame(stats.recent_homework)
    if df.empty:
        st.info("You haven't assigned any homework yet.")
        return
    for _, row in df.iterrows():
        badge = homework_service.urgency_badge(row["deadline"])
        ui.render_card(row["title"], meta=f"Due {row['deadline']:%d %b %Y} · {badge.text}", level=badge.level)
