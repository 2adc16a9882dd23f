import logging

import streamlit as st

import auth
import ui
from use_cases.navigation import menu_for
from utils import session_manager

log = logging.getLogger(__name__)


def _render_profile_editor(runtime, profile):
    with st.expander("Edit profile", expanded=False):
        with st.form("profile_form"):
            name = st.text_input("Name", value=profile.name)
            if profile.role.value == "student":
                detail_key, detail = "class", st.text_input("Class", value=profile.school_class or "")
            else:
                detail_key, detail = "subject", st.text_input("Subject", value=profile.subject or "")
            saved = st.form_submit_button("Save")
        if saved:
            if not name.strip():
                st.error("Name cannot be empty.")
                return
            try:
                runtime.update_profile({"name": name.strip(), detail_key: detail.strip() or None})
            except auth.SessionError as e:
                log.warning("Profile update failed: %s", e)
                st.error(str(e))
                return
            st.rerun()


def render_sidebar(current_path):
    runtime = session_manager.get_runtime()
    snapshot = runtime.snapshot
    profile = snapshot.profile

    with st.sidebar:
        ui.render_brand()
        st.divider()

        if profile is not None:
            st.markdown(f"**{profile.name}**")
            detail = profile.school_class if profile.role.value == "student" else profile.subject
            st.caption(f"{profile.role.value.title()}" + (f" · {detail}" if detail else ""))
        elif snapshot.user is not None:
            st.caption(snapshot.user.email or snapshot.user.id)

        for route in menu_for(profile):
            active = route.path == current_path
            if st.button(route.title, key=f"nav_{route.path}", use_container_width=True,
                         type="primary" if active else "secondary"):
                session_manager.redirect(route.path)

        st.divider()
        if profile is not None:
            _render_profile_editor(runtime, profile)

        if st.button("Log out", key="logout_btn", type="secondary", use_container_width=True):
            session_manager.logout()
