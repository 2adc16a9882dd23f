import logging

import streamlit as st

import auth
import ui
from utils import session_manager
from views.login_view import CLASS_OPTIONS

log = logging.getLogger(__name__)


def validate_profile_setup(name, role, detail):
    if not (name or "").strip():
        return "Please enter your full name."
    if role == "teacher" and not (detail or "").strip():
        return "Please enter the subject you teach."
    return None


def profile_fields(name, role, detail):
    fields = {"name": name.strip(), "role": role}
    fields["class" if role == "student" else "subject"] = (detail or "").strip()
    return fields


def render_profile_setup():
    """Shown to a signed-in user whose account has no profile row yet."""
    ui.render_brand()
    st.title("Finish setting up your account")
    runtime = session_manager.get_runtime()
    user = runtime.snapshot.user

    notice = st.session_state.get("profile_notice")
    if notice:
        st.warning(notice)
    else:
        st.info("Your account has no profile yet. Tell us who you are to continue.")
    if user is not None and user.email:
        st.caption(f"Signed in as {user.email}")

    role = st.radio("I am a", ["student", "teacher"], horizontal=True, format_func=str.title,
                    key="profile_setup_role")
    with st.form("profile_setup_form", clear_on_submit=False):
        name = st.text_input("Full name *")
        if role == "student":
            detail = st.selectbox("Class *", CLASS_OPTIONS)
        else:
            detail = st.text_input("Subject *")
        submitted = st.form_submit_button("Save profile", type="primary", use_container_width=True)

    if submitted:
        error = validate_profile_setup(name, role, detail)
        if error:
            st.error(error)
            return
        try:
            with st.spinner("Saving your profile..."):
                runtime.create_profile(profile_fields(name, role, detail))
        except auth.SessionError as e:
            log.warning("Profile setup failed: %s", e)
            st.error(str(e))
            return
        st.session_state.profile_notice = None
        session_manager.redirect("/dashboard")

    if st.button("Log out", type="tertiary"):
        session_manager.logout()
