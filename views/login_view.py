import logging

import streamlit as st

import auth
import ui
from utils import session_manager

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
CLASS_OPTIONS = ["6", "7", "8", "9", "10", "11", "12"]


def _show_error():
    if st.session_state.get("auth_error"):
        st.error(st.session_state.auth_error)


def validate_signup(name, email, password, password_confirm, role, detail):
    """Return an error message for the sign-up form, or None when it can be submitted."""
    if not all([name.strip(), email.strip(), password, password_confirm]):
        return "Please fill in all required fields."
    if password != password_confirm:
        return "Passwords do not match."
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    if role == "teacher" and not (detail or "").strip():
        return "Please enter the subject you teach."
    return None


def render_login():
    ui.render_brand()
    st.title("Welcome back")
    st.caption("Sign in to continue to SchoolHub")
    _show_error()

    with st.form("login_form", clear_on_submit=False):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary", use_container_width=True)
    if submitted:
        if not email.strip() or not password:
            st.session_state.auth_error = "Enter your email and password."
            st.rerun()
        runtime = session_manager.get_runtime()
        try:
            with st.spinner("Signing in..."):
                runtime.sign_in(email.strip(), password)
        except auth.SessionError as e:
            log.info("Sign-in rejected for %s: %s", email.strip(), e)
            st.session_state.auth_error = str(e)
            st.rerun()
        st.session_state.auth_error = None
        session_manager.redirect("/dashboard")

    if st.button("Don't have an account? Sign up", type="tertiary"):
        st.session_state.auth_error = None
        session_manager.redirect("/signup")


def render_signup():
    ui.render_brand()
    st.title("Create your account")
    _show_error()

    role = st.radio("I am a", ["student", "teacher"], horizontal=True, format_func=str.title)
    with st.form("signup_form", clear_on_submit=False):
        name = st.text_input("Full name *")
        email = st.text_input("Email *")
        if role == "student":
            detail = st.selectbox("Class *", CLASS_OPTIONS)
        else:
            detail = st.text_input("Subject *")
        password = st.text_input("Password *", type="password")
        password_confirm = st.text_input("Confirm password *", type="password")
        submitted = st.form_submit_button("Create account", type="primary", use_container_width=True)

    if submitted:
        error = validate_signup(name, email, password, password_confirm, role, detail)
        if error:
            st.session_state.auth_error = error
            st.rerun()
        fields = {"name": name.strip(), "role": role}
        fields["class" if role == "student" else "subject"] = detail.strip()
        runtime = session_manager.get_runtime()
        try:
            with st.spinner("Creating your account..."):
                runtime.sign_up(email.strip(), password, fields)
        except auth.ProfileWriteError as e:
            # The credential exists; the profile setup screen on /dashboard finishes the account.
            log.warning("Sign-up left %s without a profile: %s", email.strip(), e)
            st.session_state.auth_error = None
            st.session_state.profile_notice = f"{e} Please complete your profile below."
            session_manager.redirect("/dashboard")
        except auth.SessionError as e:
            log.info("Sign-up rejected for %s: %s", email.strip(), e)
            st.session_state.auth_error = str(e)
            st.rerun()
        st.session_state.auth_error = None
        session_manager.redirect("/dashboard")

    if st.button("Already have an account? Sign in", type="tertiary"):
        st.session_state.auth_error = None
        session_manager.redirect("/login")
