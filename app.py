import time

import streamlit as st

from infrastructure.observability import bind_user_context, setup_observability
setup_observability()

import ui
from use_cases import auth_flow, bootstrap
from utils import session_manager
from views import (
    doubt_view, homework_view, login_view, profile_setup_view, sidebar_view,
    student_dashboard_view, teacher_dashboard_view,
)

# --- PAGE SETTINGS ---
st.set_page_config(page_title="SchoolHub", page_icon="🎓", layout="wide", initial_sidebar_state="expanded")

PENDING_POLL_SECONDS = 0.3

PAGES = {
    "/login": login_view.render_login,
    "/signup": login_view.render_signup,
    "/student/dashboard": student_dashboard_view.render_student_dashboard,
    "/student/homework": homework_view.render_homework,
    "/student/doubt": doubt_view.render_doubt,
    "/teacher/dashboard": teacher_dashboard_view.render_teacher_dashboard,
}
PUBLIC_PAGES = {"/login", "/signup"}

ui.setup_style()

# --- STARTUP ORCHESTRATION ---
startup_result = bootstrap.run_startup()
if startup_result.status == "STOP":
    st.stop()

# --- ROUTE GUARD ---
route_result = auth_flow.ensure_route()
if route_result.status == "STOP":
    if route_result.redirect_to:
        session_manager.redirect(route_result.redirect_to)
    if route_result.reason == "profile_unresolved":
        runtime = session_manager.get_runtime()
        if runtime.settle().profile is None:
            # Signed in, but no profile row exists for this account.
            profile_setup_view.render_profile_setup()
            st.stop()
    # Identity still settling: neutral screen, then poll again.
    ui.render_waiting_screen()
    time.sleep(PENDING_POLL_SECONDS)
    st.rerun()

bind_user_context(session_manager.current_snapshot())

if route_result.path not in PUBLIC_PAGES:
    sidebar_view.render_sidebar(route_result.path)

PAGES[route_result.path]()
