import asyncio
import concurrent.futures
import logging

import streamlit as st
from streamlit import runtime as st_runtime
from streamlit.runtime.scriptrunner import get_script_run_ctx

import auth
from use_cases.navigation import NavigationController
from use_cases.session_machine import SessionStateMachine
from utils.loop_runner import LoopRunner

"""
SESSION STATE CONTRACT

This module owns the Streamlit side of the identity session.

st.session_state keys:

session_runtime: SessionRuntime | None
    per-browser-session loop thread + provider + state machine + navigation
    default: None
    owner: session_manager

auth_error: str | None
    last inline message for the login/sign-up forms
    default: None
    owner: views.login_view

profile_notice: str | None
    why the profile setup form is shown (e.g. the sign-up profile insert failed)
    default: None
    owner: views.login_view / views.profile_setup_view

doubt_messages: list
    chat transcript of the doubt composer
    default: []
    owner: views.doubt_view

homework_filter: str
    selected homework filter ("all" | "pending" | "overdue")
    default: "all"
    owner: views.homework_view

The requested page lives in st.query_params["page"] so a browser refresh keeps it.
"""

log = logging.getLogger(__name__)

PAGE_PARAM = "page"
DEFAULT_PAGE = "/dashboard"
SETTLE_TIMEOUT = 10.0
SESSION_CHECK_INTERVAL = 30.0
TIMEOUT_MESSAGE = "The sign-in service did not respond in time. Please try again."


def current_session_id():
    ctx = get_script_run_ctx()
    return ctx.session_id if ctx is not None else None


def session_is_active(session_id) -> bool:
    """False once Streamlit has dropped the browser session. Unknown sessions count as active."""
    if session_id is None or not st_runtime.exists():
        return True
    return st_runtime.get_instance().is_active_session(session_id)


class SessionRuntime:
    """Everything one browser session needs to talk to the identity provider.

    When ``session_id`` is known, a watcher on the loop tears the runtime down
    once Streamlit no longer lists that session as active.
    """

    def __init__(self, provider=None, session_id=None, check_interval=SESSION_CHECK_INTERVAL) -> None:
        self.runner = LoopRunner()
        self.provider = provider if provider is not None else auth.create_identity_provider()
        self.machine = SessionStateMachine(self.provider)
        self.navigation = NavigationController(lambda: self.machine.snapshot)
        self.session_id = session_id
        self.check_interval = check_interval
        self._init_future = None
        self._watch_future = None

    def start(self):
        if self._init_future is None:
            self._init_future = self.runner.submit(self.machine.initialize())
            if self.session_id is not None:
                self._watch_future = self.runner.submit(self._watch_session())
        return self._init_future

    async def _watch_session(self) -> None:
        while not self.machine.disposed:
            await asyncio.sleep(self.check_interval)
            if not session_is_active(self.session_id):
                log.info("Browser session %s ended; disposing session runtime", self.session_id)
                self.machine.teardown()
                self.runner.stop()
                return

    @property
    def snapshot(self):
        return self.machine.snapshot

    @property
    def alive(self) -> bool:
        return self.runner.running and not self.machine.disposed

    def run(self, coro, timeout=SETTLE_TIMEOUT):
        future = self.runner.submit(coro)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError as exc:
            future.cancel()
            log.warning("Session runtime call timed out after %ss", timeout)
            raise auth.AuthError(TIMEOUT_MESSAGE) from exc

    def settle(self):
        return self.run(self.machine.wait_idle())

    def sign_in(self, email, password):
        self.run(self.machine.sign_in(email, password))
        return self.settle()

    def sign_up(self, email, password, profile_fields):
        profile = self.run(self.machine.sign_up(email, password, profile_fields))
        self.settle()
        return profile

    def create_profile(self, profile_fields):
        profile = self.run(self.machine.create_profile(profile_fields))
        self.settle()
        return profile

    def sign_out(self):
        self.run(self.machine.sign_out())
        return self.settle()

    def update_profile(self, updates):
        return self.run(self.machine.update_profile(updates))

    def dispose(self) -> None:
        if self.runner.running and not self.machine.disposed:
            self.runner.call(self.machine.teardown)
        self.runner.stop()


def init_session_state():
    if "session_runtime" not in st.session_state:
        st.session_state.session_runtime = None
    if "auth_error" not in st.session_state:
        st.session_state.auth_error = None
    if "profile_notice" not in st.session_state:
        st.session_state.profile_notice = None
    if "doubt_messages" not in st.session_state:
        st.session_state.doubt_messages = []
    if "homework_filter" not in st.session_state:
        st.session_state.homework_filter = "all"


def get_runtime() -> SessionRuntime:
    runtime = st.session_state.get("session_runtime")
    if runtime is None or not runtime.alive:
        runtime = SessionRuntime(session_id=current_session_id())
        runtime.start()
        st.session_state.session_runtime = runtime
        log.info("Started session runtime")
    return runtime


def current_snapshot():
    return get_runtime().snapshot


def requested_path() -> str:
    return st.query_params.get(PAGE_PARAM, DEFAULT_PAGE)


def redirect(target: str):
    st.query_params[PAGE_PARAM] = target
    st.rerun()


def logout():
    runtime = get_runtime()
    try:
        runtime.sign_out()
    except auth.AuthError as e:
        log.warning("Sign-out failed: %s", e)
        st.error(f"Sign-out failed: {e}")
        return
    st.session_state.doubt_messages = []
    st.session_state.profile_notice = None
    redirect("/login")


def dispose_runtime():
    runtime = st.session_state.get("session_runtime")
    if runtime is not None:
        runtime.dispose()
    st.session_state.session_runtime = None
