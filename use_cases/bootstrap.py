"""Startup orchestration for the per-session identity runtime."""

from dataclasses import dataclass
from typing import Literal, Tuple

from utils import session_manager

StartupStatus = Literal["CONTINUE", "STOP"]


@dataclass(frozen=True)
class StartupResult:
    """Result contract for startup/bootstrap orchestration."""

    status: StartupStatus
    planned_steps: Tuple[str, ...]


def run_startup() -> StartupResult:
    """Prepare session state and make sure the identity runtime is running."""
    executed_steps = []

    # Session state keys must exist before anything reads them.
    session_manager.init_session_state()
    executed_steps.append("init_session_state")

    existing = session_manager.st.session_state.get("session_runtime")
    if existing is None or not existing.alive:
        session_manager.get_runtime()
        executed_steps.append("start_session_runtime")

    return StartupResult(status="CONTINUE", planned_steps=tuple(executed_steps))
