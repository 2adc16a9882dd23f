"""Authentication/navigation flow orchestration (application layer)."""

from dataclasses import dataclass
from typing import Literal, Optional

from utils import session_manager

AuthFlowStatus = Literal["CONTINUE", "STOP"]


@dataclass(frozen=True)
class AuthFlowResult:
    """Result contract for auth flow orchestration."""

    status: AuthFlowStatus
    reason: str
    path: str
    redirect_to: Optional[str] = None
    user_id: Optional[str] = None


def ensure_route(path: Optional[str] = None) -> AuthFlowResult:
    """Gate the requested page on the current session and return a control-flow status.

    CONTINUE means the page may render. STOP carries either a redirect target or,
    with ``redirect_to`` unset, a reason to show the waiting screen.
    """
    runtime = session_manager.get_runtime()
    requested = path if path is not None else session_manager.requested_path()
    result = runtime.navigation.goto(requested)
    snapshot = runtime.snapshot
    user_id = snapshot.user.id if snapshot.user is not None else None

    if result.status == "RENDER":
        return AuthFlowResult(status="CONTINUE", reason=result.reason, path=result.path, user_id=user_id)
    return AuthFlowResult(
        status="STOP",
        reason=result.reason,
        path=result.path,
        redirect_to=result.target,
        user_id=user_id,
    )
