"""Route table and navigation controller composing the access gate with requested pages."""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Literal, Optional, Tuple, Union

from use_cases import access_gate
from use_cases.session_models import Profile, Role, Snapshot

log = logging.getLogger(__name__)

NavigationStatus = Literal["RENDER", "REDIRECT", "PENDING"]

STUDENT_DASHBOARD_PATH = "/student/dashboard"
TEACHER_DASHBOARD_PATH = "/teacher/dashboard"

ROLE_DASHBOARDS = {
    Role.STUDENT: STUDENT_DASHBOARD_PATH,
    Role.TEACHER: TEACHER_DASHBOARD_PATH,
}


@dataclass(frozen=True)
class Route:
    path: str
    title: str
    protected: bool = True
    required_role: Optional[Role] = None


ROUTES: Dict[str, Route] = {
    r.path: r
    for r in (
        Route("/login", "Sign in", protected=False),
        Route("/signup", "Create account", protected=False),
        Route(access_gate.DASHBOARD_PATH, "Dashboard"),
        Route(STUDENT_DASHBOARD_PATH, "Dashboard", required_role=Role.STUDENT),
        Route("/student/homework", "Homework", required_role=Role.STUDENT),
        Route("/student/doubt", "Ask Doubt", required_role=Role.STUDENT),
        Route(TEACHER_DASHBOARD_PATH, "Dashboard", required_role=Role.TEACHER),
    )
}

MENU: Dict[Role, Tuple[str, ...]] = {
    Role.STUDENT: (STUDENT_DASHBOARD_PATH, "/student/homework", "/student/doubt"),
    Role.TEACHER: (TEACHER_DASHBOARD_PATH,),
}


@dataclass(frozen=True)
class NavigationResult:
    status: NavigationStatus
    path: str
    target: Optional[str] = None
    reason: str = ""


def normalize_path(path: Optional[str]) -> str:
    path = (path or "").strip()
    if not path or path == "/":
        return access_gate.DASHBOARD_PATH
    if not path.startswith("/"):
        path = "/" + path
    return path.rstrip("/") or access_gate.DASHBOARD_PATH


def menu_for(profile: Optional[Profile]) -> Tuple[Route, ...]:
    """Sidebar entries for the profile's role; students' menu while the role is unknown."""
    role = profile.role if profile is not None else Role.STUDENT
    return tuple(ROUTES[p] for p in MENU[role])


class NavigationController:
    """Decides, for a requested path, whether to render it, redirect or wait.

    ``snapshot_source`` is any zero-arg callable returning the current Snapshot,
    normally the state machine's ``snapshot`` property getter.
    """

    def __init__(self, snapshot_source: Callable[[], Snapshot]) -> None:
        self._snapshot_source = snapshot_source
        self.current_path: Optional[str] = None

    def resolve(
        self,
        path: Optional[str],
        required_role: Optional[Union[Role, str]] = None,
        snapshot: Optional[Snapshot] = None,
    ) -> NavigationResult:
        path = normalize_path(path)
        snapshot = snapshot if snapshot is not None else self._snapshot_source()
        route = ROUTES.get(path)

        if route is None:
            return NavigationResult("REDIRECT", path, target=access_gate.DASHBOARD_PATH, reason="unknown_route")
        if not route.protected and required_role is None:
            return NavigationResult("RENDER", path, reason="public")

        role = required_role if required_role is not None else route.required_role
        decision = access_gate.decide(snapshot, role)
        if decision.status == "PENDING":
            return NavigationResult("PENDING", path, reason="loading")
        if decision.status == "REDIRECT":
            reason = "auth_required" if decision.target == access_gate.LOGIN_PATH else "role_denied"
            return NavigationResult("REDIRECT", path, target=decision.target, reason=reason)

        if path == access_gate.DASHBOARD_PATH and role is None:
            if snapshot.profile is None:
                # The profile lookup can still be settling after loading flipped false.
                return NavigationResult("PENDING", path, reason="profile_unresolved")
            return NavigationResult(
                "REDIRECT", path, target=ROLE_DASHBOARDS[snapshot.profile.role], reason="role_dashboard"
            )
        return NavigationResult("RENDER", path, reason="authorized")

    def goto(self, path: Optional[str], required_role: Optional[Union[Role, str]] = None) -> NavigationResult:
        result = self.resolve(path, required_role)
        if result.status == "RENDER":
            self.current_path = result.path
        elif result.status == "REDIRECT" and result.reason in ("auth_required", "role_denied"):
            snapshot = self._snapshot_source()
            log.info(
                "Navigation to %s denied (%s), redirecting to %s (user=%s, role=%s)",
                result.path,
                result.reason,
                result.target,
                snapshot.user.id if snapshot.user else None,
                snapshot.role.value if snapshot.role else None,
            )
        return result
