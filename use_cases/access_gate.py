"""Centralized role-gated access decision."""

from dataclasses import dataclass
from typing import Literal, Optional, Union

from use_cases.session_models import Role, Snapshot

GateStatus = Literal["RENDER", "REDIRECT", "PENDING"]

LOGIN_PATH = "/login"
DASHBOARD_PATH = "/dashboard"


@dataclass(frozen=True)
class GateDecision:
    status: GateStatus
    target: Optional[str] = None


RENDER = GateDecision(status="RENDER")
PENDING = GateDecision(status="PENDING")


def redirect(target: str) -> GateDecision:
    return GateDecision(status="REDIRECT", target=target)


def decide(snapshot: Snapshot, required_role: Optional[Union[Role, str]] = None) -> GateDecision:
    """
    Evaluates whether a protected screen may render for this snapshot.
    Pure: no logging, no I/O; the same snapshot and role always give the same answer.
    """
    if snapshot.loading:
        return PENDING
    if snapshot.user is None:
        return redirect(LOGIN_PATH)
    if required_role is not None:
        # Absent profile means the role is unknown: deny role-specific access.
        if snapshot.profile is None or snapshot.profile.role.value != Role.parse(required_role).value:
            return redirect(DASHBOARD_PATH)
    return RENDER
