"""Application layer contracts for orchestrating high-level flows.

Only the pure contracts are re-exported here. The identity adapters import
``use_cases.session_models``, so modules that reach ``auth`` or Streamlit
(``auth_flow``, ``bootstrap``, ``session_machine``) are imported by path.
"""

from .access_gate import GateDecision, GateStatus, decide
from .navigation import ROUTES, NavigationController, NavigationResult, Route, menu_for
from .session_models import AuthSession, AuthUser, Profile, Role, Snapshot, is_student, is_teacher

__all__ = [
    "AuthSession",
    "AuthUser",
    "GateDecision",
    "GateStatus",
    "NavigationController",
    "NavigationResult",
    "Profile",
    "ROUTES",
    "Role",
    "Route",
    "Snapshot",
    "decide",
    "is_student",
    "is_teacher",
    "menu_for",
]
