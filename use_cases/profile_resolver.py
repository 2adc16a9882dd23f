"""Profile lookup over the provider's record store."""

from typing import Any, Mapping, Optional

import auth
from use_cases.session_models import PROFILE_CORE_FIELDS, Profile, Role


def profile_from_row(row: Mapping[str, Any]) -> Profile:
    """Build a Profile from a raw row. Unknown roles are rejected here, not downstream."""
    try:
        role = Role.parse(row.get("role"))
    except ValueError as exc:
        raise auth.ProfileReadError(f"Profile {row.get('id')} has invalid role: {exc}") from exc
    if not row.get("id"):
        raise auth.ProfileReadError("Profile row without id")
    return Profile(
        id=str(row["id"]),
        name=row.get("name") or "",
        role=role,
        email=row.get("email"),
        attributes={k: v for k, v in row.items() if k not in PROFILE_CORE_FIELDS},
    )


async def resolve_profile(provider, user_id: str, table: Optional[str] = None) -> Optional[Profile]:
    """Return the user's profile, None when not provisioned yet.

    Raises ProfileReadError when the store fails or the row is malformed.
    """
    try:
        rows = await provider.select(table or auth.profile_table(), {"id": user_id}, limit=1)
    except Exception as exc:
        raise auth.ProfileReadError(f"Profile lookup for {user_id} failed: {exc}") from exc
    if not rows:
        return None
    return profile_from_row(rows[0])
