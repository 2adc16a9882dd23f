"""Session DTOs shared across application layers."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Literal, Mapping, Optional


class Role(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Strict lookup: anything outside the two known roles raises ValueError."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise ValueError(f"Unknown role: {value!r}")
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown role: {value!r}") from None


SessionState = Literal["UNINITIALIZED", "LOADING", "AUTHENTICATED", "ANONYMOUS"]

# Columns every profile row carries; anything else is a role-specific attribute.
PROFILE_CORE_FIELDS = ("id", "email", "name", "role")


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: Optional[str] = None


@dataclass(frozen=True)
class AuthSession:
    """Provider-issued session. Replaced wholesale on every auth event."""

    access_token: str
    user: AuthUser
    expires_at: Optional[int] = None


@dataclass(frozen=True)
class Profile:
    id: str
    name: str
    role: Role
    email: Optional[str] = None
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @property
    def school_class(self) -> Optional[str]:
        return self.attributes.get("class")

    @property
    def subject(self) -> Optional[str]:
        return self.attributes.get("subject")

    def to_row(self) -> Dict[str, Any]:
        row = dict(self.attributes)
        row.update({"id": self.id, "email": self.email, "name": self.name, "role": self.role.value})
        return row


@dataclass(frozen=True)
class Snapshot:
    """Externally observable identity state. Consumers never mutate it."""

    user: Optional[AuthUser] = None
    profile: Optional[Profile] = None
    loading: bool = True

    @property
    def role(self) -> Optional[Role]:
        return self.profile.role if self.profile is not None else None


def is_student(profile: Optional[Profile]) -> bool:
    return profile is not None and profile.role is Role.STUDENT


def is_teacher(profile: Optional[Profile]) -> bool:
    return profile is not None and profile.role is Role.TEACHER
