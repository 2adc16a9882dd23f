from dataclasses import dataclass, asdict, field
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

UrgencyLevel = Literal["success", "warning", "error"]
ChatSender = Literal["user", "ai"]


@dataclass(frozen=True)
class UrgencyBadge:
    """Deadline label shown next to a homework item."""
    text: str
    level: UrgencyLevel
    days_left: int


@dataclass(frozen=True)
class ChatMessage:
    """One bubble of the doubt composer transcript."""
    id: int
    text: str
    sender: ChatSender
    timestamp: datetime
    image: Optional[str] = None
    references: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TeacherStats:
    homework: int = 0
    students: int = 0
    doubts: int = 0
    notes: int = 0
    recent_homework: List[Dict[str, Any]] = field(default_factory=list)
