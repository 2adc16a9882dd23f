import logging
import math
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Union

import pandas as pd

from use_cases.domain_models import UrgencyBadge
from use_cases.session_models import Profile, is_teacher

log = logging.getLogger(__name__)

HOMEWORK_TABLE = "homework_tasks"
HOMEWORK_COLUMNS = ["id", "title", "description", "subject", "deadline", "teacher_id", "created_at"]
FILTERS = ("all", "pending", "overdue")
SECONDS_PER_DAY = 24 * 60 * 60

TimeLike = Union[str, datetime, pd.Timestamp]


def _utc(value: TimeLike) -> pd.Timestamp:
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def _now(now: Optional[TimeLike] = None) -> pd.Timestamp:
    return _utc(now) if now is not None else pd.Timestamp.now(tz="UTC")


def homework_frame(rows: Optional[Iterable[Mapping[str, Any]]]) -> pd.DataFrame:
    """Normalize raw homework rows into a deadline-sorted DataFrame (UTC deadlines)."""
    df = pd.DataFrame(list(rows or []))
    for col in HOMEWORK_COLUMNS:
        if col not in df.columns:
            df[col] = None
    df["deadline"] = pd.to_datetime(df["deadline"], utc=True, errors="coerce", format="mixed")
    missing = int(df["deadline"].isna().sum())
    if missing:
        log.warning("Dropping %d homework rows without a valid deadline", missing)
        df = df.dropna(subset=["deadline"])
    return df.sort_values("deadline", kind="stable").reset_index(drop=True)


def days_left(deadline: TimeLike, now: Optional[TimeLike] = None) -> int:
    """Whole days until the deadline, rounded up; negative once it has passed."""
    delta = (_utc(deadline) - _now(now)).total_seconds() / SECONDS_PER_DAY
    return math.ceil(delta)


def urgency_badge(deadline: TimeLike, now: Optional[TimeLike] = None) -> UrgencyBadge:
    left = days_left(deadline, now)
    if left < 0:
        return UrgencyBadge(text="Overdue", level="error", days_left=left)
    if left == 0:
        return UrgencyBadge(text="Today", level="error", days_left=left)
    if left == 1:
        return UrgencyBadge(text="1 day left", level="warning", days_left=left)
    return UrgencyBadge(text=f"{left} days left", level="success", days_left=left)


def homework_stats(df: pd.DataFrame, now: Optional[TimeLike] = None) -> Dict[str, int]:
    if df.empty:
        return {"pending": 0, "completed": 0, "overdue": 0}
    now = _now(now)
    return {
        "pending": int((df["deadline"] > now).sum()),
        # Submissions are not tracked yet.
        "completed": 0,
        "overdue": int((df["deadline"] < now).sum()),
    }


def filter_homework(df: pd.DataFrame, mode: str = "all", now: Optional[TimeLike] = None) -> pd.DataFrame:
    if mode not in FILTERS:
        raise ValueError(f"Unknown homework filter: {mode}")
    if mode == "all" or df.empty:
        return df
    now = _now(now)
    mask = df["deadline"] < now if mode == "overdue" else df["deadline"] > now
    return df[mask].reset_index(drop=True)


async def fetch_homework(provider, filters: Optional[Mapping[str, Any]] = None, limit: Optional[int] = None) -> pd.DataFrame:
    rows = await provider.select(HOMEWORK_TABLE, filters, order_by="deadline", limit=limit)
    return homework_frame(rows)


async def create_homework(
    provider,
    teacher: Profile,
    title: str,
    deadline: TimeLike,
    description: str = "",
    subject: Optional[str] = None,
) -> Dict[str, Any]:
    """Create an assignment owned by the given teacher profile."""
    if not is_teacher(teacher):
        raise PermissionError("Only teachers can create homework")
    title = (title or "").strip()
    if not title:
        raise ValueError("Homework title is required")
    row = {
        "title": title,
        "description": (description or "").strip() or None,
        "subject": (subject or teacher.subject or "").strip() or None,
        "deadline": _utc(deadline).isoformat(),
        "teacher_id": teacher.id,
    }
    inserted = await provider.insert(HOMEWORK_TABLE, [row])
    log.info("Teacher %s created homework %r", teacher.id, title)
    return inserted[0] if inserted else row
