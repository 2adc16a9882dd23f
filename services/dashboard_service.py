import asyncio
import logging
from typing import Optional

from services.homework_service import HOMEWORK_TABLE, fetch_homework, homework_stats
from services.doubt_service import DOUBT_TABLE
from use_cases.domain_models import TeacherStats
from use_cases.session_models import Profile

log = logging.getLogger(__name__)

NOTES_TABLE = "class_notes"
RECENT_LIMIT = 5


async def fetch_teacher_stats(provider, profile: Optional[Profile]) -> TeacherStats:
    """Counts for the teacher dashboard, fetched concurrently."""
    if profile is None or not profile.id:
        return TeacherStats()
    homework, doubts, notes = await asyncio.gather(
        provider.select(HOMEWORK_TABLE, {"teacher_id": profile.id}, order_by="created_at", descending=True),
        provider.select(DOUBT_TABLE, {"subject": profile.subject}),
        provider.select(NOTES_TABLE, {"teacher_id": profile.id}),
    )
    return TeacherStats(
        homework=len(homework),
        students=0,
        doubts=len(doubts),
        notes=len(notes),
        recent_homework=homework[:RECENT_LIMIT],
    )


async def fetch_student_overview(provider, limit: int = RECENT_LIMIT):
    """Upcoming homework (soonest first) with pending/overdue counts for the student dashboard."""
    df = await fetch_homework(provider, limit=limit)
    return df, homework_stats(df)
