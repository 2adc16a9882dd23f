"""Doubt composer: stores the question and answers with a canned AI placeholder."""

import itertools
import logging
from datetime import datetime, timezone
from typing import List, Optional

from use_cases.domain_models import ChatMessage
from use_cases.session_models import AuthUser, Profile

log = logging.getLogger(__name__)

DOUBT_TABLE = "doubt_questions"
PENDING_ANSWER = "Processing your question..."
ERROR_ANSWER = "Sorry, there was an error processing your question. Please try again."
DEFAULT_REFERENCES = [
    {"title": "Khan Academy", "url": "#"},
    {"title": "Related Videos", "url": "#"},
]
SUGGESTIONS = [
    "Explain quadratic equations",
    "How does photosynthesis work?",
    "Help with this math problem",
]

_message_ids = itertools.count(int(datetime.now(timezone.utc).timestamp() * 1000))


def _message(text, sender, image=None, references=None) -> ChatMessage:
    return ChatMessage(
        id=next(_message_ids),
        text=text,
        sender=sender,
        timestamp=datetime.now(timezone.utc),
        image=image,
        references=list(references or []),
    )


def canned_answer(question: str) -> str:
    return (
        "Great question! This appears to be about "
        + question[:50]
        + "... Our AI system is analyzing this and will provide detailed explanations, "
        "key points, and relevant resources soon."
    )


async def submit_doubt(
    provider,
    user: AuthUser,
    profile: Optional[Profile],
    text: str,
    image: Optional[str] = None,
    anonymous: bool = False,
) -> List[ChatMessage]:
    """Store a student's question and return the new transcript bubbles.

    Returns an empty list when there is nothing to send. A storage failure is
    reported as an apology bubble, not raised, so the transcript keeps flowing.
    """
    text = (text or "").strip()
    if not text and not image:
        return []

    question = _message(text, "user", image=image)
    row = {
        "student_id": user.id,
        "question_text": text,
        "question_image_url": image,
        "subject": profile.school_class if profile is not None else None,
        "is_anonymous": bool(anonymous),
        "ai_answer": PENDING_ANSWER,
    }
    try:
        await provider.insert(DOUBT_TABLE, [row])
    except Exception:
        log.exception("Error saving question for %s", user.id)
        return [question, _message(ERROR_ANSWER, "ai")]
    return [question, _message(canned_answer(text), "ai", references=DEFAULT_REFERENCES)]
