import hashlib
import re
from typing import Any, Dict, List, Optional

import structlog

from ..application.interview_session import DEFAULT_QUESTION, InterviewSession
from ..core.config import Settings, get_settings
from ..core.exceptions import PersistenceError, QuestionGenerationError
from ..core.interfaces import QuestionGenerator, SessionStore

logger = structlog.get_logger(__name__)

_WHITESPACE = re.compile(r"\s+")


def question_hash(text: str) -> str:
    """Stable fingerprint of a question, insensitive to case and spacing."""
    normalized = _WHITESPACE.sub(" ", text.strip().lower())
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class QuestionService:
    """Picks a question the user has not been asked before.

    Questions already in the user's history are regenerated unless they were
    marked important. Once the attempt budget is spent the default question is
    used so the interview never stalls.
    """

    def __init__(self, generator: QuestionGenerator, store: SessionStore,
                 settings: Optional[Settings] = None):
        self.generator = generator
        self.store = store
        self.settings = settings or get_settings()

    async def next_question(self,
                            session: InterviewSession,
                            index: int,
                            history: List[Dict[str, Any]]) -> str:
        max_attempts = self.settings.QUESTION_MAX_ATTEMPTS
        for attempt in range(1, max_attempts + 1):
            try:
                question = await self.generator.generate_question(session, index, history)
            except QuestionGenerationError as e:
                logger.warning("question_generation_failed", attempt=attempt, index=index, error=str(e))
                continue

            digest = question_hash(question)
            try:
                asked = await self.store.find_asked_question(session.user_id, digest)
            except PersistenceError as e:
                logger.warning("question_history_unavailable", error=str(e))
                return question

            if asked is not None and not asked.is_important:
                logger.info("question_repeated", attempt=attempt, index=index, times_asked=asked.times_asked)
                continue

            try:
                await self.store.record_asked_question(session.user_id, digest, question)
            except PersistenceError as e:
                logger.warning("question_history_not_recorded", error=str(e))
            logger.info("question_selected", index=index, attempt=attempt,
                        reused=asked is not None)
            return question

        logger.warning("question_fallback", index=index, attempts=max_attempts)
        return DEFAULT_QUESTION
