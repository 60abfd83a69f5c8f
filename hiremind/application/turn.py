import time
import uuid
from enum import Enum
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class FinalizeCause(str, Enum):
    CLASSIFIER = "classifier"
    SKIP = "skip"
    TIMEOUT = "timeout"


class TurnTokenState(Enum):
    OPEN = "open"
    CLAIMED = "claimed"
    REVOKED = "revoked"


class TurnToken:
    """Single-use permission to finalize one question turn.

    A token is issued when a question is generated. The first cause to claim
    it wins; every later claim (a timeout racing the classifier, a second skip)
    is refused.
    """

    def __init__(self, index: int, question: str):
        self.turn_id = uuid.uuid4().hex
        self.index = index
        self.question = question
        self.state = TurnTokenState.OPEN
        self.cause: Optional[FinalizeCause] = None
        self.started_at = time.monotonic()
        self.claimed_at: Optional[float] = None

    @property
    def is_open(self) -> bool:
        return self.state is TurnTokenState.OPEN

    def claim(self, cause: FinalizeCause) -> bool:
        if self.state is not TurnTokenState.OPEN:
            logger.info("turn_finalize_rejected", turn=self.index, cause=cause.value,
                        state=self.state.value, winner=self.cause.value if self.cause else None)
            return False
        self.state = TurnTokenState.CLAIMED
        self.cause = cause
        self.claimed_at = time.monotonic()
        logger.info("turn_finalize_claimed", turn=self.index, cause=cause.value,
                    latency=round(self.claimed_at - self.started_at, 3))
        return True

    def revoke(self) -> None:
        if self.state is TurnTokenState.OPEN:
            self.state = TurnTokenState.REVOKED
