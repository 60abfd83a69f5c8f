from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any, List, Optional

from ..application.interview_session import (
    AnalysisResult,
    BehavioralMetrics,
    InterviewSession,
    QuestionTurn,
    SessionRequest,
    TurnCompletion,
)


class QuestionGenerator(ABC):
    @abstractmethod
    async def generate_question(self,
                                session: InterviewSession,
                                index: int,
                                history: List[Dict[str, Any]]) -> str:
        """Generate interview question number `index` given the answers so far."""
        pass


class Analyzer(ABC):
    @abstractmethod
    async def analyze(self,
                      session: InterviewSession,
                      turns: List[QuestionTurn],
                      skipped_count: int,
                      metrics: Optional[BehavioralMetrics] = None) -> AnalysisResult:
        """Score the whole interview transcript."""
        pass


class TurnClassifier(ABC):
    @abstractmethod
    async def classify(self, transcript: str, question: str) -> TurnCompletion:
        """Decide whether the candidate has finished answering `question`."""
        pass


@dataclass
class AskedQuestion:
    question_hash: str
    question_text: str
    is_important: bool = False
    times_asked: int = 1


class SessionStore(ABC):
    @abstractmethod
    async def create_session(self, request: SessionRequest, question_count: int) -> str:
        """Persist a new interview session and return its id."""
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> InterviewSession:
        pass

    @abstractmethod
    async def save_turn(self, session_id: str, turn: QuestionTurn) -> None:
        """Persist one finalized turn. A second save for the same index is rejected."""
        pass

    @abstractmethod
    async def mark_complete(self, session_id: str) -> None:
        pass

    @abstractmethod
    async def get_turns(self, session_id: str) -> List[QuestionTurn]:
        """Turns ordered by question index."""
        pass

    @abstractmethod
    async def save_result(self, session_id: str, result: AnalysisResult) -> None:
        pass

    @abstractmethod
    async def get_result(self, session_id: str) -> Optional[AnalysisResult]:
        pass

    @abstractmethod
    async def find_asked_question(self, user_id: str, question_hash: str) -> Optional[AskedQuestion]:
        pass

    @abstractmethod
    async def record_asked_question(self, user_id: str, question_hash: str, question_text: str) -> None:
        """Add the question to the user's history, or bump its times-asked counter."""
        pass


class SpeechSynthesizer(ABC):
    @abstractmethod
    async def speak(self, text: str) -> None:
        """Play `text` and return once playback has ended.

        Raises SynthesisError if playback fails or never reports completion.
        """
        pass

    @abstractmethod
    async def cancel(self) -> None:
        """Stop any playback immediately. Safe to call when nothing is playing."""
        pass


class SpeechCapture(ABC):
    @abstractmethod
    async def start(self) -> None:
        pass

    @abstractmethod
    async def stop(self) -> None:
        """Stop recognition. Safe to call when already stopped."""
        pass

    @property
    @abstractmethod
    def transcript(self) -> str:
        pass

    @property
    @abstractmethod
    def is_speech_detected(self) -> bool:
        pass


class Permission(str, Enum):
    GRANTED = "granted"
    DENIED = "denied"
    PROMPT = "prompt"


@dataclass
class DevicePermissions:
    microphone: Permission = Permission.PROMPT
    camera: Permission = Permission.PROMPT

    def denied(self) -> List[str]:
        return [name for name, state in (("microphone", self.microphone), ("camera", self.camera))
                if state is Permission.DENIED]


class MediaDevices(ABC):
    @abstractmethod
    async def check_permissions(self) -> DevicePermissions:
        pass

    @abstractmethod
    async def acquire(self) -> None:
        """Open camera and microphone for the session."""
        pass

    @abstractmethod
    async def release(self) -> None:
        """Close camera and microphone. Safe to call more than once."""
        pass
