import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.exceptions import InvalidSessionRequestError

SKIPPED_ANSWER = "[SKIPPED]"
DEFAULT_QUESTION = (
    "Tell me about a challenging situation you faced and how you approached solving it."
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    PRO = "pro"
    ADVANCED = "advanced"


class SessionStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def question_count_for_duration(minutes: float) -> int:
    """Map a requested interview length in minutes to a number of questions."""
    if minutes is None or minutes <= 0:
        raise InvalidSessionRequestError(f"Interview duration must be positive, got {minutes}")
    if minutes <= 10:
        return 6
    if minutes <= 30:
        return 14
    if minutes <= 60:
        return 25
    return math.ceil(minutes / 60 * 25)


@dataclass
class CustomScenario:
    description: str
    context: str = ""
    goals: List[str] = field(default_factory=list)
    focus_areas: List[str] = field(default_factory=list)


@dataclass
class CandidateProfile:
    career_stage: Optional[str] = None  # student, recent_graduate, professional, career_changer
    years_of_experience: Optional[int] = None
    current_role: Optional[str] = None
    target_role: Optional[str] = None
    skills: List[str] = field(default_factory=list)


@dataclass
class SessionRequest:
    user_id: str
    interview_type: str
    duration_minutes: float
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    custom_scenario: Optional[CustomScenario] = None
    candidate_profile: Optional[CandidateProfile] = None


@dataclass
class InterviewSession:
    id: str
    user_id: str
    interview_type: str
    difficulty: Difficulty
    question_count: int
    current_index: int = 0
    status: SessionStatus = SessionStatus.IN_PROGRESS
    custom_scenario: Optional[CustomScenario] = None
    candidate_profile: Optional[CandidateProfile] = None
    started_at: datetime = field(default_factory=utcnow)

    def advance_to(self, index: int) -> None:
        if index < self.current_index or index > self.question_count:
            raise ValueError(
                f"question index {index} outside {self.current_index}..{self.question_count}"
            )
        self.current_index = index

    @property
    def remaining(self) -> int:
        return self.question_count - self.current_index


@dataclass(frozen=True)
class QuestionTurn:
    index: int
    question: str
    answer: str
    skipped: bool = False
    created_at: datetime = field(default_factory=utcnow)

    @property
    def answered(self) -> bool:
        return not self.skipped and bool(self.answer.strip())


@dataclass(frozen=True)
class TurnCompletion:
    is_complete: bool
    confidence: float
    reasoning: str = ""

    def __post_init__(self):
        object.__setattr__(self, "confidence", min(1.0, max(0.0, float(self.confidence))))

    @classmethod
    def undecided(cls, reasoning: str) -> "TurnCompletion":
        return cls(is_complete=False, confidence=0.0, reasoning=reasoning)


@dataclass
class TranscriptBuffer:
    """Text heard during the current turn plus the latest completion estimate."""
    text: str = ""
    version: int = 0
    estimate: Optional[TurnCompletion] = None

    def update(self, text: str) -> bool:
        text = text.strip()
        if text == self.text:
            return False
        self.text = text
        self.version += 1
        return True


@dataclass
class BehavioralMetrics:
    eye_contact: Optional[float] = None
    smile: Optional[float] = None
    stillness: Optional[float] = None
    confidence: Optional[float] = None
    samples: int = 0


class AnalysisResult(BaseModel):
    overall_score: float = Field(ge=0, le=100)
    communication_score: float = Field(ge=0, le=100)
    technical_score: float = Field(ge=0, le=100)
    problem_solving_score: float = Field(ge=0, le=100)
    confidence_score: float = Field(ge=0, le=100)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    detailed_feedback: str = ""
    eye_contact_score: Optional[float] = None
    smile_score: Optional[float] = None
    stillness_score: Optional[float] = None
    face_confidence_score: Optional[float] = None
    questions_skipped: int = 0


class ParsedResume(BaseModel):
    skills: List[str] = Field(default_factory=list)
    experience: List[Dict[str, Any]] = Field(default_factory=list)
    education: List[Dict[str, Any]] = Field(default_factory=list)
    projects: List[Dict[str, Any]] = Field(default_factory=list)
    years_of_experience: Optional[float] = Field(default=None, ge=0)
    summary: Optional[str] = None

    def to_profile(self, target_role: Optional[str] = None) -> CandidateProfile:
        """Candidate profile for question personalization; the latest role is listed first."""
        current_role = next((str(job["role"]) for job in self.experience if job.get("role")), None)
        years = int(self.years_of_experience) if self.years_of_experience is not None else None
        return CandidateProfile(
            career_stage="professional" if self.experience else "student",
            years_of_experience=years,
            current_role=current_role,
            target_role=target_role,
            skills=list(self.skills),
        )


def history_of(turns: List[QuestionTurn]) -> List[Dict[str, Any]]:
    """Question/answer pairs in the shape the question prompts expect."""
    return [{"question": t.question, "answer": t.answer} for t in turns]
