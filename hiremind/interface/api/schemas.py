from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from ...application.interview_session import (
    CandidateProfile,
    CustomScenario,
    Difficulty,
    ParsedResume,
    QuestionTurn,
    SessionRequest,
)


class ScenarioIn(BaseModel):
    description: str = Field(min_length=1)
    context: str = ""
    goals: List[str] = Field(default_factory=list)
    focus_areas: List[str] = Field(default_factory=list)


class ProfileIn(BaseModel):
    career_stage: Optional[str] = None
    years_of_experience: Optional[int] = Field(default=None, ge=0)
    current_role: Optional[str] = None
    target_role: Optional[str] = None
    skills: List[str] = Field(default_factory=list)


class InterviewCreate(BaseModel):
    user_id: str = Field(min_length=1)
    interview_type: str = Field(default="technical", min_length=1)
    duration_minutes: float = Field(gt=0)
    difficulty: Difficulty = Difficulty.INTERMEDIATE
    custom_scenario: Optional[ScenarioIn] = None
    candidate_profile: Optional[ProfileIn] = None

    def to_request(self) -> SessionRequest:
        return SessionRequest(
            user_id=self.user_id,
            interview_type=self.interview_type,
            duration_minutes=self.duration_minutes,
            difficulty=self.difficulty,
            custom_scenario=CustomScenario(**self.custom_scenario.model_dump()) if self.custom_scenario else None,
            candidate_profile=CandidateProfile(**self.candidate_profile.model_dump()) if self.candidate_profile else None,
        )


class InterviewCreated(BaseModel):
    id: str
    question_count: int
    status: str


class TurnOut(BaseModel):
    index: int
    question: str
    answer: str
    skipped: bool
    created_at: datetime

    @classmethod
    def from_turn(cls, turn: QuestionTurn) -> "TurnOut":
        return cls(index=turn.index, question=turn.question, answer=turn.answer,
                   skipped=turn.skipped, created_at=turn.created_at)


class ModelAnswer(BaseModel):
    question_number: int
    probable_answer: str


class ConversationOut(BaseModel):
    conversation: List[TurnOut]
    model_answers: List[ModelAnswer]


class SpeechRequest(BaseModel):
    text: str = Field(min_length=1, max_length=5000)


class ResumeIn(BaseModel):
    text: str = Field(min_length=1, max_length=50000)
    target_role: Optional[str] = None


class ResumeOut(BaseModel):
    resume: ParsedResume
    profile: ProfileIn
