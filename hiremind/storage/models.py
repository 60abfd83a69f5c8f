from datetime import datetime
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from ..application.interview_session import utcnow


class InterviewRecord(SQLModel, table=True):
    __tablename__ = "interviews"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    interview_type: str
    difficulty: str
    duration_minutes: float
    question_count: int
    status: str = Field(default="in_progress")
    custom_scenario: Optional[str] = Field(default=None)  # JSON
    candidate_profile: Optional[str] = Field(default=None)  # JSON
    created_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = Field(default=None)


class ResponseRecord(SQLModel, table=True):
    __tablename__ = "interview_responses"
    __table_args__ = (UniqueConstraint("interview_id", "question_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    interview_id: str = Field(foreign_key="interviews.id", index=True)
    question_number: int
    question: str
    answer: str
    skipped: bool = Field(default=False)
    created_at: datetime = Field(default_factory=utcnow)


class ResultRecord(SQLModel, table=True):
    __tablename__ = "interview_results"

    id: Optional[int] = Field(default=None, primary_key=True)
    interview_id: str = Field(foreign_key="interviews.id", unique=True)
    overall_score: float
    communication_score: float
    technical_score: float
    problem_solving_score: float
    confidence_score: float
    strengths: str = Field(default="[]")  # JSON list
    improvements: str = Field(default="[]")  # JSON list
    detailed_feedback: str = Field(default="")
    eye_contact_score: Optional[float] = Field(default=None)
    smile_score: Optional[float] = Field(default=None)
    stillness_score: Optional[float] = Field(default=None)
    face_confidence_score: Optional[float] = Field(default=None)
    questions_skipped: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow)


class AskedQuestionRecord(SQLModel, table=True):
    __tablename__ = "interview_questions_asked"
    __table_args__ = (UniqueConstraint("user_id", "question_hash"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    question_hash: str
    question_text: str
    is_important: bool = Field(default=False)
    times_asked: int = Field(default=1)
    created_at: datetime = Field(default_factory=utcnow)
