import json
import uuid
from dataclasses import asdict, replace
from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import select

from ..application.interview_session import (
    AnalysisResult,
    CandidateProfile,
    CustomScenario,
    Difficulty,
    InterviewSession,
    QuestionTurn,
    SessionRequest,
    SessionStatus,
    utcnow,
)
from ..core.exceptions import DuplicateTurnError, PersistenceError, SessionNotFoundError
from ..core.interfaces import AskedQuestion, SessionStore
from .database import Database
from .models import AskedQuestionRecord, InterviewRecord, ResponseRecord, ResultRecord

logger = structlog.get_logger(__name__)


def new_session_id() -> str:
    return str(uuid.uuid4())


def _dump(value) -> Optional[str]:
    return json.dumps(asdict(value)) if value is not None else None


def _to_session(record: InterviewRecord, current_index: int = 0) -> InterviewSession:
    scenario = CustomScenario(**json.loads(record.custom_scenario)) if record.custom_scenario else None
    profile = CandidateProfile(**json.loads(record.candidate_profile)) if record.candidate_profile else None
    return InterviewSession(
        id=record.id,
        user_id=record.user_id,
        interview_type=record.interview_type,
        difficulty=Difficulty(record.difficulty),
        question_count=record.question_count,
        current_index=current_index,
        status=SessionStatus(record.status),
        custom_scenario=scenario,
        candidate_profile=profile,
        started_at=record.created_at,
    )


def _to_turn(record: ResponseRecord) -> QuestionTurn:
    return QuestionTurn(
        index=record.question_number,
        question=record.question,
        answer=record.answer,
        skipped=record.skipped,
        created_at=record.created_at,
    )


def _to_result(record: ResultRecord) -> AnalysisResult:
    data = record.model_dump(exclude={"id", "interview_id", "created_at"})
    data["strengths"] = json.loads(record.strengths or "[]")
    data["improvements"] = json.loads(record.improvements or "[]")
    return AnalysisResult.model_validate(data)


class SqlSessionStore(SessionStore):
    """Session store on SQLModel tables through an async SQLAlchemy engine."""

    def __init__(self, database: Database):
        self.db = database

    async def create_session(self, request: SessionRequest, question_count: int) -> str:
        record = InterviewRecord(
            id=new_session_id(),
            user_id=request.user_id,
            interview_type=request.interview_type,
            difficulty=request.difficulty.value,
            duration_minutes=request.duration_minutes,
            question_count=question_count,
            custom_scenario=_dump(request.custom_scenario),
            candidate_profile=_dump(request.candidate_profile),
        )
        try:
            async with self.db.session() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not create interview: {e}") from e
        logger.info("session_created", session_id=record.id)
        return record.id

    async def get_session(self, session_id: str) -> InterviewSession:
        try:
            async with self.db.session() as session:
                record = await session.get(InterviewRecord, session_id)
                if record is None:
                    raise SessionNotFoundError(session_id)
                result = await session.execute(
                    select(ResponseRecord.question_number).where(ResponseRecord.interview_id == session_id)
                )
                indices = list(result.scalars().all())
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load interview: {e}") from e
        return _to_session(record, max(indices, default=0))

    async def save_turn(self, session_id: str, turn: QuestionTurn) -> None:
        try:
            async with self.db.session() as session:
                if await session.get(InterviewRecord, session_id) is None:
                    raise SessionNotFoundError(session_id)
                session.add(ResponseRecord(
                    interview_id=session_id,
                    question_number=turn.index,
                    question=turn.question,
                    answer=turn.answer,
                    skipped=turn.skipped,
                    created_at=turn.created_at,
                ))
                await session.commit()
        except IntegrityError as e:
            raise DuplicateTurnError(session_id, turn.index) from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save answer: {e}") from e

    async def mark_complete(self, session_id: str) -> None:
        try:
            async with self.db.session() as session:
                record = await session.get(InterviewRecord, session_id)
                if record is None:
                    raise SessionNotFoundError(session_id)
                record.status = SessionStatus.COMPLETED.value
                record.completed_at = utcnow()
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not complete interview: {e}") from e

    async def get_turns(self, session_id: str) -> List[QuestionTurn]:
        try:
            async with self.db.session() as session:
                if await session.get(InterviewRecord, session_id) is None:
                    raise SessionNotFoundError(session_id)
                result = await session.execute(
                    select(ResponseRecord)
                    .where(ResponseRecord.interview_id == session_id)
                    .order_by(ResponseRecord.question_number)
                )
                records = result.scalars().all()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load answers: {e}") from e
        return [_to_turn(r) for r in records]

    async def save_result(self, session_id: str, result: AnalysisResult) -> None:
        values = result.model_dump()
        values["strengths"] = json.dumps(values["strengths"])
        values["improvements"] = json.dumps(values["improvements"])
        try:
            async with self.db.session() as session:
                if await session.get(InterviewRecord, session_id) is None:
                    raise SessionNotFoundError(session_id)
                existing = (await session.execute(
                    select(ResultRecord).where(ResultRecord.interview_id == session_id)
                )).scalars().first()
                if existing is None:
                    session.add(ResultRecord(interview_id=session_id, **values))
                else:
                    for key, value in values.items():
                        setattr(existing, key, value)
                    session.add(existing)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not save analysis: {e}") from e

    async def get_result(self, session_id: str) -> Optional[AnalysisResult]:
        try:
            async with self.db.session() as session:
                record = (await session.execute(
                    select(ResultRecord).where(ResultRecord.interview_id == session_id)
                )).scalars().first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not load analysis: {e}") from e
        return _to_result(record) if record is not None else None

    async def find_asked_question(self, user_id: str, question_hash: str) -> Optional[AskedQuestion]:
        try:
            async with self.db.session() as session:
                record = (await session.execute(
                    select(AskedQuestionRecord).where(
                        AskedQuestionRecord.user_id == user_id,
                        AskedQuestionRecord.question_hash == question_hash,
                    )
                )).scalars().first()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not read question history: {e}") from e
        if record is None:
            return None
        return AskedQuestion(record.question_hash, record.question_text,
                             record.is_important, record.times_asked)

    async def record_asked_question(self, user_id: str, question_hash: str, question_text: str) -> None:
        try:
            async with self.db.session() as session:
                record = (await session.execute(
                    select(AskedQuestionRecord).where(
                        AskedQuestionRecord.user_id == user_id,
                        AskedQuestionRecord.question_hash == question_hash,
                    )
                )).scalars().first()
                if record is None:
                    record = AskedQuestionRecord(user_id=user_id, question_hash=question_hash,
                                                 question_text=question_text)
                else:
                    record.times_asked += 1
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise PersistenceError(f"Could not record question history: {e}") from e


class InMemorySessionStore(SessionStore):
    """Process-local store, used in tests and when no database is wanted."""

    def __init__(self):
        self.sessions: Dict[str, InterviewSession] = {}
        self.turns: Dict[str, Dict[int, QuestionTurn]] = {}
        self.results: Dict[str, AnalysisResult] = {}
        self.asked: Dict[Tuple[str, str], AskedQuestion] = {}

    def _require(self, session_id: str) -> InterviewSession:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(session_id) from None

    async def create_session(self, request: SessionRequest, question_count: int) -> str:
        session_id = new_session_id()
        self.sessions[session_id] = InterviewSession(
            id=session_id,
            user_id=request.user_id,
            interview_type=request.interview_type,
            difficulty=request.difficulty,
            question_count=question_count,
            custom_scenario=request.custom_scenario,
            candidate_profile=request.candidate_profile,
        )
        self.turns[session_id] = {}
        return session_id

    async def get_session(self, session_id: str) -> InterviewSession:
        stored = self._require(session_id)
        current = max(self.turns[session_id], default=0)
        return replace(stored, current_index=current)

    async def save_turn(self, session_id: str, turn: QuestionTurn) -> None:
        self._require(session_id)
        if turn.index in self.turns[session_id]:
            raise DuplicateTurnError(session_id, turn.index)
        self.turns[session_id][turn.index] = turn

    async def mark_complete(self, session_id: str) -> None:
        self._require(session_id).status = SessionStatus.COMPLETED

    async def get_turns(self, session_id: str) -> List[QuestionTurn]:
        self._require(session_id)
        return [self.turns[session_id][i] for i in sorted(self.turns[session_id])]

    async def save_result(self, session_id: str, result: AnalysisResult) -> None:
        self._require(session_id)
        self.results[session_id] = result

    async def get_result(self, session_id: str) -> Optional[AnalysisResult]:
        return self.results.get(session_id)

    async def find_asked_question(self, user_id: str, question_hash: str) -> Optional[AskedQuestion]:
        return self.asked.get((user_id, question_hash))

    async def record_asked_question(self, user_id: str, question_hash: str, question_text: str) -> None:
        asked = self.asked.get((user_id, question_hash))
        if asked is None:
            self.asked[(user_id, question_hash)] = AskedQuestion(question_hash, question_text)
        else:
            asked.times_asked += 1
