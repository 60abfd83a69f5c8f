from typing import List

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from ....application.interview_session import AnalysisResult, question_count_for_duration
from ....core.config import Settings
from ....core.interfaces import SessionStore
from ....managers.scoring import ScoringService
from ..dependencies import get_app_settings, get_manager, get_store
from ..schemas import ConversationOut, InterviewCreate, InterviewCreated, ModelAnswer, TurnOut

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/interviews", tags=["interviews"])


@router.post("", response_model=InterviewCreated, status_code=status.HTTP_201_CREATED)
async def create_interview(body: InterviewCreate, store: SessionStore = Depends(get_store)):
    request = body.to_request()
    question_count = question_count_for_duration(request.duration_minutes)
    session_id = await store.create_session(request, question_count)
    return InterviewCreated(id=session_id, question_count=question_count, status="in_progress")


@router.get("/{session_id}/turns", response_model=List[TurnOut])
async def list_turns(session_id: str, store: SessionStore = Depends(get_store)):
    return [TurnOut.from_turn(turn) for turn in await store.get_turns(session_id)]


@router.get("/{session_id}/results", response_model=AnalysisResult)
async def get_results(session_id: str, store: SessionStore = Depends(get_store)):
    await store.get_session(session_id)
    result = await store.get_result(session_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Analysis not available yet")
    return result


@router.get("/{session_id}/conversation", response_model=ConversationOut)
async def get_conversation(session_id: str,
                           store: SessionStore = Depends(get_store),
                           manager=Depends(get_manager)):
    """Asked questions with the candidate's answers and a model answer for each."""
    turns = await store.get_turns(session_id)
    answers = await manager.generate_model_answers(turns)
    return ConversationOut(
        conversation=[TurnOut.from_turn(turn) for turn in turns],
        model_answers=[ModelAnswer(**answer) for answer in answers],
    )


@router.post("/{session_id}/analysis", response_model=AnalysisResult)
async def run_analysis(session_id: str,
                       store: SessionStore = Depends(get_store),
                       manager=Depends(get_manager),
                       settings: Settings = Depends(get_app_settings)):
    """Score an interview from its saved answers, e.g. after the live room lost its connection."""
    session = await store.get_session(session_id)
    turns = await store.get_turns(session_id)
    skipped = sum(1 for turn in turns if turn.skipped)

    result = await ScoringService(manager, settings).score(session, turns, skipped)
    await store.save_result(session_id, result)
    await store.mark_complete(session_id)
    logger.info("analysis_resumed", session_id=session_id, turns=len(turns), skipped=skipped)
    return result
