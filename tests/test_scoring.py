# tests/test_scoring.py
import pytest

from doubles import FakeManager
from hiremind.application.interview_session import (
    SKIPPED_ANSWER,
    BehavioralMetrics,
    Difficulty,
    InterviewSession,
    QuestionTurn,
)
from hiremind.core.exceptions import AnalysisError
from hiremind.managers.scoring import ScoringService

SESSION = InterviewSession(id="s1", user_id="u1", interview_type="technical",
                           difficulty=Difficulty.PRO, question_count=6)


def turns(*answers):
    return [
        QuestionTurn(index=i, question=f"Q{i}?", answer=a, skipped=(a == SKIPPED_ANSWER))
        for i, a in enumerate(answers, 1)
    ]


@pytest.mark.asyncio
async def test_skip_penalty_applied_to_overall(fast_settings):
    manager = FakeManager()
    service = ScoringService(manager, fast_settings)

    result = await service.score(SESSION, turns("I built it.", SKIPPED_ANSWER, SKIPPED_ANSWER), 2)

    assert result.overall_score == 60
    assert result.communication_score == 75
    assert result.questions_skipped == 2


@pytest.mark.asyncio
async def test_penalty_floors_at_zero(fast_settings):
    manager = FakeManager()
    manager.overall = 15
    service = ScoringService(manager, fast_settings)

    result = await service.score(SESSION, turns("Yes.", SKIPPED_ANSWER, SKIPPED_ANSWER), 2)

    assert result.overall_score == 0


@pytest.mark.asyncio
async def test_only_skips_and_blanks_means_no_participation(fast_settings):
    manager = FakeManager()
    service = ScoringService(manager, fast_settings)

    result = await service.score(SESSION, turns(SKIPPED_ANSWER, "", "  "), 1)

    assert result.overall_score == 0
    assert result.strengths == []
    assert result.improvements[0].startswith("No participation detected")
    assert manager.analyze_calls == []


@pytest.mark.asyncio
async def test_analysis_retried_until_attempts_exhausted(fast_settings):
    manager = FakeManager(analysis_failures=1)
    service = ScoringService(manager, fast_settings)

    result = await service.score(SESSION, turns("An answer."), 0)
    assert result.overall_score == 80
    assert len(manager.analyze_calls) == 2

    failing = FakeManager(analysis_failures=-1)
    with pytest.raises(AnalysisError):
        await ScoringService(failing, fast_settings).score(SESSION, turns("An answer."), 0)
    assert len(failing.analyze_calls) == fast_settings.ANALYSIS_ATTEMPTS


@pytest.mark.asyncio
async def test_behavioral_scores_attached(fast_settings):
    service = ScoringService(FakeManager(), fast_settings)
    metrics = BehavioralMetrics(eye_contact=82.5, smile=40.0, stillness=90.0, confidence=71.0, samples=12)

    result = await service.score(SESSION, turns("An answer."), 0, metrics)

    assert result.eye_contact_score == 82.5
    assert result.face_confidence_score == 71.0
