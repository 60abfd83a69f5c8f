from typing import List, Optional

import structlog

from ..application.interview_session import (
    AnalysisResult,
    BehavioralMetrics,
    InterviewSession,
    QuestionTurn,
)
from ..core.config import Settings, get_settings
from ..core.exceptions import AnalysisError
from ..core.interfaces import Analyzer

logger = structlog.get_logger(__name__)

NO_PARTICIPATION_FEEDBACK = (
    "You did not provide any meaningful responses during this interview. To get accurate "
    "feedback and improve your interview skills, please make sure you answer the interview "
    "questions thoroughly in your next session."
)


def no_participation_result(skipped_count: int) -> AnalysisResult:
    return AnalysisResult(
        overall_score=0,
        communication_score=0,
        technical_score=0,
        problem_solving_score=0,
        confidence_score=0,
        strengths=[],
        improvements=[
            "No participation detected. Please attempt to answer the questions in your next interview."
        ],
        detailed_feedback=NO_PARTICIPATION_FEEDBACK,
        questions_skipped=skipped_count,
    )


class ScoringService:
    def __init__(self, analyzer: Analyzer, settings: Optional[Settings] = None):
        self.analyzer = analyzer
        self.settings = settings or get_settings()

    async def score(self,
                    session: InterviewSession,
                    turns: List[QuestionTurn],
                    skipped_count: int,
                    metrics: Optional[BehavioralMetrics] = None) -> AnalysisResult:
        """Grade the interview, then apply the skip penalty and behavioral sub-scores."""
        if not any(turn.answered for turn in turns):
            logger.info("no_participation", turns=len(turns), skipped=skipped_count)
            return self._with_metrics(no_participation_result(skipped_count), metrics)

        attempts = max(1, self.settings.ANALYSIS_ATTEMPTS)
        last_error: Optional[AnalysisError] = None
        for attempt in range(1, attempts + 1):
            try:
                result = await self.analyzer.analyze(session, turns, skipped_count, metrics)
                break
            except AnalysisError as e:
                last_error = e
                logger.warning("analysis_attempt_failed", attempt=attempt, error=str(e))
        else:
            raise AnalysisError(f"Analysis failed after {attempts} attempts: {last_error}")

        penalty = skipped_count * self.settings.SKIP_PENALTY_POINTS
        result = result.model_copy(update={
            "overall_score": max(0.0, result.overall_score - penalty),
            "questions_skipped": skipped_count,
        })
        logger.info("interview_scored", overall=result.overall_score, penalty=penalty)
        return self._with_metrics(result, metrics)

    @staticmethod
    def _with_metrics(result: AnalysisResult, metrics: Optional[BehavioralMetrics]) -> AnalysisResult:
        if metrics is None or not metrics.samples:
            return result
        return result.model_copy(update={
            "eye_contact_score": metrics.eye_contact,
            "smile_score": metrics.smile,
            "stillness_score": metrics.stillness,
            "face_confidence_score": metrics.confidence,
        })
