"""Turn-taking state machine for one live interview.

The controller owns the order of events in a session: ask a question, let the
synthesizer speak it, listen until exactly one finalization cause fires
(classifier says the answer is complete, the candidate skips, or the silence /
turn timers run out), persist the answer, and either move on to the next
question or score the interview. Adapters call back into it through
`handle_transcript`, `handle_speech_start` and `skip`; everything it wants the
outside world to know is pushed through the `emit` callback.
"""
import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import structlog

from ..core.config import Settings, get_settings
from ..core.exceptions import (
    AnalysisError,
    DuplicateTurnError,
    HireMindError,
    InvalidTransitionError,
    PermissionDeniedError,
    PersistenceError,
    TurnClassificationError,
    TurnSaveError,
)
from ..core.interfaces import (
    MediaDevices,
    SessionStore,
    SpeechCapture,
    SpeechSynthesizer,
    TurnClassifier,
)
from ..core.logging import bind_session
from .interview_session import (
    SKIPPED_ANSWER,
    AnalysisResult,
    BehavioralMetrics,
    InterviewSession,
    QuestionTurn,
    SessionRequest,
    SessionStatus,
    TranscriptBuffer,
    TurnCompletion,
    history_of,
    question_count_for_duration,
)
from .turn import FinalizeCause, TurnToken

logger = structlog.get_logger(__name__)

EventSink = Callable[[str, Dict[str, Any]], Awaitable[None]]

COMPLETION_MESSAGE = (
    "Thank you for your responses! Your interview is now complete. Analyzing your performance..."
)


class ConversationState(str, Enum):
    IDLE = "idle"
    AWAITING_SETUP = "awaiting_setup"
    AI_SPEAKING = "ai_speaking"
    LISTENING = "listening"
    PROCESSING = "processing"
    FINALIZING = "finalizing"
    COMPLETE = "complete"


_S = ConversationState
TRANSITIONS: Dict[ConversationState, frozenset] = {
    _S.IDLE: frozenset({_S.AWAITING_SETUP, _S.COMPLETE}),
    _S.AWAITING_SETUP: frozenset({_S.AI_SPEAKING, _S.COMPLETE}),
    _S.AI_SPEAKING: frozenset({_S.LISTENING, _S.PROCESSING, _S.COMPLETE}),
    _S.LISTENING: frozenset({_S.PROCESSING, _S.COMPLETE}),
    _S.PROCESSING: frozenset({_S.AI_SPEAKING, _S.FINALIZING, _S.COMPLETE}),
    _S.FINALIZING: frozenset({_S.COMPLETE}),
    # manual analysis retry
    _S.COMPLETE: frozenset({_S.FINALIZING}),
}


class ConversationController:
    def __init__(self,
                 *,
                 store: SessionStore,
                 questions,
                 classifier: TurnClassifier,
                 scorer,
                 synthesizer: SpeechSynthesizer,
                 capture: SpeechCapture,
                 devices: MediaDevices,
                 metrics=None,
                 settings: Optional[Settings] = None,
                 emit: Optional[EventSink] = None):
        self._store = store
        self._questions = questions
        self._classifier = classifier
        self._scorer = scorer
        self._synthesizer = synthesizer
        self._capture = capture
        self._devices = devices
        self._metrics = metrics
        self._settings = settings or get_settings()
        self._sink = emit

        self.state = ConversationState.IDLE
        self.session: Optional[InterviewSession] = None
        self.turns: List[QuestionTurn] = []
        self.unsaved_turns: List[QuestionTurn] = []
        self.buffer = TranscriptBuffer()
        self.result: Optional[AnalysisResult] = None
        self.error: Optional[HireMindError] = None
        self.abandoned = False

        self._token: Optional[TurnToken] = None
        self._outcome: Optional[asyncio.Future] = None
        self._barge_in = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._classify_task: Optional[asyncio.Task] = None
        self._classify_pending = False
        self._silence_task: Optional[asyncio.Task] = None
        self._behavior: Optional[BehavioralMetrics] = None
        self._analysis_failed = False
        self._released = True
        self._closed = False

    # ------------------------------------------------------------------ #
    # public surface

    @property
    def current_question(self) -> Optional[str]:
        return self._token.question if self._token else None

    @property
    def skipped_count(self) -> int:
        return sum(1 for turn in self.turns if turn.skipped)

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    def snapshot(self) -> Dict[str, Any]:
        session = self.session
        return {
            "state": self.state.value,
            "session_id": session.id if session else None,
            "question_index": session.current_index if session else 0,
            "question_count": session.question_count if session else 0,
            "question": self.current_question,
            "transcript": self.buffer.text,
            "unsaved_turns": [turn.index for turn in self.unsaved_turns],
            "abandoned": self.abandoned,
        }

    async def begin(self) -> None:
        """idle -> awaiting_setup, once camera and microphone are usable."""
        self._require(ConversationState.IDLE)
        permissions = await self._devices.check_permissions()
        denied = permissions.denied()
        if denied:
            logger.warning("device_permission_denied", devices=denied)
            raise PermissionDeniedError(denied)
        await self._transition(ConversationState.AWAITING_SETUP)

    async def start(self, request: SessionRequest) -> InterviewSession:
        """Create the session, open the devices and start asking questions."""
        self._require(ConversationState.AWAITING_SETUP)
        question_count = question_count_for_duration(request.duration_minutes)
        session_id = await self._store.create_session(request, question_count)
        # bound before the interview task exists so its context carries the id
        bind_session(session_id, user_id=request.user_id)
        self.session = InterviewSession(
            id=session_id,
            user_id=request.user_id,
            interview_type=request.interview_type,
            difficulty=request.difficulty,
            question_count=question_count,
            custom_scenario=request.custom_scenario,
            candidate_profile=request.candidate_profile,
        )
        logger.info("interview_created", session_id=session_id, question_count=question_count,
                    duration=request.duration_minutes, difficulty=request.difficulty.value)

        await self._devices.acquire()
        self._released = False

        await self._transition(ConversationState.AI_SPEAKING)
        self._task = asyncio.create_task(self._run(), name=f"interview-{session_id}")
        return self.session

    def handle_transcript(self, text: str) -> None:
        """Incremental transcript from speech capture."""
        if self.state is not ConversationState.LISTENING:
            return
        if self._token is None or not self._token.is_open:
            return
        if not self.buffer.update(text):
            return
        self._arm_silence_timer()
        if self.buffer.text:
            self._request_classification()

    def handle_speech_start(self) -> None:
        """Speech capture detected the candidate's voice."""
        if self.state is ConversationState.AI_SPEAKING and self._settings.BARGE_IN_ENABLED:
            self._barge_in.set()

    async def skip(self) -> bool:
        if self.state not in (ConversationState.AI_SPEAKING, ConversationState.LISTENING):
            raise InvalidTransitionError(f"Cannot skip a question while {self.state.value}")
        if self._token is None:
            return False
        return self._finalize_turn(self._token, FinalizeCause.SKIP, SKIPPED_ANSWER)

    async def retry_unsaved(self) -> int:
        """Try again to persist answers whose save failed. Returns how many are still unsaved."""
        if self._closed:
            raise InvalidTransitionError("The interview has ended")
        pending, self.unsaved_turns = self.unsaved_turns, []
        for turn in pending:
            await self._save_turn(turn)
        return len(self.unsaved_turns)

    async def retry_analysis(self) -> asyncio.Task:
        """Score again after a failed analysis.

        Runs in the background like the interview itself, so `end()` can
        abandon it; await the returned task for the outcome.
        """
        if self._closed or not self._analysis_failed:
            raise InvalidTransitionError("There is no failed analysis to retry")
        if self._task is not None and not self._task.done():
            raise InvalidTransitionError("Analysis is already running")
        await self._transition(ConversationState.FINALIZING)
        self._task = asyncio.create_task(self._reanalyze(), name=f"analysis-{self.session.id}")
        return self._task

    async def end(self) -> None:
        """Stop everything now. Safe to call repeatedly and from any state."""
        if self._closed:
            return
        self._closed = True
        if self.state is not ConversationState.COMPLETE:
            self.abandoned = True
        if self._token is not None:
            self._token.revoke()
        self._cancel_turn_tasks()

        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        await self._release_inputs()
        if self.state is not ConversationState.COMPLETE:
            await self._transition(ConversationState.COMPLETE)
        logger.info("interview_ended", abandoned=self.abandoned,
                    answered=len(self.turns), session_id=self.session.id if self.session else None)

    # ------------------------------------------------------------------ #
    # interview task

    async def _run(self) -> None:
        session = self.session
        try:
            for index in range(session.current_index + 1, session.question_count + 1):
                await self._transition(ConversationState.AI_SPEAKING)
                question = await self._questions.next_question(session, index, history_of(self.turns))
                turn = await self._conduct_turn(index, question)
                await self._process(turn)
            await self._finalize()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("interview_failed", state=self.state.value)
            self.error = exc if isinstance(exc, HireMindError) else HireMindError(str(exc))
            await self._emit_error(self.error)
            self._cancel_turn_tasks()
            await self._release_inputs()
            await self._transition(ConversationState.COMPLETE)

    async def _conduct_turn(self, index: int, question: str) -> QuestionTurn:
        self.session.advance_to(index)
        self._token = TurnToken(index, question)
        self.buffer = TranscriptBuffer()
        self._outcome = asyncio.get_running_loop().create_future()
        self._barge_in.clear()
        await self._emit("question", {
            "index": index,
            "total": self.session.question_count,
            "text": question,
        })

        await self._speak(question)
        if self._token.is_open:
            await self._listen()

        cause, answer = await self._outcome
        skipped = cause is FinalizeCause.SKIP
        turn = QuestionTurn(
            index=index,
            question=question,
            answer=SKIPPED_ANSWER if skipped else answer,
            skipped=skipped,
        )
        await self._emit("turn_finalized", {
            "index": index,
            "cause": cause.value,
            "answer": turn.answer,
            "skipped": skipped,
        })
        return turn

    async def _speak(self, text: str) -> None:
        speech = asyncio.create_task(self._synthesizer.speak(text))
        barge_in = asyncio.create_task(self._barge_in.wait())
        try:
            done, _ = await asyncio.wait(
                {speech, barge_in, self._outcome}, return_when=asyncio.FIRST_COMPLETED
            )
            if speech in done:
                error = speech.exception()
                if error is not None:
                    logger.warning("synthesis_failed", error=str(error), turn=self._token.index)
                    await asyncio.sleep(self._settings.SYNTHESIS_FALLBACK_DELAY_SECONDS)
                return
            if barge_in in done:
                logger.info("barge_in", turn=self._token.index)
            await self._synthesizer.cancel()
        finally:
            barge_in.cancel()
            if not speech.done():
                speech.cancel()
            await asyncio.gather(speech, barge_in, return_exceptions=True)

    async def _listen(self) -> None:
        await self._transition(ConversationState.LISTENING)
        await self._capture.start()
        self._arm_silence_timer()
        try:
            await asyncio.wait_for(asyncio.shield(self._outcome),
                                   timeout=self._settings.MAX_TURN_SECONDS)
        except asyncio.TimeoutError:
            logger.info("turn_time_limit", turn=self._token.index)
            self._finalize_turn(self._token, FinalizeCause.TIMEOUT, self.buffer.text)
        finally:
            self._cancel_turn_tasks()
            await self._capture.stop()

    def _finalize_turn(self, token: TurnToken, cause: FinalizeCause, answer: str) -> bool:
        if token is not self._token:
            logger.debug("stale_turn_token", turn=token.index, cause=cause.value)
            return False
        if not token.claim(cause):
            return False
        self._outcome.set_result((cause, answer))
        return True

    # ------------------------------------------------------------------ #
    # silence timer and classifier

    def _arm_silence_timer(self) -> None:
        if self._silence_task is not None and not self._silence_task.done():
            self._silence_task.cancel()
        self._silence_task = asyncio.create_task(self._silence_watch(self._token))

    async def _silence_watch(self, token: TurnToken) -> None:
        await asyncio.sleep(self._settings.SILENCE_TIMEOUT_SECONDS)
        logger.info("silence_timeout", turn=token.index, transcript_length=len(self.buffer.text))
        self._finalize_turn(token, FinalizeCause.TIMEOUT, self.buffer.text)

    def _request_classification(self) -> None:
        if self._classify_task is not None and not self._classify_task.done():
            self._classify_pending = True
            return
        self._classify_pending = False
        self._classify_task = asyncio.create_task(
            self._classify(self._token, self.buffer.version, self.buffer.text)
        )

    async def _classify(self, token: TurnToken, version: int, text: str) -> None:
        try:
            completion = await asyncio.wait_for(
                self._classifier.classify(text, token.question),
                timeout=self._settings.CLASSIFIER_TIMEOUT_SECONDS,
            )
        except asyncio.TimeoutError:
            completion = TurnCompletion.undecided("Turn classifier timed out")
        except TurnClassificationError as exc:
            completion = TurnCompletion.undecided(f"Turn classifier failed: {exc}")
        except Exception:
            logger.exception("turn_classifier_crashed", turn=token.index)
            completion = TurnCompletion.undecided("Turn classifier failed")

        if token is not self._token or not token.is_open:
            return

        if version == self.buffer.version:
            self.buffer.estimate = completion
            await self._emit("turn_estimate", {
                "index": token.index,
                "is_complete": completion.is_complete,
                "confidence": completion.confidence,
                "reasoning": completion.reasoning,
            })
            if (completion.is_complete
                    and completion.confidence >= self._settings.COMPLETION_CONFIDENCE_THRESHOLD
                    and version == self.buffer.version
                    and self._finalize_turn(token, FinalizeCause.CLASSIFIER, text)):
                return
        else:
            logger.debug("turn_estimate_superseded", turn=token.index,
                         version=version, current=self.buffer.version)

        if self._classify_pending and token.is_open:
            self._classify_pending = False
            self._classify_task = asyncio.create_task(
                self._classify(token, self.buffer.version, self.buffer.text)
            )

    def _cancel_turn_tasks(self) -> None:
        current = asyncio.current_task()
        for task in (self._silence_task, self._classify_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        self._silence_task = None
        self._classify_task = None
        self._classify_pending = False

    # ------------------------------------------------------------------ #
    # processing and finalization

    async def _process(self, turn: QuestionTurn) -> None:
        await self._transition(ConversationState.PROCESSING)
        self.turns.append(turn)
        await self._save_turn(turn)

    async def _save_turn(self, turn: QuestionTurn) -> bool:
        attempts = max(1, self._settings.SAVE_ATTEMPTS)
        for attempt in range(1, attempts + 1):
            try:
                await self._store.save_turn(self.session.id, turn)
                return True
            except DuplicateTurnError:
                logger.warning("turn_already_saved", turn=turn.index)
                return True
            except PersistenceError as exc:
                logger.warning("turn_save_failed", turn=turn.index, attempt=attempt, error=str(exc))

        self.unsaved_turns.append(turn)
        await self._emit_error(TurnSaveError(
            f"Could not save your answer to question {turn.index}. You can retry saving it."
        ))
        return False

    async def _finalize(self) -> None:
        await self._transition(ConversationState.FINALIZING)
        await self._emit("message", {"text": COMPLETION_MESSAGE})
        if self._metrics is not None:
            self._behavior = self._metrics.summary()
        await self._release_inputs()
        if self.unsaved_turns:
            await self.retry_unsaved()
        await self._analyze()

    async def _analyze(self) -> None:
        try:
            result = await self._scorer.score(
                self.session, list(self.turns), self.skipped_count, self._behavior
            )
            await self._store.save_result(self.session.id, result)
            await self._store.mark_complete(self.session.id)
        except (AnalysisError, PersistenceError) as exc:
            logger.error("analysis_failed", error=str(exc))
            self.error = exc
            self._analysis_failed = True
            await self._emit_error(exc)
            await self._transition(ConversationState.COMPLETE)
            return

        self.session.status = SessionStatus.COMPLETED
        self.result = result
        self.error = None
        self._analysis_failed = False
        logger.info("analysis_ready", overall=result.overall_score, skipped=result.questions_skipped)
        await self._emit("analysis", result.model_dump())
        await self._transition(ConversationState.COMPLETE)

    async def _reanalyze(self) -> None:
        try:
            if self.unsaved_turns:
                await self.retry_unsaved()
            await self._analyze()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.exception("analysis_retry_failed")
            self.error = exc if isinstance(exc, HireMindError) else HireMindError(str(exc))
            await self._emit_error(self.error)
            await self._transition(ConversationState.COMPLETE)

    async def _release_inputs(self) -> None:
        if self._released:
            return
        self._released = True
        await self._capture.stop()
        await self._synthesizer.cancel()
        await self._devices.release()

    # ------------------------------------------------------------------ #
    # helpers

    def _require(self, state: ConversationState) -> None:
        if self.state is not state:
            raise InvalidTransitionError(
                f"Expected conversation state {state.value}, found {self.state.value}"
            )

    async def _transition(self, target: ConversationState) -> None:
        if target is self.state:
            return
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(f"{self.state.value} -> {target.value} is not allowed")
        previous, self.state = self.state, target
        logger.info("conversation_state", previous=previous.value, state=target.value)
        await self._emit("state", {"state": target.value, "previous": previous.value})

    async def _emit(self, event: str, data: Dict[str, Any]) -> None:
        if self._sink is not None:
            await self._sink(event, data)

    async def _emit_error(self, error: HireMindError) -> None:
        await self._emit("error", {
            "code": error.code,
            "message": error.message,
            "retryable": error.retryable,
        })
