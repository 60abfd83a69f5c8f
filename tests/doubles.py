"""In-process stand-ins for the controller's collaborators."""
import asyncio
from typing import Any, Callable, Dict, List, Optional

from hiremind.application.interview_session import AnalysisResult, ParsedResume, TurnCompletion
from hiremind.core.exceptions import (
    AnalysisError,
    PersistenceError,
    QuestionGenerationError,
    ResumeParseError,
    SynthesisError,
)
from hiremind.core.interfaces import (
    Analyzer,
    DevicePermissions,
    MediaDevices,
    Permission,
    QuestionGenerator,
    SpeechCapture,
    SpeechSynthesizer,
    TurnClassifier,
)
from hiremind.storage.sessions import InMemorySessionStore

SKIP = object()
FILLERS = ("um", "uh", "and", "because", "so")


def sample_result(overall: float = 80) -> AnalysisResult:
    return AnalysisResult(
        overall_score=overall,
        communication_score=75,
        technical_score=70,
        problem_solving_score=72,
        confidence_score=68,
        strengths=["Clear structure"],
        improvements=["Quantify impact"],
        detailed_feedback="Solid interview.",
    )


class FakeManager(QuestionGenerator, TurnClassifier, Analyzer):
    def __init__(self, *, question_failures: int = 0, analysis_failures: int = 0,
                 classify_delay: float = 0.0):
        self.question_failures = question_failures
        self.analysis_failures = analysis_failures
        self.classify_delay = classify_delay
        self.question_calls = 0
        self.classify_calls: List[str] = []
        self.analyze_calls: List[Dict[str, Any]] = []
        self.overall = 80

    async def generate_question(self, session, index, history):
        self.question_calls += 1
        if self.question_failures < 0 or self.question_calls <= self.question_failures:
            raise QuestionGenerationError("provider unavailable")
        return f"Question {index}: tell me about project {index}."

    async def classify(self, transcript, question):
        self.classify_calls.append(transcript)
        if self.classify_delay:
            await asyncio.sleep(self.classify_delay)
        words = transcript.lower().rstrip(".?! ").split()
        if not words or words[-1] in FILLERS:
            return TurnCompletion(False, 0.9, "trailing filler")
        return TurnCompletion(True, 0.95, "complete sentence")

    async def analyze(self, session, turns, skipped_count, metrics=None):
        self.analyze_calls.append({"turns": list(turns), "skipped": skipped_count})
        if self.analysis_failures < 0 or len(self.analyze_calls) <= self.analysis_failures:
            raise AnalysisError("analysis provider down")
        return sample_result(self.overall)

    async def generate_model_answers(self, turns):
        return [{"question_number": t.index, "probable_answer": f"Model answer {t.index}"} for t in turns]

    async def parse_resume(self, text):
        if "unreadable" in text:
            raise ResumeParseError("Failed to parse resume")
        return ParsedResume(
            skills=["Python", "PostgreSQL"],
            experience=[{"company": "Acme", "role": "Backend Engineer", "duration": "2021-2024"}],
            years_of_experience=3.5,
            summary="Backend engineer.",
        )


class FakeSynthesizer(SpeechSynthesizer):
    """mode: 'instant' finishes at once, 'hold' plays until cancelled, 'fail' raises."""

    def __init__(self, mode: str = "instant"):
        self.mode = mode
        self.spoken: List[str] = []
        self.cancel_calls = 0
        self._playing: Optional[asyncio.Event] = None

    async def speak(self, text):
        self.spoken.append(text)
        if self.mode == "fail":
            raise SynthesisError("no voice")
        if self.mode == "hold":
            self._playing = asyncio.Event()
            await self._playing.wait()
            return
        await asyncio.sleep(0)

    async def cancel(self):
        self.cancel_calls += 1
        if self._playing is not None:
            self._playing.set()


class ScriptedCapture(SpeechCapture):
    """Answers each turn from `respond(turn_number)` as soon as listening starts.

    `respond` may return text, SKIP, or None for silence.
    """

    def __init__(self, respond: Callable[[int], Any]):
        self.respond = respond
        self.controller = None
        self.turn = 0
        self.start_calls = 0
        self.stop_calls = 0
        self.active = False
        self._text = ""

    @property
    def transcript(self):
        return self._text

    @property
    def is_speech_detected(self):
        return False

    async def start(self):
        if self.active:
            return
        self.active = True
        self.start_calls += 1
        self.turn += 1
        answer = self.respond(self.turn)
        loop = asyncio.get_running_loop()
        if answer is SKIP:
            loop.call_soon(lambda: asyncio.ensure_future(self.controller.skip()))
        elif answer is not None:
            self._text = answer
            loop.call_soon(self.controller.handle_transcript, answer)

    async def stop(self):
        if not self.active:
            return
        self.active = False
        self.stop_calls += 1


class FakeDevices(MediaDevices):
    def __init__(self, microphone=Permission.GRANTED, camera=Permission.GRANTED):
        self.permissions = DevicePermissions(microphone, camera)
        self.acquire_calls = 0
        self.release_calls = 0

    async def check_permissions(self):
        return self.permissions

    async def acquire(self):
        self.acquire_calls += 1

    async def release(self):
        self.release_calls += 1


class RecordingStore(InMemorySessionStore):
    def __init__(self, save_failures: int = 0):
        super().__init__()
        self.save_failures = save_failures
        self.save_calls: List[int] = []

    async def save_turn(self, session_id, turn):
        self.save_calls.append(turn.index)
        if self.save_failures > 0:
            self.save_failures -= 1
            raise PersistenceError("database is locked")
        await super().save_turn(session_id, turn)


class EventLog:
    def __init__(self):
        self.events: List[tuple] = []

    async def __call__(self, event, data):
        self.events.append((event, data))

    def of(self, event) -> List[Dict[str, Any]]:
        return [data for name, data in self.events if name == event]

    def states(self) -> List[str]:
        return [data["state"] for data in self.of("state")]

    async def wait_for(self, event, predicate=lambda data: True, timeout: float = 3.0):
        async def poll():
            while True:
                for name, data in self.events:
                    if name == event and predicate(data):
                        return data
                await asyncio.sleep(0.005)

        return await asyncio.wait_for(poll(), timeout)
