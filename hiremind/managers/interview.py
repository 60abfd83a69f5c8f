import json
import re
from typing import Any, Dict, List, Optional

import structlog
from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from ..application.interview_session import (
    AnalysisResult,
    BehavioralMetrics,
    InterviewSession,
    ParsedResume,
    QuestionTurn,
    TurnCompletion,
)
from ..core.config import Settings, get_settings
from ..core.exceptions import AnalysisError, QuestionGenerationError, ResumeParseError
from ..core.interfaces import Analyzer, QuestionGenerator, TurnClassifier
from . import prompts

logger = structlog.get_logger(__name__)

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")


def extract_json(text: str) -> Any:
    """Parse the JSON object or array in an LLM reply, tolerating markdown fences and chatter."""
    cleaned = _FENCE.sub("", text.strip()).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass
    starts = [i for i in (cleaned.find("{"), cleaned.find("[")) if i >= 0]
    if not starts:
        raise ValueError(f"No JSON found in model output: {cleaned[:100]}")
    start = min(starts)
    end = max(cleaned.rfind("}"), cleaned.rfind("]"))
    if end <= start:
        raise ValueError(f"Unterminated JSON in model output: {cleaned[:100]}")
    return json.loads(cleaned[start:end + 1])


class OpenAIInterviewManager(QuestionGenerator, TurnClassifier, Analyzer):
    """LLM-backed interviewer: asks questions, judges turn completion and grades the interview.

    Works against any OpenAI-compatible chat completions endpoint; set
    OPENAI_BASE_URL to point it at Groq or a local server.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[AsyncOpenAI] = None):
        self.settings = settings or get_settings()
        self.client = client or AsyncOpenAI(
            api_key=self.settings.OPENAI_API_KEY,
            base_url=self.settings.OPENAI_BASE_URL or None,
            timeout=self.settings.LLM_TIMEOUT_SECONDS,
        )
        self.model = self.settings.AI_MODEL

    async def _complete(self, prompt: str, *, temperature: float, max_tokens: int) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return (response.choices[0].message.content or "").strip()

    async def generate_question(self,
                                session: InterviewSession,
                                index: int,
                                history: List[Dict[str, Any]]) -> str:
        """Generate the next interview question based on the session and previous answers."""
        prompt = prompts.question_prompt(session, index, history)
        try:
            text = await self._complete(prompt, temperature=0.8, max_tokens=150)
        except OpenAIError as e:
            raise QuestionGenerationError(f"Question generation failed: {e}") from e

        question = text.strip().strip('"').strip()
        if not question:
            raise QuestionGenerationError("Model returned an empty question")
        return question

    async def classify(self, transcript: str, question: str) -> TurnCompletion:
        if not transcript or not transcript.strip():
            return TurnCompletion.undecided("Empty transcript")

        prompt = prompts.turn_detection_prompt(transcript, question)
        try:
            text = await self._complete(prompt, temperature=0.3, max_tokens=200)
            data = extract_json(text)
            completion = TurnCompletion(
                is_complete=bool(data.get("is_complete", data.get("isComplete", False))),
                confidence=float(data.get("confidence", 0.0)),
                reasoning=str(data.get("reasoning", "")),
            )
        except OpenAIError as e:
            logger.warning("turn_detection_failed", error=str(e))
            return TurnCompletion.undecided("Error analyzing transcript")
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("turn_detection_unparsable", error=str(e))
            return TurnCompletion.undecided("Unreadable classifier output")

        logger.debug("turn_detection", transcript=transcript[:50], is_complete=completion.is_complete,
                     confidence=completion.confidence)
        return completion

    async def analyze(self,
                      session: InterviewSession,
                      turns: List[QuestionTurn],
                      skipped_count: int,
                      metrics: Optional[BehavioralMetrics] = None) -> AnalysisResult:
        answered = [t for t in turns if t.answered]
        prompt = prompts.analysis_prompt(session, answered)
        try:
            text = await self._complete(prompt, temperature=0.3, max_tokens=1500)
        except OpenAIError as e:
            raise AnalysisError(f"Analysis request failed: {e}") from e

        try:
            data = extract_json(text)
            return AnalysisResult.model_validate(data)
        except (ValueError, ValidationError) as e:
            logger.warning("analysis_unparsable", output=text[:200])
            raise AnalysisError(f"Failed to parse analysis: {e}") from e

    async def generate_model_answers(self, turns: List[QuestionTurn]) -> List[Dict[str, Any]]:
        """Model answers for every asked question. Empty when the model cannot provide them."""
        if not turns:
            return []
        try:
            text = await self._complete(prompts.model_answer_prompt(turns), temperature=0.5, max_tokens=2000)
            data = extract_json(text)
        except (OpenAIError, ValueError) as e:
            logger.warning("model_answers_failed", error=str(e))
            return []

        if not isinstance(data, list):
            return []
        answers = []
        for item in data:
            if not isinstance(item, dict):
                continue
            number = item.get("question_number", item.get("questionNumber"))
            answer = item.get("probable_answer", item.get("probableAnswer"))
            if number is None or not answer:
                continue
            try:
                answers.append({"question_number": int(number), "probable_answer": str(answer)})
            except (TypeError, ValueError):
                continue
        return answers

    async def parse_resume(self, text: str) -> ParsedResume:
        """Structured skills, experience and education from plain resume text."""
        if not text or not text.strip():
            raise ResumeParseError("Resume is empty")
        try:
            reply = await self._complete(prompts.resume_prompt(text), temperature=0.2, max_tokens=2000)
        except OpenAIError as e:
            raise ResumeParseError(f"Resume parsing request failed: {e}") from e

        try:
            resume = ParsedResume.model_validate(extract_json(reply))
        except (ValueError, ValidationError) as e:
            logger.warning("resume_unparsable", output=reply[:200])
            raise ResumeParseError(f"Failed to parse resume: {e}") from e
        logger.info("resume_parsed", skills=len(resume.skills), jobs=len(resume.experience))
        return resume
