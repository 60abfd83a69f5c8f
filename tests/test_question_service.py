# tests/test_question_service.py
import pytest

from hiremind.application.interview_session import (
    DEFAULT_QUESTION,
    Difficulty,
    InterviewSession,
)
from hiremind.core.exceptions import PersistenceError, QuestionGenerationError
from hiremind.core.interfaces import QuestionGenerator
from hiremind.managers.questions import QuestionService, question_hash
from hiremind.storage.sessions import InMemorySessionStore


class ListGenerator(QuestionGenerator):
    def __init__(self, *questions):
        self.questions = list(questions)
        self.calls = 0

    async def generate_question(self, session, index, history):
        self.calls += 1
        item = self.questions.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class BrokenHistoryStore(InMemorySessionStore):
    async def find_asked_question(self, user_id, question_hash):
        raise PersistenceError("history table missing")


def make_session(user_id="u1"):
    return InterviewSession(id="s1", user_id=user_id, interview_type="technical",
                            difficulty=Difficulty.INTERMEDIATE, question_count=6)


def test_question_hash_ignores_case_and_spacing():
    assert question_hash("Tell me  about\nyourself") == question_hash("  tell me about yourself ")
    assert question_hash("Tell me about yourself") != question_hash("Tell me about your team")


@pytest.mark.asyncio
async def test_new_question_is_recorded(fast_settings):
    store = InMemorySessionStore()
    service = QuestionService(ListGenerator("What is a closure?"), store, fast_settings)

    question = await service.next_question(make_session(), 2, [])

    assert question == "What is a closure?"
    asked = await store.find_asked_question("u1", question_hash(question))
    assert asked.times_asked == 1


@pytest.mark.asyncio
async def test_repeated_question_is_regenerated(fast_settings):
    store = InMemorySessionStore()
    await store.record_asked_question("u1", question_hash("What is a closure?"), "What is a closure?")
    generator = ListGenerator("What is a closure?", "How does the event loop work?")
    service = QuestionService(generator, store, fast_settings)

    question = await service.next_question(make_session(), 2, [])

    assert question == "How does the event loop work?"
    assert generator.calls == 2


@pytest.mark.asyncio
async def test_important_question_may_repeat(fast_settings):
    store = InMemorySessionStore()
    digest = question_hash("Why do you want this job?")
    await store.record_asked_question("u1", digest, "Why do you want this job?")
    store.asked[("u1", digest)].is_important = True
    service = QuestionService(ListGenerator("Why do you want this job?"), store, fast_settings)

    question = await service.next_question(make_session(), 3, [])

    assert question == "Why do you want this job?"
    assert store.asked[("u1", digest)].times_asked == 2


@pytest.mark.asyncio
async def test_history_is_per_user(fast_settings):
    store = InMemorySessionStore()
    await store.record_asked_question("someone-else", question_hash("What is a closure?"), "What is a closure?")
    service = QuestionService(ListGenerator("What is a closure?"), store, fast_settings)

    assert await service.next_question(make_session("u1"), 2, []) == "What is a closure?"


@pytest.mark.asyncio
async def test_fallback_after_attempt_cap(fast_settings):
    store = InMemorySessionStore()
    await store.record_asked_question("u1", question_hash("Same again?"), "Same again?")
    generator = ListGenerator(
        QuestionGenerationError("timeout"), "Same again?", QuestionGenerationError("timeout"),
        "Same again?", "Same again?", "Never reached?",
    )
    service = QuestionService(generator, store, fast_settings)

    question = await service.next_question(make_session(), 4, [])

    assert question == DEFAULT_QUESTION
    assert generator.calls == fast_settings.QUESTION_MAX_ATTEMPTS


@pytest.mark.asyncio
async def test_history_lookup_failure_uses_question(fast_settings):
    service = QuestionService(ListGenerator("Describe a conflict."), BrokenHistoryStore(), fast_settings)

    assert await service.next_question(make_session(), 2, []) == "Describe a conflict."
