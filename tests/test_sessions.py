# tests/test_sessions.py
import pytest

from doubles import sample_result
from hiremind.application.interview_session import (
    CandidateProfile,
    CustomScenario,
    Difficulty,
    QuestionTurn,
    SessionRequest,
    SessionStatus,
)
from hiremind.core.exceptions import DuplicateTurnError, SessionNotFoundError
from hiremind.storage.database import Database
from hiremind.storage.sessions import InMemorySessionStore, SqlSessionStore


async def sql_store():
    database = Database("sqlite+aiosqlite://")
    await database.init()
    return SqlSessionStore(database)


async def memory_store():
    return InMemorySessionStore()


STORES = [sql_store, memory_store]

REQUEST = SessionRequest(
    user_id="u1",
    interview_type="custom",
    duration_minutes=20,
    difficulty=Difficulty.PRO,
    custom_scenario=CustomScenario("Staff engineer loop", goals=["Lead"], focus_areas=["Design"]),
    candidate_profile=CandidateProfile(career_stage="professional", years_of_experience=7),
)


@pytest.mark.asyncio
@pytest.mark.parametrize("make_store", STORES)
async def test_session_round_trip(make_store):
    store = await make_store()
    session_id = await store.create_session(REQUEST, 14)

    session = await store.get_session(session_id)

    assert session.question_count == 14
    assert session.difficulty is Difficulty.PRO
    assert session.status is SessionStatus.IN_PROGRESS
    assert session.custom_scenario.focus_areas == ["Design"]
    assert session.candidate_profile.years_of_experience == 7


@pytest.mark.asyncio
@pytest.mark.parametrize("make_store", STORES)
async def test_turns_ordered_and_unique(make_store):
    store = await make_store()
    session_id = await store.create_session(REQUEST, 14)

    await store.save_turn(session_id, QuestionTurn(2, "Q2?", "[SKIPPED]", skipped=True))
    await store.save_turn(session_id, QuestionTurn(1, "Q1?", "An answer."))
    with pytest.raises(DuplicateTurnError):
        await store.save_turn(session_id, QuestionTurn(1, "Q1?", "Another answer."))

    turns = await store.get_turns(session_id)
    assert [t.index for t in turns] == [1, 2]
    assert turns[0].answer == "An answer."
    assert turns[1].skipped is True
    assert (await store.get_session(session_id)).current_index == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("make_store", STORES)
async def test_result_upsert_and_completion(make_store):
    store = await make_store()
    session_id = await store.create_session(REQUEST, 14)
    assert await store.get_result(session_id) is None

    await store.save_result(session_id, sample_result(60))
    await store.save_result(session_id, sample_result(72))
    await store.mark_complete(session_id)

    result = await store.get_result(session_id)
    assert result.overall_score == 72
    assert result.strengths == ["Clear structure"]
    assert (await store.get_session(session_id)).status is SessionStatus.COMPLETED


@pytest.mark.asyncio
@pytest.mark.parametrize("make_store", STORES)
async def test_unknown_session(make_store):
    store = await make_store()

    with pytest.raises(SessionNotFoundError):
        await store.get_session("missing")
    with pytest.raises(SessionNotFoundError):
        await store.save_turn("missing", QuestionTurn(1, "Q?", "A."))


@pytest.mark.asyncio
@pytest.mark.parametrize("make_store", STORES)
async def test_asked_question_history(make_store):
    store = await make_store()

    assert await store.find_asked_question("u1", "abc") is None
    await store.record_asked_question("u1", "abc", "What is a closure?")
    await store.record_asked_question("u1", "abc", "What is a closure?")

    asked = await store.find_asked_question("u1", "abc")
    assert asked.times_asked == 2
    assert asked.is_important is False
    assert await store.find_asked_question("u2", "abc") is None
