import json

import pytest

from interview_engine.interview.errors import StaleSessionError
from interview_engine.interview.models import DifficultyState, InterviewSession, InterviewStatus, Question, ResponseRecord
from interview_engine.interview.profiles import CandidateProfile, LocalProfileStore
from interview_engine.interview.repository import JsonFileSessionRepository, LocalSessionRepository


def _session(owner_id: str = "u1", started_at: float = 100.0, interview_type: str = "technical") -> InterviewSession:
    return InterviewSession(
        owner_id=owner_id,
        interview_type=interview_type,
        personality="professional",
        difficulty=DifficultyState(),
        total_questions=3,
        responses=[ResponseRecord(index=0, question=Question(text="Opening"))],
        started_at=started_at,
    )


@pytest.mark.asyncio
async def test_find_is_scoped_to_owner_and_returns_copies():
    repository = LocalSessionRepository()
    session = _session()
    await repository.insert(session)

    assert await repository.find(session.session_id, "someone-else") is None

    loaded = await repository.find(session.session_id, "u1")
    loaded.questions_answered = 99
    again = await repository.find(session.session_id, "u1")
    assert again.questions_answered == 0
    assert again.responses[0].question.text == "Opening"


@pytest.mark.asyncio
async def test_conditional_save_rejects_stale_status():
    repository = LocalSessionRepository()
    session = _session()
    await repository.insert(session)

    session.status = InterviewStatus.COMPLETED
    await repository.save(session, expected_status=InterviewStatus.IN_PROGRESS)

    with pytest.raises(StaleSessionError):
        await repository.save(session, expected_status=InterviewStatus.IN_PROGRESS)


@pytest.mark.asyncio
async def test_list_for_owner_sorts_newest_first_and_filters():
    repository = LocalSessionRepository()
    await repository.insert(_session(started_at=100.0))
    await repository.insert(_session(started_at=300.0, interview_type="hr"))
    await repository.insert(_session(started_at=200.0))
    await repository.insert(_session(owner_id="u2", started_at=400.0))

    rows = await repository.list_for_owner("u1")
    assert [row.started_at for row in rows] == [300.0, 200.0, 100.0]

    technical = await repository.list_for_owner("u1", interview_type="technical", limit=1)
    assert [row.started_at for row in technical] == [200.0]

    assert await repository.list_for_owner("u1", status="completed") == []


@pytest.mark.asyncio
async def test_json_file_repository_survives_reload(tmp_path):
    path = tmp_path / "sessions.json"
    repository = JsonFileSessionRepository(path)
    session = _session()
    await repository.insert(session)

    assert json.loads(path.read_text(encoding="utf-8"))[session.session_id]["status"] == "in-progress"
    assert not path.with_suffix(".tmp").exists()

    reloaded = JsonFileSessionRepository(path)
    found = await reloaded.find(session.session_id, "u1")
    assert found is not None
    assert found.status == InterviewStatus.IN_PROGRESS


@pytest.mark.asyncio
async def test_json_file_repository_starts_empty_on_corrupt_file(tmp_path):
    path = tmp_path / "sessions.json"
    path.write_text("{not json", encoding="utf-8")

    repository = JsonFileSessionRepository(path)

    assert await repository.list_for_owner("u1") == []


@pytest.mark.asyncio
async def test_profile_store_defaults_and_copies():
    store = LocalProfileStore()
    assert (await store.get_profile("u1")).preferred_difficulty == "medium"

    profile = CandidateProfile(experience_years=4, skills=["python"], preferred_difficulty="hard")
    await store.set_profile("u1", profile)
    profile.skills.append("mutated")

    loaded = await store.get_profile("u1")
    assert loaded.skills == ["python"]
    assert loaded.preferred_difficulty == "hard"
