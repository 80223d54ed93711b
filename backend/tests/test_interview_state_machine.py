import pytest

from conftest import QUESTION_REPLY, RateLimitedClient, ScriptedAIClient, evaluation_with
from interview_engine.interview.errors import InterviewSessionError, SessionErrorKind
from interview_engine.interview.fallback_content import OPENING_QUESTIONS, QUESTION_POOLS, SKIPPED_ANSWER_MARKER
from interview_engine.interview.models import InterviewStatus
from interview_engine.interview.profiles import CandidateProfile
from interview_engine.interview.state_machine import PresenceInput, StartRequest
from interview_engine.system_metrics import get_metrics_snapshot

OWNER = "pytest-user"


@pytest.mark.asyncio
async def test_start_uses_generated_opening_question(build_services, scripted_client):
    services = build_services([scripted_client])

    result = await services.state_machine.start(OWNER, StartRequest(interview_type="technical", total_questions=3))

    payload = result.to_dict()
    assert payload["current_question"]["question"] == QUESTION_REPLY["content"]
    assert payload["current_question"]["progress"] == {"current": 1, "total": 3}
    assert payload["difficulty"] == "medium"
    assert payload["provider_notice"] is None
    assert await services.conversations.has_session(result.session.session_id)


@pytest.mark.asyncio
async def test_start_rejects_unknown_interview_type(build_services, scripted_client):
    services = build_services([scripted_client])

    with pytest.raises(InterviewSessionError) as excinfo:
        await services.state_machine.start(OWNER, StartRequest(interview_type="astrology"))

    assert excinfo.value.kind == SessionErrorKind.INVALID_REQUEST


@pytest.mark.asyncio
async def test_start_applies_profile_defaults(build_services, scripted_client):
    services = build_services([scripted_client])
    await services.profiles.set_profile(OWNER, CandidateProfile(preferred_difficulty="hard", voice_enabled=False))

    result = await services.state_machine.start(OWNER, StartRequest(interview_type="hr"))

    assert result.session.difficulty.current == "hard"
    assert result.session.voice_enabled is False
    assert result.session.total_questions == 10


@pytest.mark.asyncio
async def test_fallback_interview_when_no_provider_configured(build_services):
    services = build_services([])
    machine = services.state_machine

    started = await machine.start(OWNER, StartRequest(interview_type="technical", total_questions=3))

    assert started.question.question.text == OPENING_QUESTIONS["technical"]["text"]
    assert started.question.question.question_type == "technical"
    assert started.session.status == InterviewStatus.IN_PROGRESS
    assert started.provider_notice is None

    result = await machine.submit_answer(started.session.session_id, OWNER, "A stack is LIFO, a queue is FIFO.")

    assert result.response.scores.overall == 65
    assert result.evaluation.is_fallback is True
    assert result.provider_notice is None
    assert result.next_question.question.text == QUESTION_POOLS["technical"][1]
    assert result.next_question.index == 1
    assert get_metrics_snapshot()["ai_fallbacks_total"] == 3


@pytest.mark.asyncio
async def test_rate_limited_provider_records_notice(build_services):
    services = build_services([RateLimitedClient()])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="hr", total_questions=3))

    result = await services.state_machine.submit_answer(started.session.session_id, OWNER, "I led the migration.")

    assert started.provider_notice.retry_after_sec == 7
    assert result.provider_notice.retry_after_sec == 7
    assert result.response.scores.overall == 65
    assert result.to_dict()["provider_notice"]["retry_after_sec"] == 7


@pytest.mark.asyncio
async def test_answer_is_scored_and_next_question_appended(build_services, scripted_client):
    services = build_services([scripted_client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="technical", total_questions=3))
    stages = []

    async def on_stage(stage):
        stages.append(stage)

    result = await services.state_machine.submit_answer(
        started.session.session_id,
        OWNER,
        "Use Floyd's tortoise and hare.",
        on_stage=on_stage,
    )

    assert stages == ["evaluating", "generating-question"]
    assert result.response.scores.overall == 70
    assert result.is_complete is False
    assert result.follow_up_generated is False
    assert result.to_dict()["progress"]["answered"] == 1
    assert result.session.current_question_index == 1
    assert result.response.topics_missed == ["complexity"]


@pytest.mark.asyncio
async def test_low_score_with_follow_up_request_inserts_follow_up(build_services):
    client = ScriptedAIClient(evaluations=[evaluation_with(50, follow_up=True)])
    services = build_services([client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="technical", total_questions=3))

    result = await services.state_machine.submit_answer(started.session.session_id, OWNER, "Not sure, maybe a loop?")

    assert result.follow_up_generated is True
    follow_up = result.next_question.question
    assert follow_up.is_follow_up is True
    assert follow_up.question_type == "follow-up"
    assert follow_up.text == "What is the space complexity of your approach?"
    assert result.response.follow_up == follow_up

    answered = await services.state_machine.submit_answer(started.session.session_id, OWNER, "Constant space.")
    assert answered.response.index == 1
    assert answered.response.question.is_follow_up is True


@pytest.mark.asyncio
async def test_follow_up_not_generated_at_or_above_threshold(build_services):
    client = ScriptedAIClient(evaluations=[evaluation_with(70, follow_up=True)])
    services = build_services([client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="technical", total_questions=3))

    result = await services.state_machine.submit_answer(started.session.session_id, OWNER, "A decent answer")

    assert result.follow_up_generated is False
    assert "follow_up" not in client.kinds


@pytest.mark.asyncio
async def test_skipped_answer_scores_zero_without_ai_evaluation(build_services, scripted_client):
    services = build_services([scripted_client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="behavioral", total_questions=3))

    result = await services.state_machine.submit_answer(started.session.session_id, OWNER, SKIPPED_ANSWER_MARKER)

    assert result.skipped is True
    assert result.response.scores.overall == 0
    assert result.response.answer.skipped is True
    assert result.response.weaknesses == ["No answer was provided for this question."]
    assert "evaluation" not in scripted_client.kinds


@pytest.mark.asyncio
async def test_difficulty_rises_after_two_strong_answers(build_services):
    client = ScriptedAIClient(evaluations=[evaluation_with(90), evaluation_with(92)])
    services = build_services([client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="technical", total_questions=4))
    session_id = started.session.session_id

    first = await services.state_machine.submit_answer(session_id, OWNER, "Great answer one")
    second = await services.state_machine.submit_answer(session_id, OWNER, "Great answer two")

    assert first.difficulty_changed is False
    assert second.difficulty_changed is True
    assert second.new_difficulty == "hard"
    assert second.difficulty_reason == "Excellent performance, increasing challenge"
    assert second.next_question.question.difficulty == "hard"
    assert second.session.difficulty.adjustments[0].question_index == 1


@pytest.mark.asyncio
async def test_final_answer_completes_session(build_services, scripted_client):
    services = build_services([scripted_client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="technical", total_questions=1))
    session_id = started.session.session_id

    result = await services.state_machine.submit_answer(session_id, OWNER, "Only answer")

    assert result.is_complete is True
    assert result.next_question is None
    assert result.session.status == InterviewStatus.COMPLETED
    assert result.session.current_question_index == 1
    assert result.session.overall_scores["overall"] == 70
    assert result.session.analytics["performance_trend"] == "not-enough-data"
    assert await services.conversations.has_session(session_id) is False

    with pytest.raises(InterviewSessionError) as excinfo:
        await services.state_machine.submit_answer(session_id, OWNER, "Another")
    assert excinfo.value.kind == SessionErrorKind.ALREADY_COMPLETED


@pytest.mark.asyncio
async def test_completion_is_idempotent(build_services, scripted_client):
    services = build_services([scripted_client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="hr", total_questions=5))
    session_id = started.session.session_id

    ended = await services.state_machine.end(session_id, OWNER)
    completed_at = ended.session.completed_at

    again = await services.state_machine.force_complete(session_id, OWNER)
    assert again.newly_completed is False
    assert again.session.completed_at == completed_at
    assert get_metrics_snapshot()["interviews_completed_total"] == 1

    with pytest.raises(InterviewSessionError) as excinfo:
        await services.state_machine.end(session_id, OWNER)
    assert excinfo.value.kind == SessionErrorKind.ALREADY_COMPLETED


@pytest.mark.asyncio
async def test_stale_write_after_completion_is_rejected(build_services, scripted_client):
    services = build_services([scripted_client])
    machine = services.state_machine
    started = await machine.start(OWNER, StartRequest(interview_type="hr", total_questions=5))
    session_id = started.session.session_id

    stale_copy = await services.repository.find(session_id, OWNER)
    await machine.end(session_id, OWNER)

    with pytest.raises(InterviewSessionError) as excinfo:
        await machine._save(stale_copy, InterviewStatus.IN_PROGRESS)
    assert excinfo.value.kind == SessionErrorKind.CONCURRENT_UPDATE


@pytest.mark.asyncio
async def test_pause_blocks_answers_until_resume(build_services, scripted_client):
    services = build_services([scripted_client])
    machine = services.state_machine
    started = await machine.start(OWNER, StartRequest(interview_type="hr", total_questions=3))
    session_id = started.session.session_id

    paused = await machine.pause(session_id, OWNER)
    assert paused.status == InterviewStatus.PAUSED
    assert paused.paused_at is not None

    with pytest.raises(InterviewSessionError) as excinfo:
        await machine.submit_answer(session_id, OWNER, "answer")
    assert excinfo.value.kind == SessionErrorKind.NOT_IN_PROGRESS

    resumed = await machine.resume(session_id, OWNER)
    assert resumed.status == InterviewStatus.IN_PROGRESS
    assert resumed.paused_at is None

    with pytest.raises(InterviewSessionError) as excinfo:
        await machine.resume(session_id, OWNER)
    assert excinfo.value.kind == SessionErrorKind.NOT_PAUSED


@pytest.mark.asyncio
async def test_presence_is_reported_but_not_weighted(build_services, scripted_client):
    services = build_services([scripted_client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="hr", total_questions=2))

    result = await services.state_machine.submit_answer(
        started.session.session_id,
        OWNER,
        "answer",
        presence=PresenceInput(eye_contact_score=90, posture_score=80),
    )

    assert result.response.scores.presence.score == 85
    assert result.response.scores.overall == 70


@pytest.mark.asyncio
async def test_unknown_session_and_foreign_owner(build_services, scripted_client):
    services = build_services([scripted_client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="hr"))

    for session_id, owner in (("missing", OWNER), (started.session.session_id, "intruder")):
        with pytest.raises(InterviewSessionError) as excinfo:
            await services.state_machine.get_status(session_id, owner)
        assert excinfo.value.kind == SessionErrorKind.SESSION_NOT_FOUND
        assert excinfo.value.http_status == 404


@pytest.mark.asyncio
async def test_report_generates_summary_once(build_services, scripted_client):
    services = build_services([scripted_client])
    started = await services.state_machine.start(OWNER, StartRequest(interview_type="technical", total_questions=1))
    session_id = started.session.session_id
    await services.state_machine.submit_answer(session_id, OWNER, "x" * 300)

    first = await services.state_machine.report(session_id, OWNER)
    second = await services.state_machine.report(session_id, OWNER)

    assert first["summary"]["readinessScore"] == 72
    assert second["summary"] == first["summary"]
    assert scripted_client.kinds.count("summary") == 1
    assert first["performance_level"] == "good"
    assert first["responses"][0]["answer"] == "x" * 200 + "..."


@pytest.mark.asyncio
async def test_history_lists_owner_sessions(build_services, scripted_client):
    services = build_services([scripted_client])
    await services.state_machine.start(OWNER, StartRequest(interview_type="hr"))
    await services.state_machine.start(OWNER, StartRequest(interview_type="technical"))
    await services.state_machine.start("other", StartRequest(interview_type="technical"))

    rows = await services.state_machine.history(OWNER, interview_type="technical")

    assert len(rows) == 1
    assert rows[0]["status"] == "in-progress"
