import base64

import pytest

from conftest import RateLimitedClient
from interview_engine.interview.models import InterviewStatus
from interview_engine.interview.state_machine import StartRequest
from interview_engine.realtime.session_adapter import MAX_AUDIO_CHUNKS, RealtimeSessionAdapter

OWNER = "pytest-user"


class EventSink:
    def __init__(self):
        self.events: list[dict] = []

    async def __call__(self, payload: dict) -> None:
        self.events.append(payload)

    @property
    def types(self) -> list[str]:
        return [item["type"] for item in self.events]

    def of_type(self, event_type: str) -> list[dict]:
        return [item for item in self.events if item["type"] == event_type]


def _adapter(services, sink: EventSink) -> RealtimeSessionAdapter:
    return RealtimeSessionAdapter(
        state_machine=services.state_machine,
        speech=services.speech,
        owner_id=OWNER,
        send=sink,
        connection_id="conn-1",
    )


async def _start(services, total_questions: int = 3) -> str:
    result = await services.state_machine.start(OWNER, StartRequest(interview_type="technical", total_questions=total_questions))
    return result.session.session_id


@pytest.mark.asyncio
async def test_join_in_progress_session(build_services, scripted_client):
    services = build_services([scripted_client])
    session_id = await _start(services)
    sink = EventSink()
    adapter = _adapter(services, sink)

    await adapter.handle({"type": "join-interview", "sessionId": session_id})

    assert sink.types == ["interview-joined"]
    joined = sink.events[0]
    assert joined["session_id"] == session_id
    assert joined["current_question"]["index"] == 0
    assert adapter.session_id == session_id


@pytest.mark.asyncio
async def test_join_completed_session_emits_only_terminal_event(build_services, scripted_client):
    services = build_services([scripted_client])
    session_id = await _start(services)
    await services.state_machine.end(session_id, OWNER)
    sink = EventSink()
    adapter = _adapter(services, sink)

    await adapter.handle({"type": "join-interview", "session_id": session_id})

    assert sink.types == ["interview-already-complete"]
    assert sink.events[0]["status"] == "completed"
    assert "current_question" not in sink.events[0]
    assert adapter.session_id is None


@pytest.mark.asyncio
async def test_join_unknown_session_reports_error_kind(build_services, scripted_client):
    services = build_services([scripted_client])
    sink = EventSink()

    await _adapter(services, sink).handle({"type": "join-interview", "session_id": "nope"})

    assert sink.events == [
        {"type": "error", "message": "Interview session not found", "error_type": "session", "kind": "session_not_found"}
    ]


@pytest.mark.asyncio
async def test_submit_answer_event_sequence(build_services, scripted_client):
    services = build_services([scripted_client])
    session_id = await _start(services)
    sink = EventSink()
    adapter = _adapter(services, sink)
    await adapter.handle({"type": "join-interview", "session_id": session_id})

    await adapter.handle({"type": "submit-answer", "answer": "Two pointers moving at different speeds."})

    assert sink.types == [
        "interview-joined",
        "answer-processing",
        "answer-processing",
        "answer-evaluated",
        "next-question",
    ]
    assert [item["status"] for item in sink.of_type("answer-processing")] == ["evaluating", "generating-question"]
    evaluated = sink.of_type("answer-evaluated")[0]
    assert evaluated["scores"]["overall"] == 70
    assert evaluated["scores"]["presence"]["feedback"] == "No camera data available"
    next_question = sink.of_type("next-question")[0]
    assert next_question["index"] == 1
    assert next_question["question_type"] == "open-ended"
    assert next_question["question"] == "How would you detect a cycle in a linked list?"


@pytest.mark.asyncio
async def test_final_answer_emits_interview_complete(build_services, scripted_client):
    services = build_services([scripted_client])
    session_id = await _start(services, total_questions=1)
    sink = EventSink()
    adapter = _adapter(services, sink)

    await adapter.handle({"type": "submit-answer", "session_id": session_id, "answer": "done"})

    assert sink.types[-1] == "interview-complete"
    assert "next-question" not in sink.types
    assert sink.events[-1]["overall_scores"]["overall"] == 70


@pytest.mark.asyncio
async def test_provider_exhaustion_emits_recoverable_rate_limit_and_continues(build_services):
    services = build_services([RateLimitedClient()])
    session_id = await _start(services)
    sink = EventSink()
    adapter = _adapter(services, sink)

    await adapter.handle({"type": "submit-answer", "session_id": session_id, "answer": "A stack is LIFO."})

    assert sink.types[-3:] == ["answer-evaluated", "error", "next-question"]
    notice = sink.of_type("error")[0]
    assert notice["error_type"] == "rate_limit"
    assert notice["recoverable"] is True
    assert notice["retryAfter"] == 7
    assert sink.of_type("answer-evaluated")[0]["scores"]["overall"] == 65


@pytest.mark.asyncio
async def test_unconfigured_provider_falls_back_without_rate_limit_notice(build_services):
    services = build_services([])
    session_id = await _start(services)
    sink = EventSink()
    adapter = _adapter(services, sink)

    await adapter.handle({"type": "submit-answer", "session_id": session_id, "answer": "A stack is LIFO."})

    assert "error" not in sink.types
    assert sink.types[-2:] == ["answer-evaluated", "next-question"]
    assert sink.of_type("next-question")[0]["question_type"] == "technical"


@pytest.mark.asyncio
async def test_unexpected_submit_failure_is_reported_as_server_error(build_services, scripted_client, monkeypatch):
    services = build_services([scripted_client])
    session_id = await _start(services)
    sink = EventSink()
    adapter = _adapter(services, sink)

    async def explode(*args, **kwargs):
        raise RuntimeError("RESOURCE_EXHAUSTED: quota")

    monkeypatch.setattr(services.state_machine, "submit_answer", explode)

    await adapter.handle({"type": "submit-answer", "session_id": session_id, "answer": "anything"})

    assert sink.types == ["error"]
    assert sink.events[0]["error_type"] == "server"
    assert "retryAfter" not in sink.events[0]


@pytest.mark.asyncio
async def test_stale_question_index_auto_completes(build_services, scripted_client):
    services = build_services([scripted_client])
    session_id = await _start(services)
    session = await services.repository.find(session_id, OWNER)
    session.current_question_index = 7
    await services.repository.save(session)
    sink = EventSink()

    await _adapter(services, sink).handle({"type": "submit-answer", "session_id": session_id, "answer": "late"})

    assert sink.types == ["interview-complete"]
    stored = await services.repository.find(session_id, OWNER)
    assert stored.status == InterviewStatus.COMPLETED
    assert stored.current_question_index == len(stored.responses)


@pytest.mark.asyncio
async def test_audio_chunks_are_transcribed_and_used_for_next_answer(build_services, scripted_client):
    services = build_services([scripted_client])
    session_id = await _start(services)
    sink = EventSink()
    adapter = _adapter(services, sink)
    await adapter.handle({"type": "join-interview", "session_id": session_id})

    chunk = base64.b64encode(b"\x00\x01" * 400).decode("ascii")
    await adapter.handle({"type": "audio-stream", "audio_chunk": chunk})
    await adapter.add_audio_chunk(b"\x02\x03" * 400)
    await adapter.handle({"type": "audio-complete"})

    assert [item["chunks_received"] for item in sink.of_type("audio-received")] == [1, 2]
    transcription = sink.of_type("transcription-complete")[0]
    assert transcription["transcription"].startswith("This is a mock transcription")
    assert adapter.audio_buffer == []

    await adapter.handle({"type": "submit-answer", "answer": ""})

    stored = await services.repository.find(session_id, OWNER)
    assert stored.responses[0].answer.text.startswith("This is a mock transcription")
    assert stored.responses[0].voice_analysis.words_per_minute == 145
    assert adapter.last_voice_analysis is None


@pytest.mark.asyncio
async def test_audio_complete_without_chunks(build_services, scripted_client):
    sink = EventSink()

    await _adapter(build_services([scripted_client]), sink).handle({"type": "audio-complete"})

    assert sink.events == [{"type": "transcription-error", "message": "No audio data received"}]


@pytest.mark.asyncio
async def test_audio_buffer_is_bounded(build_services, scripted_client):
    sink = EventSink()
    adapter = _adapter(build_services([scripted_client]), sink)
    adapter.audio_buffer = [b"x"] * MAX_AUDIO_CHUNKS

    await adapter.add_audio_chunk(b"y")

    assert len(adapter.audio_buffer) == MAX_AUDIO_CHUNKS
    assert sink.events[-1]["error_type"] == "audio"


@pytest.mark.asyncio
async def test_pause_resume_leave_and_ping(build_services, scripted_client):
    services = build_services([scripted_client])
    session_id = await _start(services)
    sink = EventSink()
    adapter = _adapter(services, sink)
    await adapter.handle({"type": "join-interview", "session_id": session_id})
    adapter.audio_buffer.append(b"pending")

    await adapter.handle({"type": "pause-interview"})
    await adapter.handle({"type": "pause-interview"})
    await adapter.handle({"type": "resume-interview"})
    await adapter.handle({"type": "ping"})
    await adapter.handle({"type": "leave-interview"})

    assert sink.types == [
        "interview-joined",
        "interview-paused",
        "error",
        "interview-resumed",
        "pong",
        "interview-left",
    ]
    assert sink.of_type("error")[0]["kind"] == "not_in_progress"
    assert adapter.session_id is None
    assert adapter.audio_buffer == []


@pytest.mark.asyncio
async def test_unknown_message_type(build_services, scripted_client):
    sink = EventSink()

    await _adapter(build_services([scripted_client]), sink).handle({"type": "dance"})

    assert sink.events[0]["error_type"] == "protocol"
    assert "dance" in sink.events[0]["message"]
