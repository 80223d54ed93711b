import json
import logging

from core.logger import MAX_FIELD_CHARS, log_event


def _records(caplog):
    return [json.loads(record.getMessage()) for record in caplog.records if record.name == "interview_engine.events"]


def test_log_event_redacts_candidate_text(caplog):
    caplog.set_level(logging.INFO, logger="interview_engine.events")

    log_event("state_machine", "answer_evaluated", "s1", answer="my secret answer", audio=b"\x00" * 64, overall=70)

    payload = _records(caplog)[0]
    assert payload["component"] == "state_machine"
    assert payload["answer"] == {"redacted": True, "length": 16}
    assert payload["audio"] == {"bytes": 64}
    assert payload["overall"] == 70


def test_log_event_truncates_long_values_and_honours_level(caplog):
    caplog.set_level(logging.WARNING, logger="interview_engine.events")

    log_event("realtime", "ignored", "s1", note="x")
    log_event("realtime", "noisy", "s1", level=logging.WARNING, note="y" * (MAX_FIELD_CHARS + 50))

    records = _records(caplog)
    assert [item["event"] for item in records] == ["noisy"]
    assert records[0]["note"].endswith("...")
    assert len(records[0]["note"]) == MAX_FIELD_CHARS + 3
