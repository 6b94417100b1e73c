"""
Tests the TelemetryLog and its event vocabulary
"""

import pytest
from pydantic import ValidationError

from CopilotSync.runtime import (
    TELEMETRY_SCHEMA_VERSION,
    DiffCancelledEvent,
    EventType,
    ReplyClassifiedEvent,
    SessionStartedEvent,
    TelemetryLog,
)


def test_vocabulary_is_closed_and_stable():
    assert TELEMETRY_SCHEMA_VERSION == "1"
    assert {e.value for e in EventType} == {
        "session_started",
        "session_saved",
        "session_ended",
        "session_cancelled",
        "session_save_failed",
        "copilot_chat_reply",
        "copilot_diff_open",
        "copilot_diff_apply",
        "copilot_diff_cancel",
        "copilot_tour_start",
        "copilot_tour_finish",
        "copilot_layout_resize",
    }


def test_events_reject_unknown_fields():
    with pytest.raises(ValidationError):
        DiffCancelledEvent(decision_id="d1", surprise=True)


def test_emit_numbers_and_fans_out():
    log = TelemetryLog()
    received = []
    remove = log.add_sink(received.append)
    log.emit(SessionStartedEvent(session_id="s1", entity_type="form", entity_id="u"))
    log.emit(ReplyClassifiedEvent(has_code=False))
    assert [e.sequence for e in log.events] == [1, 2]
    assert len(received) == 2
    remove()
    log.emit(DiffCancelledEvent(decision_id="d1"))
    assert len(received) == 2
    assert log.summary()["event_types"] == {
        "session_started": 1,
        "copilot_chat_reply": 1,
        "copilot_diff_cancel": 1,
    }
    assert [e.event_type for e in log.query_by_session("s1")] == [EventType.SESSION_STARTED]
    assert log.latest(1)[0].event_type is EventType.DIFF_CANCELLED


def test_failing_sink_does_not_break_emit():
    log = TelemetryLog()

    def broken(event):
        raise RuntimeError("analytics offline")

    log.add_sink(broken)
    event = log.emit(DiffCancelledEvent(decision_id="d1"))
    assert event.sequence == 1


def test_jsonl_output_roundtrip(tmp_path):
    log = TelemetryLog(output_dir=tmp_path)
    log.emit(SessionStartedEvent(session_id="s1", entity_type="form", entity_id="u", field="bio"))
    rows = TelemetryLog.load(tmp_path / "telemetry.jsonl")
    assert rows[0]["event_type"] == "session_started"
    assert rows[0]["schema_version"] == "1"
    assert rows[0]["field"] == "bio"


def test_in_memory_log_is_bounded():
    log = TelemetryLog(max_events=3)
    for i in range(5):
        log.emit(DiffCancelledEvent(decision_id=str(i)))
    assert [e.decision_id for e in log.events] == ["2", "3", "4"]
