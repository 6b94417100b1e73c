"""
Tests the SyncGate and reply ingestion
"""

import pytest

from CopilotSync.copilot import ReplyIngestor, ingest_reply
from CopilotSync.editing import (
    BufferStore,
    DecisionStatus,
    EditorBuffers,
    SyncGate,
    compute_field_diff,
    parse_reply,
)
from CopilotSync.runtime import EventType, TelemetryLog
from CopilotSync.storage import LocalUIState


TS_HTML_REPLY = "Updated.\n```typescript\nexport class B {}\n```\n```html\n<p>new</p>\n```"


@pytest.fixture
def gate(manager) -> SyncGate:
    manager.ensure_field("component", "btn", "html", "<p>old</p>")
    return SyncGate(manager=manager, entity_type="component", entity_id="btn")


def test_explain_only_reply_never_applies(gate):
    before = gate.store.version
    decision = gate.reconcile(parse_reply("Flexbox centers both axes."))
    assert not decision.apply
    assert decision.diff == []
    assert decision.explanation_text == "Flexbox centers both axes."
    assert gate.store.version == before


def test_code_reply_produces_per_field_diff(gate, telemetry):
    decision = gate.reconcile(parse_reply(TS_HTML_REPLY))
    assert decision.apply
    assert [d.field for d in decision.diff] == ["typescript", "html"]
    html = decision.get("html")
    assert html.before == "<p>old</p>" and html.after == "<p>new</p>"
    assert html.added_lines == 1 and html.removed_lines == 1
    assert "-<p>old</p>" in html.unified_diff and "+<p>new</p>" in html.unified_diff
    assert decision.changed_fields == ["typescript", "html"]
    assert not decision.has_conflicts
    assert gate.store.get("html") == "<p>old</p>"  # reconcile never writes
    opened = telemetry.query_by_type(EventType.DIFF_OPENED)
    assert opened[0].decision_id == decision.id


def test_identical_code_is_not_recommended(gate):
    decision = gate.reconcile(parse_reply("```html\n<p>old</p>\n```"))
    assert not decision.apply
    assert decision.diff[0].has_changes is False


def test_apply_writes_and_persists(gate, manager, persistence, telemetry):
    decision = gate.reconcile(parse_reply(TS_HTML_REPLY))
    result = gate.apply(decision)
    assert result.ok
    assert sorted(result.applied) == ["html", "typescript"]
    assert gate.store.get("html") == "<p>new</p>"
    assert persistence.get("component", "btn", "html") == "<p>new</p>"
    assert decision.status is DecisionStatus.APPLIED
    assert manager.get_active_sessions() == []
    applied = telemetry.query_by_type(EventType.DIFF_APPLIED)[0]
    assert sorted(applied.fields) == ["html", "typescript"]


def test_conflicting_manual_edit_is_held_back(gate, manager, scheduler):
    sid = manager.start_edit_session("component", "btn", field="html")
    manager.on_input(sid, "html", "<p>mine</p>")
    decision = gate.reconcile(parse_reply(TS_HTML_REPLY))
    assert decision.conflicts == ["html"]

    result = gate.apply(decision)
    assert result.applied == ["typescript"]
    assert result.skipped == {"html": "conflict"}
    scheduler.advance(0.3)
    assert gate.store.get("html") == "<p>mine</p>"


def test_force_overrides_conflict(gate, manager, scheduler):
    sid = manager.start_edit_session("component", "btn", field="html")
    manager.on_input(sid, "html", "<p>mine</p>")
    scheduler.advance(0.3)
    decision = gate.reconcile(parse_reply(TS_HTML_REPLY))
    result = gate.apply(decision, force=True)
    assert "html" in result.applied
    assert gate.store.get("html") == "<p>new</p>"


def test_stale_buffer_is_not_overwritten(gate, manager):
    decision = gate.reconcile(parse_reply(TS_HTML_REPLY))
    sid = manager.start_edit_session("component", "btn", auto_save=False)
    manager.record_change(sid, "html", "<p>old</p>", "<p>edited meanwhile</p>")
    manager.save_session(sid)
    manager.end_edit_session(sid)

    result = gate.apply(decision)
    assert result.skipped == {"html": "stale"}
    assert gate.store.get("html") == "<p>edited meanwhile</p>"


def test_apply_selected_fields_only(gate):
    decision = gate.reconcile(parse_reply(TS_HTML_REPLY))
    result = gate.apply(decision, fields=["typescript"])
    assert result.applied == ["typescript"]
    assert result.skipped == {"html": "not selected"}


def test_decision_applies_at_most_once(gate, telemetry):
    decision = gate.reconcile(parse_reply(TS_HTML_REPLY))
    assert gate.cancel(decision)
    assert decision.status is DecisionStatus.CANCELLED
    assert not gate.apply(decision).ok
    assert not gate.cancel(decision)
    assert len(telemetry.query_by_type(EventType.DIFF_CANCELLED)) == 1


def test_unbound_gate_writes_store_directly():
    store = BufferStore({"scss": "a{}"})
    gate = SyncGate(store)
    decision = gate.reconcile(parse_reply("```css\nb{}\n```"))
    gate.apply(decision)
    assert store.get("scss") == "b{}"


def test_compute_field_diff_counts_lines():
    diff = compute_field_diff("typescript", "a\nb\nc", "a\nc\nd\ne")
    assert diff.has_changes
    assert diff.added_lines == 2
    assert diff.removed_lines == 1
    assert diff.unified_diff.startswith("--- a/typescript")


def test_ingestor_classifies_and_records_history(gate, telemetry):
    ui_state = LocalUIState(telemetry=telemetry)
    ingestor = ReplyIngestor(gate, ui_state=ui_state)

    decision = ingestor.ingest(TS_HTML_REPLY, prompt="update it")
    assert decision.apply
    classified = telemetry.query_by_type(EventType.REPLY_CLASSIFIED)[0]
    assert classified.has_code and classified.buckets == ["typescript", "html"]
    assert ui_state.chat_history[-1].prompt == "update it"
    assert ui_state.chat_history[-1].has_code


def test_ingestor_explain_mode_never_applies(gate):
    decision = ReplyIngestor(gate).ingest(TS_HTML_REPLY, mode="explain")
    assert not decision.apply
    assert decision.parsed.has_code
    assert decision.explanation_text == "Updated."


def test_ingestor_against_caller_buffers_marks_drift_stale(gate, persistence):
    decision = ReplyIngestor(gate).ingest(
        TS_HTML_REPLY,
        current_buffers={"typescript": "", "html": "<p>on screen</p>"},
    )
    assert decision.get("html").before == "<p>on screen</p>"

    result = gate.apply(decision)
    assert result.applied == ["typescript"]
    assert result.skipped == {"html": "stale"}
    assert gate.store.get("html") == "<p>old</p>"
    assert persistence.get("component", "btn", "html") is None
    assert persistence.get("component", "btn", "typescript") == "export class B {}"


def test_ingest_reply_is_side_effect_free():
    buffers = EditorBuffers(typescript="export class A {}")
    decision = ingest_reply("Sure! ```typescript\nexport class B {}\n```", buffers)
    assert decision.apply
    assert decision.explanation_text == "Sure!"
    assert buffers.typescript == "export class A {}"
    assert not ingest_reply("just words").apply
