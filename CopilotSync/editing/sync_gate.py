"""
SyncGate - the only path from copilot output into editor buffers.

A parsed reply never touches buffers directly. The gate first produces a
SyncDecision: a recommendation plus one FieldDiff per code bucket in the
reply. Nothing is written until the user confirms, and even then fields
with in-flight manual edits are held back unless the caller forces them.

    decision = gate.reconcile(parse_reply(reply_text))
    if decision.apply:
        show(decision.diff)            # user reviews
        gate.apply(decision)           # or gate.cancel(decision)
"""

from __future__ import annotations

import difflib
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Mapping, Optional, Union

from .buffers import BufferStore, EditorBuffers
from .fence_parser import ParsedReply
from ..runtime.telemetry import DiffAppliedEvent, DiffCancelledEvent, DiffOpenedEvent, TelemetryLog
from ..utils import console


class DecisionStatus(Enum):
    """Where a decision is in its confirm/reject flow."""
    PENDING = "pending"
    APPLIED = "applied"
    CANCELLED = "cancelled"


@dataclass
class FieldDiff:
    """Before/after view of one buffer."""
    field: str
    before: str
    after: str
    unified_diff: str = ""
    added_lines: int = 0
    removed_lines: int = 0
    conflict: bool = False

    @property
    def has_changes(self) -> bool:
        return self.before != self.after

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "has_changes": self.has_changes,
            "conflict": self.conflict,
            "added_lines": self.added_lines,
            "removed_lines": self.removed_lines,
            "unified_diff": self.unified_diff,
        }


def compute_field_diff(name: str, before: str, after: str, conflict: bool = False) -> FieldDiff:
    """Unified diff and line counts for one field."""
    lines = list(difflib.unified_diff(
        before.splitlines(),
        after.splitlines(),
        fromfile=f"a/{name}",
        tofile=f"b/{name}",
        lineterm="",
    ))
    added = sum(1 for line in lines if line.startswith("+") and not line.startswith("+++"))
    removed = sum(1 for line in lines if line.startswith("-") and not line.startswith("---"))
    return FieldDiff(
        field=name,
        before=before,
        after=after,
        unified_diff="\n".join(lines),
        added_lines=added,
        removed_lines=removed,
        conflict=conflict,
    )


@dataclass
class SyncDecision:
    """
    Recommendation for one parsed reply.

    ``apply`` is advisory: True when at least one field would change.
    """
    apply: bool
    diff: list[FieldDiff]
    explanation_text: str
    parsed: ParsedReply
    id: str = field(default_factory=lambda: f"sync_{uuid.uuid4().hex[:12]}")
    base_version: int = 0
    created_at: datetime = field(default_factory=datetime.now)
    status: DecisionStatus = DecisionStatus.PENDING

    @property
    def changed_fields(self) -> list[str]:
        return [d.field for d in self.diff if d.has_changes]

    @property
    def conflicts(self) -> list[str]:
        return [d.field for d in self.diff if d.conflict and d.has_changes]

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    def get(self, name: str) -> Optional[FieldDiff]:
        for d in self.diff:
            if d.field == name:
                return d
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "apply": self.apply,
            "status": self.status.value,
            "changed_fields": self.changed_fields,
            "conflicts": self.conflicts,
            "explanation_text": self.explanation_text,
            "diff": [d.to_dict() for d in self.diff],
        }


@dataclass
class ApplyResult:
    """What a confirmed apply actually wrote."""
    decision_id: str
    applied: list[str] = field(default_factory=list)
    skipped: dict[str, str] = field(default_factory=dict)  # field -> "conflict" | "stale" | "not selected"

    @property
    def ok(self) -> bool:
        return bool(self.applied)


class SyncGate:
    """
    Reconciles copilot replies with an entity's buffers.

    Args:
        store: Buffers to diff against and write into; taken from the manager
            when omitted
        manager: Session manager used for conflict detection and, when the
            entity is known, for recording and persisting applied fields
        entity_type: Entity kind the buffers belong to
        entity_id: Entity the buffers belong to
        telemetry: Event log (defaults to the manager's)
    """

    def __init__(
        self,
        store: Optional[BufferStore] = None,
        manager=None,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        telemetry: Optional[TelemetryLog] = None,
    ):
        self.manager = manager
        self.entity_type = entity_type
        self.entity_id = entity_id
        if store is None:
            if manager is not None and entity_type is not None and entity_id is not None:
                store = manager.buffers(entity_type, entity_id)
            else:
                store = BufferStore()
        self.store = store
        if telemetry is None and manager is not None:
            telemetry = manager.telemetry
        self.telemetry = telemetry

    @property
    def _bound(self) -> bool:
        return self.manager is not None and self.entity_type is not None and self.entity_id is not None

    def _dirty_fields(self) -> set[str]:
        if not self._bound:
            return set()
        return self.manager.dirty_fields(self.entity_type, self.entity_id)

    def reconcile(
        self,
        parsed: ParsedReply,
        current_buffers: Union[EditorBuffers, Mapping[str, str], None] = None,
    ) -> SyncDecision:
        """Compare a parsed reply with the current buffers. Never writes."""
        if not parsed.has_code:
            return SyncDecision(
                apply=False,
                diff=[],
                explanation_text=parsed.explanation_text,
                parsed=parsed,
                base_version=self.store.version,
            )

        if current_buffers is None:
            current_buffers = self.store.snapshot()
        dirty = self._dirty_fields()

        diffs = [
            compute_field_diff(
                bucket,
                current_buffers.get(bucket, ""),
                code,
                conflict=bucket in dirty,
            )
            for bucket, code in parsed.code.items()
        ]
        decision = SyncDecision(
            apply=any(d.has_changes for d in diffs),
            diff=diffs,
            explanation_text=parsed.explanation_text,
            parsed=parsed,
            base_version=self.store.version,
        )

        if decision.apply and self.telemetry is not None:
            self.telemetry.emit(DiffOpenedEvent(
                decision_id=decision.id,
                fields=decision.changed_fields,
                conflicts=decision.conflicts,
            ))
        return decision

    def apply(
        self,
        decision: SyncDecision,
        fields: Optional[list[str]] = None,
        force: bool = False,
    ) -> ApplyResult:
        """
        Write a confirmed decision into the buffers.

        Without ``force``, skips fields with in-flight manual edits and fields
        whose buffer changed since the diff was produced.
        """
        result = ApplyResult(decision_id=decision.id)
        if decision.status is not DecisionStatus.PENDING:
            console.warning(f"Decision {decision.id} already {decision.status.value}, not applied")
            return result

        selected = set(fields) if fields is not None else None
        dirty = self._dirty_fields()
        updates: dict[str, tuple[str, str]] = {}

        for d in decision.diff:
            if not d.has_changes:
                continue
            if selected is not None and d.field not in selected:
                result.skipped[d.field] = "not selected"
                continue
            if not force and (d.conflict or d.field in dirty):
                result.skipped[d.field] = "conflict"
                continue
            current = self.store.get(d.field)
            if not force and current != d.before:
                result.skipped[d.field] = "stale"
                continue
            updates[d.field] = (current, d.after)

        if updates:
            self._write(updates)
            result.applied = list(updates)

        decision.status = DecisionStatus.APPLIED
        for name, reason in result.skipped.items():
            console.warning(f"Copilot change to {name} not applied", detail=reason)

        if self.telemetry is not None:
            self.telemetry.emit(DiffAppliedEvent(
                decision_id=decision.id,
                fields=result.applied,
                skipped=sorted(result.skipped),
            ))
        return result

    def _write(self, updates: dict[str, tuple[str, str]]) -> None:
        if not self._bound:
            self.store.set_many({name: new for name, (_, new) in updates.items()})
            return

        # Route through a short-lived session so the write is recorded and persisted
        before = {s.id for s in self.manager.get_active_sessions()}
        session_id = self.manager.start_edit_session(self.entity_type, self.entity_id, auto_save=False)
        for name, (old, new) in updates.items():
            self.manager.record_change(session_id, name, old, new)
        if session_id in before:
            self.manager.save_session(session_id)
        else:
            self.manager.end_edit_session(session_id, save=True)

    def cancel(self, decision: SyncDecision) -> bool:
        """Record that the user rejected a decision. Buffers are untouched."""
        if decision.status is not DecisionStatus.PENDING:
            return False
        decision.status = DecisionStatus.CANCELLED
        if self.telemetry is not None:
            self.telemetry.emit(DiffCancelledEvent(decision_id=decision.id))
        return True
