"""
Telemetry: closed, versioned event vocabulary for the editing core.

Provides:
- EventType, the complete set of event names an analytics sink can receive
- Typed pydantic event models
- TelemetryLog, an append-only log that fans events out to sinks and
  optionally streams them to a JSONL file

Renaming or removing an EventType value is a breaking change for analytics;
bump TELEMETRY_SCHEMA_VERSION when doing so.
"""

from __future__ import annotations

from abc import ABC
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Union
import json

from pydantic import BaseModel, Field

from ..infrastructure.errors import DegradedError, handle_error


TELEMETRY_SCHEMA_VERSION = "1"


class EventType(str, Enum):
    """Types of telemetry events."""

    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_SAVED = "session_saved"
    SESSION_ENDED = "session_ended"
    SESSION_CANCELLED = "session_cancelled"
    SESSION_SAVE_FAILED = "session_save_failed"

    # Copilot reply handling
    REPLY_CLASSIFIED = "copilot_chat_reply"
    DIFF_OPENED = "copilot_diff_open"
    DIFF_APPLIED = "copilot_diff_apply"
    DIFF_CANCELLED = "copilot_diff_cancel"

    # Copilot panel UI state
    TOUR_STARTED = "copilot_tour_start"
    TOUR_FINISHED = "copilot_tour_finish"
    LAYOUT_RESIZED = "copilot_layout_resize"


class Event(BaseModel, ABC):
    """Base class for all events."""

    event_type: EventType = Field(..., description="Type of event")
    timestamp: datetime = Field(default_factory=datetime.now, description="When event occurred")
    schema_version: str = Field(default=TELEMETRY_SCHEMA_VERSION, description="Vocabulary version")
    sequence: int = Field(default=0, description="Sequence number within the log")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional metadata")

    model_config = {"extra": "forbid"}


class SessionStartedEvent(Event):
    """Edit session started."""
    event_type: EventType = EventType.SESSION_STARTED
    session_id: str = Field(..., description="ID of the session")
    entity_type: str = Field(..., description="Kind of entity being edited")
    entity_id: str = Field(..., description="Entity being edited")
    field: Optional[str] = Field(default=None, description="Field bound to the session")
    auto_save: bool = Field(default=True, description="Whether auto-save is enabled")


class SessionSavedEvent(Event):
    """Pending changes handed to persistence."""
    event_type: EventType = EventType.SESSION_SAVED
    session_id: str = Field(..., description="ID of the session")
    fields: list[str] = Field(default_factory=list, description="Fields persisted")
    automatic: bool = Field(default=False, description="Triggered by the auto-save timer")


class SessionEndedEvent(Event):
    """Edit session ended."""
    event_type: EventType = EventType.SESSION_ENDED
    session_id: str = Field(..., description="ID of the session")
    saved: bool = Field(default=False, description="Whether pending changes were saved first")
    discarded: bool = Field(default=False, description="Whether pending changes were dropped")


class SessionCancelledEvent(Event):
    """Edit session cancelled and the original value restored."""
    event_type: EventType = EventType.SESSION_CANCELLED
    session_id: str = Field(..., description="ID of the session")
    restored: bool = Field(default=False, description="Whether a buffer value was restored")


class SessionSaveFailedEvent(Event):
    """Persistence rejected a save."""
    event_type: EventType = EventType.SESSION_SAVE_FAILED
    session_id: str = Field(..., description="ID of the session")
    fields: list[str] = Field(default_factory=list, description="Fields that failed")
    error: str = Field(..., description="Error message")
    attempt: int = Field(default=1, description="Consecutive failed attempt number")
    will_retry: bool = Field(default=False, description="Whether auto-save was re-armed")


class ReplyClassifiedEvent(Event):
    """A copilot reply was parsed and classified."""
    event_type: EventType = EventType.REPLY_CLASSIFIED
    has_code: bool = Field(..., description="Reply carried recognized code")
    buckets: list[str] = Field(default_factory=list, description="Buckets populated")
    explanation_chars: int = Field(default=0, description="Length of explanation text")


class DiffOpenedEvent(Event):
    """A diff was offered for confirmation."""
    event_type: EventType = EventType.DIFF_OPENED
    decision_id: str = Field(..., description="ID of the sync decision")
    fields: list[str] = Field(default_factory=list, description="Fields that would change")
    conflicts: list[str] = Field(default_factory=list, description="Fields with in-flight manual edits")


class DiffAppliedEvent(Event):
    """User confirmed a diff."""
    event_type: EventType = EventType.DIFF_APPLIED
    decision_id: str = Field(..., description="ID of the sync decision")
    fields: list[str] = Field(default_factory=list, description="Fields written")
    skipped: list[str] = Field(default_factory=list, description="Fields held back")


class DiffCancelledEvent(Event):
    """User rejected a diff."""
    event_type: EventType = EventType.DIFF_CANCELLED
    decision_id: str = Field(..., description="ID of the sync decision")


class UIStateEvent(Event):
    """Copilot panel tour/layout interaction."""
    event_type: EventType = EventType.LAYOUT_RESIZED
    value: Optional[str] = Field(default=None, description="New layout or tour step")


# Union of all event types
AnyEvent = Union[
    SessionStartedEvent,
    SessionSavedEvent,
    SessionEndedEvent,
    SessionCancelledEvent,
    SessionSaveFailedEvent,
    ReplyClassifiedEvent,
    DiffOpenedEvent,
    DiffAppliedEvent,
    DiffCancelledEvent,
    UIStateEvent,
]

TelemetrySink = Callable[[Event], None]


class TelemetryLog:
    """
    Append-only telemetry log.

    Events are numbered, kept in memory, passed to every registered sink and
    streamed to ``telemetry.jsonl`` when an output directory is configured.
    A failing sink is logged and skipped; telemetry never breaks an edit flow.
    """

    def __init__(self, output_dir: Optional[Path] = None, max_events: int = 10_000):
        self.events: list[AnyEvent] = []
        self.max_events = max_events
        self._sequence = 0
        self._sinks: list[TelemetrySink] = []
        self._output_file: Optional[Path] = None

        if output_dir:
            self._output_file = Path(output_dir) / "telemetry.jsonl"

    def add_sink(self, sink: TelemetrySink) -> Callable[[], None]:
        """Register a sink. Returns a callable that removes it."""
        self._sinks.append(sink)

        def remove() -> None:
            if sink in self._sinks:
                self._sinks.remove(sink)

        return remove

    def emit(self, event: AnyEvent) -> AnyEvent:
        """
        Append an event to the log.

        Sets the sequence number, then persists and fans out.
        """
        self._sequence += 1
        event.sequence = self._sequence
        self.events.append(event)
        if len(self.events) > self.max_events:
            del self.events[: len(self.events) - self.max_events]

        if self._output_file:
            self._write_event(event)

        for sink in list(self._sinks):
            try:
                sink(event)
            except Exception as e:
                handle_error(
                    DegradedError(f"Telemetry sink failed for {event.event_type.value}", original_error=e),
                    "telemetry",
                )
        return event

    def _write_event(self, event: AnyEvent) -> None:
        """Write a single event to disk."""
        if not self._output_file:
            return

        self._output_file.parent.mkdir(parents=True, exist_ok=True)

        with open(self._output_file, "a") as f:
            f.write(json.dumps(event.model_dump(mode="json")) + "\n")

    def query_by_type(self, event_type: EventType) -> list[AnyEvent]:
        """Get all events of a specific type."""
        return [e for e in self.events if e.event_type == event_type]

    def query_by_session(self, session_id: str) -> list[AnyEvent]:
        """Get all events for a specific edit session."""
        return [
            e for e in self.events
            if getattr(e, "session_id", None) == session_id
        ]

    def latest(self, n: int = 10) -> list[AnyEvent]:
        """Get the n most recent events."""
        return self.events[-n:]

    def summary(self) -> dict[str, Any]:
        """Count events per type."""
        event_counts: dict[str, int] = {}
        for event in self.events:
            event_counts[event.event_type.value] = event_counts.get(event.event_type.value, 0) + 1

        return {
            "schema_version": TELEMETRY_SCHEMA_VERSION,
            "event_count": len(self.events),
            "event_types": event_counts,
        }

    @classmethod
    def load(cls, jsonl_path: Path) -> list[dict[str, Any]]:
        """
        Read raw event dicts back from a telemetry.jsonl file.

        Lines from an unknown schema version are kept; consumers decide.
        """
        events = []
        with open(jsonl_path) as f:
            for line in f:
                if line.strip():
                    events.append(json.loads(line))
        return events
