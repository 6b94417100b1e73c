"""
CopilotSync Runtime Package
===========================

Cooperative timer scheduling and telemetry for the editing core.

Components:
- Scheduler: explicit timer abstraction (asyncio and virtual clock)
- TelemetryLog: append-only, versioned event log
"""

from .scheduler import (
    Scheduler,
    TimerHandle,
    AsyncioScheduler,
    ManualScheduler,
)
from .telemetry import (
    TELEMETRY_SCHEMA_VERSION,
    TelemetryLog,
    TelemetrySink,
    Event,
    EventType,
    AnyEvent,
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
)

__all__ = [
    "Scheduler",
    "TimerHandle",
    "AsyncioScheduler",
    "ManualScheduler",
    "TELEMETRY_SCHEMA_VERSION",
    "TelemetryLog",
    "TelemetrySink",
    "Event",
    "EventType",
    "AnyEvent",
    "SessionStartedEvent",
    "SessionSavedEvent",
    "SessionEndedEvent",
    "SessionCancelledEvent",
    "SessionSaveFailedEvent",
    "ReplyClassifiedEvent",
    "DiffOpenedEvent",
    "DiffAppliedEvent",
    "DiffCancelledEvent",
    "UIStateEvent",
]
