"""
CopilotSync Editing Package
===========================

Edit sessions and copilot-code synchronization over shared buffers.

Components:
- BufferStore: authoritative current value per field of one entity
- CodeFenceParser: splits copilot replies into code buckets and prose
- ChangeRecorder: debounces raw input into EditChange records
- AutoSaveScheduler: per-session re-armable save timers
- EditSessionManager: session lifecycle and persistence hand-off
- SyncGate: diff, conflict detection and confirmed apply of copilot code
- EditableBinding: wires one UI control to the session manager
"""

from .buffers import BufferStore, EditorBuffers, CODE_BUFFERS
from .fence_parser import (
    CodeFence,
    CodeFenceParser,
    FencePolicy,
    ParsedReply,
    parse_reply,
)
from .recorder import ChangeRecorder
from .autosave import AutoSaveScheduler
from .session import (
    EditChange,
    EditSession,
    EditSessionManager,
    EntityType,
    SessionRegistry,
    SessionState,
    generate_session_id,
)
from .sync_gate import (
    ApplyResult,
    DecisionStatus,
    FieldDiff,
    SyncDecision,
    SyncGate,
    compute_field_diff,
)
from .binding import EditableBinding

__all__ = [
    "BufferStore",
    "EditorBuffers",
    "CODE_BUFFERS",
    "CodeFence",
    "CodeFenceParser",
    "FencePolicy",
    "ParsedReply",
    "parse_reply",
    "ChangeRecorder",
    "AutoSaveScheduler",
    "EditChange",
    "EditSession",
    "EditSessionManager",
    "EntityType",
    "SessionRegistry",
    "SessionState",
    "generate_session_id",
    "ApplyResult",
    "DecisionStatus",
    "FieldDiff",
    "SyncDecision",
    "SyncGate",
    "compute_field_diff",
    "EditableBinding",
]
