"""
CopilotSync: edit sessions and copilot code synchronization.

Keeps many debounced, auto-saving edit sessions consistent with the code a
copilot proposes, without letting either side silently overwrite the other.

Architecture:
- editing/: buffers, fence parser, debouncer, auto-save, sessions, sync gate
- copilot/: reply ingestion into confirmable decisions
- runtime/: timer scheduling and the telemetry event log
- storage/: persistence collaborators and copilot panel UI state
- config/: YAML + environment configuration
- infrastructure/: error taxonomy

Quick Start:
    from CopilotSync import EditSessionManager, InMemoryPersistence, SyncGate, ReplyIngestor

    manager = EditSessionManager(persistence=InMemoryPersistence())
    sid = manager.start_edit_session("component", "btn-1")
    manager.on_input(sid, "html", "<button>Save</button>")

    gate = SyncGate(manager=manager, entity_type="component", entity_id="btn-1")
    decision = ReplyIngestor(gate).ingest(reply_text)
    if decision.apply:
        gate.apply(decision)
"""

__version__ = "0.1.0"

# Configuration
from .config import CopilotSyncConfig, get_config, reload_config

# Errors
from .infrastructure import CopilotSyncError, PersistenceError, ConfigError

# Runtime
from .runtime import (
    AsyncioScheduler,
    ManualScheduler,
    Scheduler,
    TelemetryLog,
    EventType,
    TELEMETRY_SCHEMA_VERSION,
)

# Editing core
from .editing import (
    BufferStore,
    EditorBuffers,
    CodeFenceParser,
    ParsedReply,
    parse_reply,
    ChangeRecorder,
    AutoSaveScheduler,
    EditSession,
    EditChange,
    EditSessionManager,
    EntityType,
    SessionState,
    SyncGate,
    SyncDecision,
    FieldDiff,
    EditableBinding,
)

# Copilot ingestion
from .copilot import ReplyIngestor, ingest_reply

# Storage
from .storage import InMemoryPersistence, PersistenceBackend, PersistRequest, LocalUIState

# Console utilities
from .utils import console

__all__ = [
    # Version
    "__version__",
    # Config
    "CopilotSyncConfig",
    "get_config",
    "reload_config",
    # Errors
    "CopilotSyncError",
    "PersistenceError",
    "ConfigError",
    # Runtime
    "AsyncioScheduler",
    "ManualScheduler",
    "Scheduler",
    "TelemetryLog",
    "EventType",
    "TELEMETRY_SCHEMA_VERSION",
    # Editing
    "BufferStore",
    "EditorBuffers",
    "CodeFenceParser",
    "ParsedReply",
    "parse_reply",
    "ChangeRecorder",
    "AutoSaveScheduler",
    "EditSession",
    "EditChange",
    "EditSessionManager",
    "EntityType",
    "SessionState",
    "SyncGate",
    "SyncDecision",
    "FieldDiff",
    "EditableBinding",
    # Copilot
    "ReplyIngestor",
    "ingest_reply",
    # Storage
    "InMemoryPersistence",
    "PersistenceBackend",
    "PersistRequest",
    "LocalUIState",
    # Console
    "console",
]
