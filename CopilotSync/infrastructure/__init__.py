"""
CopilotSync Infrastructure Layer.

Provides the error taxonomy shared by the editing core, the copilot ingestion
path and the configuration loader.
"""

from .errors import (
    ErrorCategory,
    CopilotSyncError,
    FatalError,
    DegradedError,
    RecoverableError,
    PersistenceError,
    ConfigError,
    handle_error,
    backoff_delay,
)

__all__ = [
    "ErrorCategory",
    "CopilotSyncError",
    "FatalError",
    "DegradedError",
    "RecoverableError",
    "PersistenceError",
    "ConfigError",
    "handle_error",
    "backoff_delay",
]
