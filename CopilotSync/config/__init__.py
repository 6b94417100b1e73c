"""
CopilotSync Configuration Module.

Provides:
- CopilotSyncConfig: YAML-backed settings with environment overrides
- Section dataclasses for timing, fences, history and session policy
"""

from .sync_config import (
    CopilotSyncConfig,
    TimingConfig,
    FenceConfig,
    HistoryConfig,
    SessionPolicy,
    DEFAULT_BUCKETS,
    DEFAULT_ALIASES,
    get_config,
    reload_config,
)

__all__ = [
    "CopilotSyncConfig",
    "TimingConfig",
    "FenceConfig",
    "HistoryConfig",
    "SessionPolicy",
    "DEFAULT_BUCKETS",
    "DEFAULT_ALIASES",
    "get_config",
    "reload_config",
]
