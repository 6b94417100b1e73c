"""
Pytest fixtures for CopilotSync tests
"""

import pytest

from CopilotSync.config import CopilotSyncConfig
from CopilotSync.editing import EditSessionManager
from CopilotSync.runtime import ManualScheduler, TelemetryLog
from CopilotSync.storage import InMemoryPersistence


@pytest.fixture
def config() -> CopilotSyncConfig:
    """
    Default configuration, independent of any copilot_sync.yaml on disk.
    """
    return CopilotSyncConfig(data={})


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def telemetry() -> TelemetryLog:
    return TelemetryLog()


@pytest.fixture
def manager(scheduler, persistence, telemetry, config) -> EditSessionManager:
    """
    Session manager on a virtual clock with in-memory persistence.
    """
    return EditSessionManager(
        scheduler=scheduler,
        persistence=persistence,
        telemetry=telemetry,
        config=config,
    )


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """
    Keeps developer environment overrides out of the tests.
    """
    for name in ("COPILOT_SYNC_CONFIG", "COPILOT_SYNC_DEBOUNCE_MS", "COPILOT_SYNC_AUTOSAVE_MS"):
        monkeypatch.delenv(name, raising=False)
