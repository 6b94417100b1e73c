"""Storage collaborators for CopilotSync."""

from .persistence import (
    PersistRequest,
    PersistenceBackend,
    InMemoryPersistence,
    CallbackPersistence,
    JsonFilePersistence,
)
from .ui_state import (
    LocalUIState,
    ChatExchange,
    TOUR_SEEN_KEY,
    LAYOUT_KEY,
    CHAT_HISTORY_KEY,
)

__all__ = [
    "PersistRequest",
    "PersistenceBackend",
    "InMemoryPersistence",
    "CallbackPersistence",
    "JsonFilePersistence",
    "LocalUIState",
    "ChatExchange",
    "TOUR_SEEN_KEY",
    "LAYOUT_KEY",
    "CHAT_HISTORY_KEY",
]
