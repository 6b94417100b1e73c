"""
Copilot panel UI state.

A small key/value blob the panel keeps between visits, stored as one JSON
object (or only in memory when no path is given):

    ai-copilot-tour-seen      "true" once the onboarding tour finished
    ai-copilot-layout         panel layout, e.g. {"mode": "split", "width": 420}
    ai-copilot-chat-history   last N chat exchanges, oldest first
"""

from __future__ import annotations

import json
import pathlib
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..infrastructure.errors import ConfigError, DegradedError, handle_error
from ..runtime.telemetry import EventType, TelemetryLog, UIStateEvent
from ..utils import console


TOUR_SEEN_KEY = "ai-copilot-tour-seen"
LAYOUT_KEY = "ai-copilot-layout"
CHAT_HISTORY_KEY = "ai-copilot-chat-history"

DEFAULT_HISTORY_LIMIT = 5


@dataclass
class ChatExchange:
    """One prompt and the reply it produced."""
    prompt: str
    response: str
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    has_code: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> ChatExchange:
        return cls(
            prompt=str(data.get("prompt", "")),
            response=str(data.get("response", "")),
            timestamp=str(data.get("timestamp", datetime.now().isoformat())),
            has_code=bool(data.get("has_code", False)),
        )


class LocalUIState:
    """
    Persistent copilot panel state.

    Every mutation is written through immediately. An unreadable file is
    treated as empty state with a warning; it is replaced on the next write.
    """

    def __init__(
        self,
        path: pathlib.Path | str | None = None,
        telemetry: Optional[TelemetryLog] = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        if history_limit < 1:
            raise ConfigError("Chat history limit must be at least 1", context={"history_limit": history_limit})
        self.path = pathlib.Path(path) if path is not None else None
        self.telemetry = telemetry
        self.history_limit = history_limit
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if self.path is None or not self.path.exists():
            return {}
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            handle_error(
                DegradedError(f"Ignoring unreadable UI state at {self.path}", original_error=e),
                "load UI state",
            )
            return {}
        if not isinstance(data, dict):
            console.warning(f"Ignoring UI state at {self.path}: not a JSON object")
            return {}
        return data

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            json.dump(self._data, f, indent=2)

    def _emit(self, event_type: EventType, value: Optional[str] = None) -> None:
        if self.telemetry is not None:
            self.telemetry.emit(UIStateEvent(event_type=event_type, value=value))

    def to_dict(self) -> Dict[str, Any]:
        return json.loads(json.dumps(self._data))

    # === Tour ===

    @property
    def tour_seen(self) -> bool:
        return self._data.get(TOUR_SEEN_KEY) == "true"

    def start_tour(self) -> None:
        self._emit(EventType.TOUR_STARTED)

    def finish_tour(self, step: Optional[int] = None) -> None:
        self._data[TOUR_SEEN_KEY] = "true"
        self._save()
        self._emit(EventType.TOUR_FINISHED, str(step) if step is not None else None)

    def reset_tour(self) -> None:
        if self._data.pop(TOUR_SEEN_KEY, None) is not None:
            self._save()

    # === Layout ===

    @property
    def layout(self) -> Dict[str, Any]:
        layout = self._data.get(LAYOUT_KEY)
        return dict(layout) if isinstance(layout, dict) else {}

    def set_layout(self, **layout: Any) -> None:
        """Merge layout values, e.g. ``set_layout(mode="split", width=420)``."""
        merged = self.layout
        merged.update(layout)
        self._data[LAYOUT_KEY] = merged
        self._save()
        self._emit(EventType.LAYOUT_RESIZED, json.dumps(layout, sort_keys=True))

    # === Chat history ===

    @property
    def chat_history(self) -> List[ChatExchange]:
        raw = self._data.get(CHAT_HISTORY_KEY)
        if not isinstance(raw, list):
            return []
        return [ChatExchange.from_dict(item) for item in raw if isinstance(item, dict)]

    def add_exchange(self, prompt: str, response: str, has_code: bool = False) -> ChatExchange:
        """Append an exchange, dropping the oldest beyond the history limit."""
        exchange = ChatExchange(prompt=prompt, response=response, has_code=has_code)
        history = self.chat_history
        history.append(exchange)
        history = history[-self.history_limit:]
        self._data[CHAT_HISTORY_KEY] = [item.to_dict() for item in history]
        self._save()
        return exchange

    def clear_chat_history(self) -> None:
        self._data[CHAT_HISTORY_KEY] = []
        self._save()
