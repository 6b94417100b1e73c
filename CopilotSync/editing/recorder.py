"""
ChangeRecorder - debounced capture of raw input.

Every keystroke is forwarded to live subscribers at once, while persistence
only sees the last value of each quiet period:

    on_input("s1", "bio", "H")    -> subscribers("s1", "bio", "H")
    on_input("s1", "bio", "Hi")   -> subscribers("s1", "bio", "Hi"), timer reset
    ... 300ms of silence ...      -> on_commit("s1", "bio", "", "Hi")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..runtime.scheduler import Scheduler, TimerHandle
from ..utils import console


CommitCallback = Callable[[str, str, str, str], Any]
ValueLookup = Callable[[str, str], Optional[str]]
LiveSubscriber = Callable[[str, str, str], None]


@dataclass
class _PendingInput:
    value: str
    handle: TimerHandle


class ChangeRecorder:
    """
    Debounces input per (session, field) key.

    Args:
        scheduler: Timer source
        on_commit: Called as ``on_commit(session_id, field, old, new)`` when a
            debounced value differs from the value on record
        value_lookup: Returns the value currently on record for a key (the
            buffer value); falls back to the last value this recorder committed
        debounce_ms: Quiet period before committing
    """

    def __init__(
        self,
        scheduler: Scheduler,
        on_commit: CommitCallback,
        value_lookup: Optional[ValueLookup] = None,
        debounce_ms: int = 300,
    ):
        self.scheduler = scheduler
        self.debounce_ms = debounce_ms
        self._on_commit = on_commit
        self._value_lookup = value_lookup
        self._pending: dict[tuple[str, str], _PendingInput] = {}
        self._recorded: dict[tuple[str, str], str] = {}
        self._subscribers: list[LiveSubscriber] = []

    def subscribe(self, subscriber: LiveSubscriber) -> Callable[[], None]:
        """Receive every raw value immediately. Returns an unsubscribe callable."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def on_input(self, session_id: str, field: str, raw_value: str) -> None:
        """Forward ``raw_value`` to subscribers and (re)start the debounce timer."""
        for subscriber in list(self._subscribers):
            try:
                subscriber(session_id, field, raw_value)
            except Exception as e:
                console.warning(f"Live-update subscriber failed for {field}", detail=str(e))

        key = (session_id, field)
        pending = self._pending.get(key)
        if pending is not None:
            pending.handle.cancel()

        handle = self.scheduler.call_later(self.debounce_ms / 1000.0, self._fire, key)
        self._pending[key] = _PendingInput(value=raw_value, handle=handle)

    def _fire(self, key: tuple[str, str]) -> None:
        pending = self._pending.pop(key, None)
        if pending is None:
            return
        self._commit(key, pending.value)

    def _value_on_record(self, key: tuple[str, str]) -> str:
        if self._value_lookup is not None:
            value = self._value_lookup(*key)
            if value is not None:
                return value
        return self._recorded.get(key, "")

    def _commit(self, key: tuple[str, str], value: str) -> bool:
        current = self._value_on_record(key)
        if value == current:
            console.debug(f"Debounced value unchanged for {key[1]}, nothing recorded")
            return False
        self._recorded[key] = value
        self._on_commit(key[0], key[1], current, value)
        return True

    def flush(self, session_id: str) -> int:
        """
        Commit pending input for a session immediately.

        Returns:
            Number of fields committed
        """
        committed = 0
        for key in [k for k in self._pending if k[0] == session_id]:
            pending = self._pending.pop(key)
            pending.handle.cancel()
            if self._commit(key, pending.value):
                committed += 1
        return committed

    def discard(self, session_id: str) -> int:
        """
        Drop pending input and timers for a session without committing.

        Returns:
            Number of pending values dropped
        """
        dropped = 0
        for key in [k for k in self._pending if k[0] == session_id]:
            self._pending.pop(key).handle.cancel()
            dropped += 1
        return dropped

    def forget(self, session_id: str) -> None:
        """Drop all state for a session that has ended."""
        self.discard(session_id)
        for key in [k for k in self._recorded if k[0] == session_id]:
            del self._recorded[key]

    def has_pending(self, session_id: str, field: Optional[str] = None) -> bool:
        return any(
            k[0] == session_id and (field is None or k[1] == field)
            for k in self._pending
        )

    def pending_fields(self, session_id: str) -> list[str]:
        return [k[1] for k in self._pending if k[0] == session_id]

    def pending_value(self, session_id: str, field: str) -> Optional[str]:
        pending = self._pending.get((session_id, field))
        return pending.value if pending else None
