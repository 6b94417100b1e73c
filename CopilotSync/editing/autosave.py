"""
AutoSaveScheduler - one re-armable save timer per session.
"""

from __future__ import annotations

from typing import Any, Callable

from ..runtime.scheduler import Scheduler, TimerHandle
from ..utils import console


class AutoSaveScheduler:
    """
    Per-session save timers.

    Arming an armed session replaces its timer, so only one save fires per
    quiet period. Disarming is idempotent and accepts unknown or ended
    sessions, because a session can end while its timer is still queued.
    """

    def __init__(self, scheduler: Scheduler, on_fire: Callable[[str], Any]):
        self.scheduler = scheduler
        self._on_fire = on_fire
        self._timers: dict[str, TimerHandle] = {}

    def arm(self, session_id: str, delay_ms: float) -> None:
        self.disarm(session_id)
        self._timers[session_id] = self.scheduler.call_later(
            delay_ms / 1000.0, self._fire, session_id
        )
        console.debug(f"Auto-save armed for {session_id}", detail=f"{delay_ms:.0f}ms")

    def disarm(self, session_id: str) -> bool:
        """Cancel a session's timer. Returns True if one was pending."""
        handle = self._timers.pop(session_id, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def disarm_all(self) -> int:
        count = 0
        for session_id in list(self._timers):
            if self.disarm(session_id):
                count += 1
        return count

    def is_armed(self, session_id: str) -> bool:
        return session_id in self._timers

    def _fire(self, session_id: str) -> None:
        # Drop the handle first so the callback may re-arm or disarm freely
        self._timers.pop(session_id, None)
        self._on_fire(session_id)

    def __len__(self) -> int:
        return len(self._timers)
