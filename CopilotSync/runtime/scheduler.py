"""
Timer scheduling for the editing core.

All debounce and auto-save waits are scheduled callbacks on a single logical
thread. Two implementations share one interface:

- AsyncioScheduler: production path, backed by ``loop.call_later``
- ManualScheduler: virtual clock advanced explicitly; used by tests and by
  hosts that drive their own event pump

Cancelling a handle is always idempotent, including after it fired.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional


class TimerHandle(ABC):
    """A scheduled callback that can be cancelled."""

    @property
    @abstractmethod
    def when(self) -> float:
        """Scheduler time (seconds) at which the callback fires."""
        ...

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        ...

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the callback. Safe to call repeatedly or after firing."""
        ...


class Scheduler(ABC):
    """
    Abstract single-threaded timer source.
    """

    @abstractmethod
    def now(self) -> float:
        """Current scheduler time in seconds."""
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Run ``callback(*args)`` after ``delay`` seconds."""
        ...


class _AsyncioTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    @property
    def when(self) -> float:
        return self._handle.when()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()

    def cancel(self) -> None:
        self._handle.cancel()


class AsyncioScheduler(Scheduler):
    """
    Scheduler backed by an asyncio event loop.

    When no loop is given, the running loop is looked up at scheduling time,
    so the scheduler can be created before the loop starts.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        return asyncio.get_running_loop()

    def now(self) -> float:
        return self.loop.time()

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        return _AsyncioTimerHandle(self.loop.call_later(max(0.0, delay), callback, *args))


class _ManualTimerHandle(TimerHandle):
    def __init__(self, when: float, seq: int, callback: Callable[..., Any], args: tuple):
        self._when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self._cancelled = False
        self.fired = False

    @property
    def when(self) -> float:
        return self._when

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __lt__(self, other: "_ManualTimerHandle") -> bool:
        return (self._when, self.seq) < (other._when, other.seq)


class ManualScheduler(Scheduler):
    """
    Virtual-clock scheduler.

    Time only moves when ``advance`` is called. Callbacks fire in deadline
    order (ties in scheduling order) and may schedule or cancel other timers
    while running.

    Usage:
        scheduler = ManualScheduler()
        scheduler.call_later(0.3, flush)
        scheduler.advance(0.5)   # flush() runs here
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: list[_ManualTimerHandle] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        handle = _ManualTimerHandle(self._now + max(0.0, delay), next(self._seq), callback, args)
        heapq.heappush(self._queue, handle)
        return handle

    def pending(self) -> int:
        """Number of live (not cancelled, not fired) timers."""
        return sum(1 for h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing every timer that comes due.

        Returns:
            Number of callbacks that ran
        """
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0].when <= target:
            handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = handle.when
            handle.fired = True
            handle.callback(*handle.args)
            fired += 1
        self._now = target
        return fired

    def run_all(self, limit: int = 10_000) -> int:
        """Fire timers until none remain (bounded to avoid runaway re-arming)."""
        fired = 0
        while fired < limit:
            live = [h for h in self._queue if not h.cancelled]
            if not live:
                break
            fired += self.advance(max(0.0, min(h.when for h in live) - self._now))
        return fired
