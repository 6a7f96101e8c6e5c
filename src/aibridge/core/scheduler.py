"""Deferred-callback schedulers provided by the host.

The bridge never blocks: every poll either resolves the exchange or asks the
host to call it again later. Hosts plug in whichever loop they already run.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

__all__ = [
    "ScheduledCall",
    "Scheduler",
    "AsyncioScheduler",
    "QtScheduler",
    "ManualScheduler",
]


@runtime_checkable
class ScheduledCall(Protocol):
    """Handle returned by :meth:`Scheduler.call_later`."""

    def cancel(self) -> None:  # pragma: no cover - Protocol placeholder
        ...


@runtime_checkable
class Scheduler(Protocol):
    """Anything that can run ``callback`` after ``delay`` seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> ScheduledCall:  # pragma: no cover
        ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay), callback)


class _QtCall:
    __slots__ = ("_timer",)

    def __init__(self, timer: Any) -> None:
        self._timer = timer

    def cancel(self) -> None:
        self._timer.stop()


class QtScheduler:
    """Scheduler backed by single-shot ``QTimer`` instances on the Qt event loop."""

    def __init__(self, parent: Any = None) -> None:
        try:  # Local import to avoid mandatory PySide6 dependency at import time.
            from PySide6.QtCore import QTimer
        except ImportError as exc:  # pragma: no cover - depends on desktop stack
            raise RuntimeError("PySide6 must be installed to use the Qt scheduler.") from exc
        self._timer_type = QTimer
        self._parent = parent
        self._active: set[Any] = set()

    def call_later(self, delay: float, callback: Callable[[], None]) -> _QtCall:
        timer = self._timer_type(self._parent)
        timer.setSingleShot(True)
        self._active.add(timer)

        def _fire() -> None:
            self._active.discard(timer)
            callback()

        timer.timeout.connect(_fire)
        timer.start(max(0, int(delay * 1000)))
        return _QtCall(timer)


@dataclass(order=True)
class _ManualEntry:
    due: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose queue is drained explicitly by the host.

    Keeps its own virtual clock, so it doubles as the ``clock`` argument of
    the transport when a host (or a test) wants fully deterministic polling.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[_ManualEntry] = []
        self._counter = itertools.count()

    def __call__(self) -> float:
        return self._now

    @property
    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualEntry:
        entry = _ManualEntry(self._now + max(0.0, delay), next(self._counter), callback)
        heapq.heappush(self._queue, entry)
        return entry

    def pending(self) -> int:
        return sum(1 for entry in self._queue if not entry.cancelled)

    def run_pending(self) -> int:
        """Run every callback that is already due. Returns how many ran."""

        ran = 0
        while self._queue and self._queue[0].due <= self._now:
            entry = heapq.heappop(self._queue)
            if entry.cancelled:
                continue
            entry.callback()
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move the virtual clock forward, running callbacks as they come due."""

        target = self._now + seconds
        ran = 0
        while self._queue and self._queue[0].due <= target:
            entry = heapq.heappop(self._queue)
            if entry.cancelled:
                continue
            self._now = max(self._now, entry.due)
            entry.callback()
            ran += 1
        self._now = target
        return ran
