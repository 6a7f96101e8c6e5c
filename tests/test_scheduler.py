"""Tests for the host scheduler adapters."""

from __future__ import annotations

import asyncio

import pytest

from aibridge.core.scheduler import AsyncioScheduler, ManualScheduler, QtScheduler, Scheduler


class TestManualScheduler:
    def test_is_a_scheduler_and_clock(self) -> None:
        scheduler = ManualScheduler(start=10.0)

        assert isinstance(scheduler, Scheduler)
        assert scheduler() == 10.0
        assert scheduler.now == 10.0

    def test_advance_runs_due_callbacks_in_order(self) -> None:
        scheduler = ManualScheduler()
        calls: list[tuple[str, float]] = []
        scheduler.call_later(2.0, lambda: calls.append(("late", scheduler.now)))
        scheduler.call_later(1.0, lambda: calls.append(("early", scheduler.now)))

        ran = scheduler.advance(1.5)

        assert ran == 1
        assert calls == [("early", 1.0)]
        assert scheduler.now == 1.5

        scheduler.advance(1.0)
        assert calls == [("early", 1.0), ("late", 2.0)]

    def test_callbacks_scheduled_while_advancing_run_when_due(self) -> None:
        scheduler = ManualScheduler()
        ticks: list[float] = []

        def tick() -> None:
            ticks.append(scheduler.now)
            if len(ticks) < 3:
                scheduler.call_later(0.5, tick)

        scheduler.call_later(0.5, tick)
        scheduler.advance(5.0)

        assert ticks == [0.5, 1.0, 1.5]

    def test_cancelled_callbacks_do_not_run(self) -> None:
        scheduler = ManualScheduler()
        calls: list[int] = []
        handle = scheduler.call_later(1.0, lambda: calls.append(1))

        handle.cancel()

        assert scheduler.pending() == 0
        assert scheduler.advance(2.0) == 0
        assert calls == []

    def test_run_pending_only_runs_due(self) -> None:
        scheduler = ManualScheduler()
        calls: list[str] = []
        scheduler.call_later(0.0, lambda: calls.append("now"))
        scheduler.call_later(1.0, lambda: calls.append("later"))

        assert scheduler.run_pending() == 1
        assert calls == ["now"]
        assert scheduler.pending() == 1


class TestAsyncioScheduler:
    @pytest.mark.asyncio
    async def test_runs_callback_on_loop(self) -> None:
        scheduler = AsyncioScheduler()
        fired = asyncio.Event()

        scheduler.call_later(0.01, fired.set)

        await asyncio.wait_for(fired.wait(), timeout=2)
        assert scheduler.loop is asyncio.get_running_loop()

    @pytest.mark.asyncio
    async def test_cancel(self) -> None:
        scheduler = AsyncioScheduler()
        calls: list[int] = []

        handle = scheduler.call_later(0.01, lambda: calls.append(1))
        handle.cancel()
        await asyncio.sleep(0.05)

        assert calls == []


def test_qt_scheduler_starts_and_cancels_timer() -> None:
    qt_core = pytest.importorskip("PySide6.QtCore")
    app = qt_core.QCoreApplication.instance() or qt_core.QCoreApplication([])
    assert app is not None
    scheduler = QtScheduler()

    handle = scheduler.call_later(10.0, lambda: None)

    assert handle._timer.isActive()
    handle.cancel()
    assert not handle._timer.isActive()
