"""Tests for the bounded request history."""

from __future__ import annotations

from aibridge.core.history import HistoryLog
from aibridge.core.models import AIRequest, RequestKind


def _requests(count: int) -> list[AIRequest]:
    return [AIRequest(kind=RequestKind.CHAT, user_input=f"q{index}") for index in range(count)]


def test_records_in_order() -> None:
    history = HistoryLog()
    requests = _requests(3)
    for request in requests:
        history.record(request)

    assert history.entries == tuple(requests)
    assert list(history) == requests
    assert history.latest() is requests[-1]


def test_evicts_oldest_when_full() -> None:
    history = HistoryLog(max_entries=2)
    first, second, third = _requests(3)
    for request in (first, second, third):
        history.record(request)

    assert history.entries == (second, third)


def test_disabled_keeps_only_latest() -> None:
    history = HistoryLog(max_entries=10, enabled=False)
    first, second = _requests(2)
    history.record(first)
    history.record(second)

    assert history.entries == (second,)


def test_zero_capacity_keeps_nothing() -> None:
    history = HistoryLog(max_entries=0)
    history.record(_requests(1)[0])

    assert len(history) == 0
    assert history.latest() is None


def test_configure_applies_on_next_record() -> None:
    history = HistoryLog(max_entries=5)
    requests = _requests(4)
    for request in requests[:3]:
        history.record(request)

    history.configure(enabled=True, max_entries=2)
    assert len(history) == 3

    history.record(requests[3])
    assert history.entries == (requests[2], requests[3])
    assert history.max_entries == 2


def test_clear() -> None:
    history = HistoryLog()
    history.record(_requests(1)[0])

    history.clear()

    assert len(history) == 0
    assert history.enabled is True
