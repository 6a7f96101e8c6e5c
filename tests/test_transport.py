"""Tests for the file-based bridge transport."""

from __future__ import annotations

from pathlib import Path

import pytest

from aibridge.core.envelope import BridgeOutcome
from aibridge.core.errors import (
    TIMEOUT_MESSAGE,
    UNREADABLE_RESPONSE_MESSAGE,
    ErrorCode,
)
from aibridge.core.scheduler import ManualScheduler
from aibridge.core.transport import BridgeTransport


@pytest.fixture
def transport(exchange_dir: Path, scheduler: ManualScheduler) -> BridgeTransport:
    return BridgeTransport(
        exchange_dir / "request.json",
        exchange_dir / "response.json",
        scheduler,
        poll_interval=0.5,
        response_timeout=2.0,
        clock=scheduler,
    )


@pytest.fixture
def outcomes() -> list[BridgeOutcome]:
    return []


class TestStartExchange:
    def test_writes_request_and_schedules_poll(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        assert transport.start_exchange('{"prompt": "hi"}', outcomes.append) is True

        assert transport.request_path.read_text(encoding="utf-8") == '{"prompt": "hi"}'
        assert transport.in_flight
        assert scheduler.pending() == 1

    def test_removes_stale_files_first(
        self, transport: BridgeTransport, outcomes: list[BridgeOutcome]
    ) -> None:
        transport.response_path.write_text('{"response": "old"}', encoding="utf-8")

        transport.start_exchange('{"prompt": "hi"}', outcomes.append)

        assert not transport.response_path.exists()

    def test_rejects_second_exchange(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        transport.start_exchange('{"prompt": "one"}', outcomes.append)

        assert transport.start_exchange('{"prompt": "two"}', outcomes.append) is False
        assert transport.request_path.read_text(encoding="utf-8") == '{"prompt": "one"}'
        assert scheduler.pending() == 1

    def test_rejects_empty_payload(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        assert transport.start_exchange("", outcomes.append) is False
        assert scheduler.pending() == 0
        assert not transport.in_flight

    def test_write_failure_returns_false(
        self, tmp_path: Path, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        transport = BridgeTransport(blocker / "request.json", tmp_path / "response.json", scheduler)

        assert transport.start_exchange('{"prompt": "hi"}', outcomes.append) is False
        assert not transport.in_flight
        assert scheduler.pending() == 0
        assert outcomes == []


class TestPolling:
    def test_missing_response_reschedules(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        transport.start_exchange('{"prompt": "hi"}', outcomes.append)

        scheduler.advance(1.0)

        assert outcomes == []
        assert scheduler.pending() == 1

    def test_response_resolves_and_deletes_files(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        transport.start_exchange('{"prompt": "hi"}', outcomes.append)
        transport.response_path.write_text('{"success": true, "response": "Hello"}', encoding="utf-8")

        scheduler.advance(0.5)

        assert outcomes == [BridgeOutcome.ok("Hello")]
        assert not transport.request_path.exists()
        assert not transport.response_path.exists()
        assert not transport.in_flight
        assert scheduler.pending() == 0

    def test_response_with_bom_is_decoded(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        transport.start_exchange('{"prompt": "hi"}', outcomes.append)
        transport.response_path.write_bytes(b'\xef\xbb\xbf{"response": "bom"}')

        scheduler.advance(0.5)

        assert outcomes == [BridgeOutcome.ok("bom")]

    def test_timeout(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        transport.start_exchange('{"prompt": "hi"}', outcomes.append)

        scheduler.advance(1.5)
        assert outcomes == []
        scheduler.advance(0.5)

        assert outcomes == [BridgeOutcome.failure(ErrorCode.TIMEOUT, TIMEOUT_MESSAGE)]
        assert not transport.request_path.exists()
        assert not transport.in_flight

    def test_unreadable_response(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        transport.start_exchange('{"prompt": "hi"}', outcomes.append)
        transport.response_path.mkdir()

        scheduler.advance(0.5)

        assert outcomes == [
            BridgeOutcome.failure(ErrorCode.MALFORMED_RESPONSE, UNREADABLE_RESPONSE_MESSAGE)
        ]
        assert not transport.in_flight

    def test_poll_after_resolution_is_noop(
        self, transport: BridgeTransport, scheduler: ManualScheduler, outcomes: list[BridgeOutcome]
    ) -> None:
        transport.start_exchange('{"prompt": "hi"}', outcomes.append)
        transport.response_path.write_text('{"response": "once"}', encoding="utf-8")
        scheduler.advance(0.5)

        transport.poll_once()

        assert len(outcomes) == 1


class TestConfigure:
    def test_updates_paths_between_exchanges(self, transport: BridgeTransport, tmp_path: Path) -> None:
        transport.configure(
            request_path=tmp_path / "a.json",
            response_path=tmp_path / "b.json",
            poll_interval=0.1,
            response_timeout=5.0,
        )

        assert transport.request_path == tmp_path / "a.json"
        assert transport.response_path == tmp_path / "b.json"
        assert transport.poll_interval == 0.1
        assert transport.response_timeout == 5.0

    def test_refuses_during_exchange(
        self, transport: BridgeTransport, outcomes: list[BridgeOutcome], tmp_path: Path
    ) -> None:
        transport.start_exchange('{"prompt": "hi"}', outcomes.append)

        with pytest.raises(RuntimeError):
            transport.configure(request_path=tmp_path / "other.json")
