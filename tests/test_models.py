"""Tests for request models."""

from __future__ import annotations

import pytest

from aibridge.core.models import AIRequest, InvocationContext, RequestKind, RequestStatus


class TestRequestKind:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("CHAT", RequestKind.CHAT),
            ("chat", RequestKind.CHAT),
            ("analyze", RequestKind.CODE_ANALYSIS),
            ("code_debugging", RequestKind.CODE_DEBUGGING),
            (" refactor ", RequestKind.REFACTORING),
            (RequestKind.EXPLANATION, RequestKind.EXPLANATION),
        ],
    )
    def test_parse(self, raw: str | RequestKind, expected: RequestKind) -> None:
        assert RequestKind.parse(raw) is expected

    def test_parse_unknown(self) -> None:
        with pytest.raises(ValueError):
            RequestKind.parse("translate")


class TestInvocationContext:
    def test_summary_defaults(self) -> None:
        assert InvocationContext().summary() == "Module: unknown"

    def test_summary_lists_selection(self) -> None:
        context = InvocationContext(
            current_module="WorldEditor",
            current_script="scripts/Game/Player.c",
            selected_resources=("a.et", "b.et"),
            selected_entities=("Tree",),
            selected_code="int a;\nint b;",
        )

        assert context.summary() == (
            "Module: WorldEditor; Script: scripts/Game/Player.c; Selected resources: 2; "
            "Selected entities: 1; Selected code: 2 line(s)"
        )

    def test_has_code_ignores_whitespace(self) -> None:
        assert InvocationContext(selected_code="  \n").has_code is False
        assert InvocationContext(selected_code="x").has_code is True


class TestAIRequest:
    def test_new_request_is_open(self) -> None:
        request = AIRequest(kind=RequestKind.CHAT, user_input="hi")

        assert request.request_id.startswith("req-")
        assert request.status is RequestStatus.PENDING
        assert request.completed is False
        assert request.response == ""
        assert request.error == ""

    def test_ids_are_unique(self) -> None:
        first = AIRequest(kind=RequestKind.CHAT, user_input="a")
        second = AIRequest(kind=RequestKind.CHAT, user_input="b")

        assert first.request_id != second.request_id

    def test_mark_completed(self) -> None:
        request = AIRequest(kind=RequestKind.CHAT, user_input="hi")
        request.mark_running()
        request.mark_completed("answer")

        assert request.is_successful
        assert request.completed
        assert request.response == "answer"
        assert request.error == ""
        assert request.completed_at is not None

    def test_mark_failed(self) -> None:
        request = AIRequest(kind=RequestKind.CHAT, user_input="hi")
        request.mark_failed("boom", "timeout")

        assert not request.is_successful
        assert request.status is RequestStatus.FAILED
        assert request.error == "boom"
        assert request.error_code == "timeout"
        assert request.response == ""

    def test_resolves_only_once(self) -> None:
        request = AIRequest(kind=RequestKind.CHAT, user_input="hi")
        request.mark_completed("answer")

        with pytest.raises(RuntimeError):
            request.mark_failed("late")

    def test_empty_texts_rejected(self) -> None:
        request = AIRequest(kind=RequestKind.CHAT, user_input="hi")

        with pytest.raises(ValueError):
            request.mark_completed("")
        with pytest.raises(ValueError):
            request.mark_failed("")
        assert request.completed is False
