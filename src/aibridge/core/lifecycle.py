"""Request lifecycle: single-flight state machine over the bridge transport.

States run ``IDLE -> BUILDING -> AWAITING_BRIDGE -> RESOLVED -> IDLE``. A
submit while not idle is answered with a busy error and leaves the running
exchange alone. Each submit returns a :class:`PendingResult`, a single-use
channel that is resolved exactly once.
"""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Protocol, Union, runtime_checkable

from ..services.settings import Provider, Settings, SettingsManager
from .codec import Codec, FixedSchemaCodec
from .envelope import BridgeOutcome
from .errors import (
    BUSY_MESSAGE,
    WRITE_FAILURE_MESSAGE,
    BridgeError,
    ErrorCode,
    LocalPreconditionError,
    error_for_code,
)
from .events import EventBus, RequestCompleted, RequestFailed, RequestSubmitted
from .history import HistoryLog
from .models import AIRequest, InvocationContext, RequestKind
from .prompts import DEFAULT_LANGUAGE, build_prompt
from .scheduler import Scheduler
from .transport import BridgeTransport

__all__ = [
    "LifecycleState",
    "PendingResult",
    "ResponseCallback",
    "AssistantSession",
    "build_payload",
]

LOGGER = logging.getLogger(__name__)


class LifecycleState(Enum):
    IDLE = "idle"
    BUILDING = "building"
    AWAITING_BRIDGE = "awaiting_bridge"
    RESOLVED = "resolved"


@runtime_checkable
class ResponseCallback(Protocol):
    """Two-method callback shape used by editor dialogs."""

    def on_success(self, response: str) -> None:  # pragma: no cover - Protocol placeholder
        ...

    def on_error(self, error: str) -> None:  # pragma: no cover - Protocol placeholder
        ...


DoneCallback = Callable[["PendingResult"], None]
CallbackLike = Union[ResponseCallback, DoneCallback]


class PendingResult:
    """Single-use result channel for one submitted request.

    Resolved exactly once, either with response text or with a
    :class:`BridgeError`. Resolving twice raises ``RuntimeError``.
    """

    __slots__ = ("_request", "_response", "_error", "_done", "_callbacks")

    def __init__(self, request: AIRequest | None = None) -> None:
        self._request = request
        self._response: str | None = None
        self._error: BridgeError | None = None
        self._done = False
        self._callbacks: list[DoneCallback] = []

    @property
    def request(self) -> AIRequest | None:
        """The request record, or ``None`` for a rejected (busy) submit."""
        return self._request

    def done(self) -> bool:
        return self._done

    def succeeded(self) -> bool:
        return self._done and self._error is None

    def result(self) -> str:
        """Return the response text, or raise the request's :class:`BridgeError`."""

        if not self._done:
            raise RuntimeError("Request has not resolved yet")
        if self._error is not None:
            raise self._error
        return self._response or ""

    def error(self) -> BridgeError | None:
        if not self._done:
            raise RuntimeError("Request has not resolved yet")
        return self._error

    def add_done_callback(self, callback: DoneCallback) -> None:
        """Run ``callback(self)`` on resolution, or right away if already resolved."""

        if self._done:
            callback(self)
            return
        self._callbacks.append(callback)

    def resolve_success(self, response: str) -> None:
        self._resolve(response=response, error=None)

    def resolve_error(self, error_code: str, message: str) -> None:
        self._resolve(response=None, error=error_for_code(error_code, message))

    def _resolve(self, *, response: str | None, error: BridgeError | None) -> None:
        if self._done:
            raise RuntimeError("PendingResult has already been resolved")
        self._response = response
        self._error = error
        self._done = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback(self)


def build_payload(
    request: AIRequest,
    prompt: str,
    settings: Settings,
    codec: Codec,
) -> str:
    """Serialize ``request`` into the bridge request file body.

    Raises:
        LocalPreconditionError: the configured provider cannot be resolved.
    """

    api = settings.api
    try:
        provider = Provider.parse(api.provider)
    except ValueError as exc:
        raise LocalPreconditionError(message=str(exc)) from exc

    bridge_settings: dict[str, Any] = {
        "maxTokens": int(api.max_tokens),
        "temperature": float(api.temperature),
        "timeout": int(api.response_timeout * 1000),
        "request_file": str(api.request_file),
        "response_file": str(api.response_file),
    }
    if api.api_key:
        bridge_settings["apiKey"] = api.api_key
    if provider is Provider.CUSTOM_ENDPOINT:
        bridge_settings["endpoint"] = api.custom_endpoint
        bridge_settings["customEndpoint"] = api.custom_endpoint

    return codec.encode(
        {
            "service": provider.value,
            "prompt": prompt,
            "model": api.model,
            "settings": bridge_settings,
            "metadata": {
                "requestType": request.kind.name,
                "context": request.context.summary(),
            },
        }
    )


class AssistantSession:
    """Explicit session object owning settings, history and the transport.

    Args:
        settings: The settings manager; read on every submit so setter changes
            apply to the next request.
        scheduler: Host scheduler used for bridge polling.
        history: Optional history log; a fresh one is created otherwise.
        codec: Wire codec, the fixed-schema codec by default.
        event_bus: Optional bus for request events.
        clock: Monotonic clock used for timeouts.
        language: Target language named in prompts.
    """

    def __init__(
        self,
        settings: SettingsManager,
        scheduler: Scheduler,
        *,
        history: HistoryLog | None = None,
        codec: Codec | None = None,
        event_bus: EventBus | None = None,
        clock: Callable[[], float] = time.monotonic,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._settings = settings
        self._codec = codec or FixedSchemaCodec()
        self._bus = event_bus
        self._language = language
        behavior = settings.behavior
        self._history = history if history is not None else HistoryLog(
            behavior.max_history_entries, enabled=behavior.save_request_history
        )
        api = settings.api
        self._transport = BridgeTransport(
            api.request_file,
            api.response_file,
            scheduler,
            poll_interval=api.poll_interval,
            response_timeout=api.response_timeout,
            codec=self._codec,
            clock=clock,
        )
        self._state = LifecycleState.IDLE
        self._active: tuple[AIRequest, PendingResult] | None = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_processing(self) -> bool:
        return self._state is not LifecycleState.IDLE

    @property
    def active_request(self) -> AIRequest | None:
        return self._active[0] if self._active else None

    @property
    def history(self) -> HistoryLog:
        return self._history

    @property
    def transport(self) -> BridgeTransport:
        return self._transport

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(
        self,
        kind: RequestKind | str,
        user_input: str,
        context: InvocationContext | None = None,
        callback: CallbackLike | None = None,
    ) -> PendingResult:
        """Start a request; the outcome arrives on the returned :class:`PendingResult`."""

        if self.is_processing:
            LOGGER.info("Submit rejected: request %s still in flight", self._active_id())
            return self._reject(ErrorCode.BUSY, BUSY_MESSAGE, callback)
        try:
            request_kind = RequestKind.parse(kind)
        except ValueError as exc:
            LOGGER.info("Submit rejected: %s", exc)
            return self._reject(ErrorCode.LOCAL_PRECONDITION, str(exc), callback)

        self._state = LifecycleState.BUILDING
        request = AIRequest(kind=request_kind, user_input=user_input, context=context or InvocationContext())
        pending = PendingResult(request)
        _attach(pending, callback)
        self._active = (request, pending)

        behavior = self._settings.behavior
        self._history.configure(
            enabled=behavior.save_request_history, max_entries=behavior.max_history_entries
        )
        self._history.record(request)
        request.mark_running()
        LOGGER.debug(
            "Building request %s (kind=%s, input_length=%d)",
            request.request_id,
            request.kind.name,
            len(user_input),
        )

        problems = self._settings.problems()
        if problems:
            self._resolve(BridgeOutcome.failure(ErrorCode.CONFIGURATION_INVALID, " ".join(problems)))
            return pending

        try:
            prompt = build_prompt(request, language=self._language, code_style=behavior.code_style)
            payload = build_payload(request, prompt, self._settings.settings, self._codec)
        except BridgeError as exc:
            self._resolve(BridgeOutcome.failure(exc.error_code, exc.message))
            return pending
        except Exception as exc:
            LOGGER.exception("Failed to build request %s", request.request_id)
            self._resolve(BridgeOutcome.failure(ErrorCode.LOCAL_PRECONDITION, f"Failed to build request: {exc}"))
            return pending

        api = self._settings.api
        self._transport.configure(
            request_path=Path(api.request_file),
            response_path=Path(api.response_file),
            poll_interval=api.poll_interval,
            response_timeout=api.response_timeout,
        )
        self._state = LifecycleState.AWAITING_BRIDGE
        if not self._transport.start_exchange(payload, self._resolve):
            self._resolve(BridgeOutcome.failure(ErrorCode.TRANSPORT_WRITE_FAILURE, WRITE_FAILURE_MESSAGE))
            return pending

        self._publish(RequestSubmitted(request_id=request.request_id, kind=request.kind.name))
        return pending

    async def ask(
        self,
        kind: RequestKind | str,
        user_input: str,
        context: InvocationContext | None = None,
    ) -> str:
        """Coroutine wrapper around :meth:`submit`.

        Returns the response text or raises the request's :class:`BridgeError`.
        Polling must run on the same loop, e.g. through :class:`AsyncioScheduler`.
        """

        loop = asyncio.get_running_loop()
        future: asyncio.Future[str] = loop.create_future()

        def _transfer(result: PendingResult) -> None:
            if future.done():
                return
            error = result.error()
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result.result())

        self.submit(kind, user_input, context).add_done_callback(_transfer)
        return await future

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _resolve(self, outcome: BridgeOutcome) -> None:
        if self._active is None:  # pragma: no cover - transport resolves once per exchange
            LOGGER.warning("Bridge outcome arrived with no active request")
            return
        request, pending = self._active
        self._state = LifecycleState.RESOLVED

        if outcome.success:
            request.mark_completed(outcome.text)
        else:
            request.mark_failed(outcome.text, outcome.error_code)

        self._active = None
        self._state = LifecycleState.IDLE

        if outcome.success:
            LOGGER.debug("Request %s completed (%d chars)", request.request_id, len(outcome.text))
            self._publish(RequestCompleted(request_id=request.request_id, response_text=outcome.text))
            pending.resolve_success(outcome.text)
        else:
            LOGGER.info(
                "Request %s failed [%s]: %s", request.request_id, outcome.error_code, outcome.text
            )
            error_code = outcome.error_code or ErrorCode.BRIDGE_FAILURE
            self._publish(RequestFailed(request_id=request.request_id, error_code=error_code, error=outcome.text))
            pending.resolve_error(error_code, outcome.text)

    def _reject(self, error_code: str, message: str, callback: CallbackLike | None) -> PendingResult:
        rejected = PendingResult()
        _attach(rejected, callback)
        self._publish(RequestFailed(request_id=None, error_code=error_code, error=message))
        rejected.resolve_error(error_code, message)
        return rejected

    def _active_id(self) -> str:
        return self._active[0].request_id if self._active else "unknown"

    def _publish(self, event: Any) -> None:
        if self._bus is not None:
            self._bus.publish(event)


def _attach(pending: PendingResult, callback: CallbackLike | None) -> None:
    if callback is None:
        return
    if isinstance(callback, ResponseCallback):
        target = callback

        def _dispatch(result: PendingResult) -> None:
            error = result.error()
            if error is None:
                target.on_success(result.result())
            else:
                target.on_error(error.message)

        pending.add_done_callback(_dispatch)
        return
    pending.add_done_callback(callback)
