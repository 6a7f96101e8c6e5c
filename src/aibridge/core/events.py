"""Event bus used to tell reporting collaborators about request and settings changes.

The request lifecycle and the settings manager publish here; UI panels,
status bars or loggers subscribe without either side importing the other.
"""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar
from weakref import WeakMethod

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="Event")

Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events."""


@dataclass(slots=True)
class RequestSubmitted(Event):
    """Emitted when a request has been accepted and its payload handed to the bridge.

    Attributes:
        request_id: Identifier of the request.
        kind: ``RequestKind`` name.
    """

    request_id: str
    kind: str


@dataclass(slots=True)
class RequestCompleted(Event):
    """Emitted when a request resolved with response text."""

    request_id: str
    response_text: str


@dataclass(slots=True)
class RequestFailed(Event):
    """Emitted when a request resolved with an error (including busy rejections)."""

    request_id: str | None
    error_code: str
    error: str


@dataclass(slots=True)
class SettingsChanged(Event):
    """Emitted after a setter has persisted a new value.

    Attributes:
        field: Dotted name of the changed setting (``api.model``).
        value: The new value; secrets are redacted.
    """

    field: str
    value: Any


class EventBus(Generic[E]):
    """Publish/subscribe hub keyed by exact event type.

    Bound methods are held weakly so a closed panel stops receiving events
    once it is collected; plain functions and lambdas are held strongly.
    Single-threaded: everything runs on the host's main loop.
    """

    __slots__ = ("_subscriptions",)

    def __init__(self) -> None:
        self._subscriptions: defaultdict[type[Event], list[_Subscription]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        self._subscriptions[event_type].append(_Subscription(handler))
        logger.debug("%s subscribed to %s", _describe(handler), event_type.__name__)

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Drop the oldest registration of ``handler``; unknown handlers are ignored."""

        subscriptions = self._subscriptions.get(event_type, [])
        for subscription in subscriptions:
            if subscription.target() == handler:
                subscriptions.remove(subscription)
                return

    def publish(self, event: E) -> None:
        """Deliver ``event`` to its subscribers in registration order.

        A subscriber that raises is logged and skipped.
        """

        event_type = type(event)
        subscriptions = self._subscriptions.get(event_type)
        if not subscriptions:
            return

        live: list[_Subscription] = []
        for subscription in tuple(subscriptions):
            target = subscription.target()
            if target is None:
                continue
            live.append(subscription)
            try:
                target(event)
            except Exception:
                logger.exception("%s failed while handling %s", _describe(target), event_type.__name__)
        if len(live) != len(subscriptions):
            subscriptions[:] = [entry for entry in subscriptions if entry.target() is not None]

    def clear(self) -> None:
        self._subscriptions.clear()

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is None:
            return sum(map(len, self._subscriptions.values()))
        return len(self._subscriptions.get(event_type, ()))


class _Subscription:
    __slots__ = ("target",)

    def __init__(self, handler: Handler) -> None:
        if inspect.ismethod(handler):
            self.target: Callable[[], Handler | None] = WeakMethod(handler)
        else:
            self.target = lambda: handler


def _describe(handler: Handler) -> str:
    if inspect.ismethod(handler):
        return f"{type(handler.__self__).__name__}.{handler.__func__.__name__}"
    return getattr(handler, "__qualname__", repr(handler))


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "RequestSubmitted",
    "RequestCompleted",
    "RequestFailed",
    "SettingsChanged",
]
