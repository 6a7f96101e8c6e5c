"""Request models tracking one AI operation through its lifecycle.

``AIRequest`` is created when the caller submits, appended to the history
right away, and resolved exactly once when the exchange finishes.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _utcnow() -> datetime:
    """Return current UTC time."""
    return datetime.now(timezone.utc)


class RequestKind(Enum):
    """Kinds of request the assistant can issue.

    The enum name is what the bridge receives as ``metadata.requestType``.
    """

    CHAT = "chat"
    CODE_GENERATION = "generate"
    CODE_ANALYSIS = "analyze"
    CODE_DEBUGGING = "debug"
    DOCUMENTATION = "document"
    OPTIMIZATION = "optimize"
    EXPLANATION = "explain"
    REFACTORING = "refactor"

    @classmethod
    def parse(cls, value: str | RequestKind) -> RequestKind:
        """Accept an enum member, its name (``CODE_ANALYSIS``) or its tag (``analyze``)."""

        if isinstance(value, RequestKind):
            return value
        normalized = str(value).strip()
        try:
            return cls[normalized.upper()]
        except KeyError:
            pass
        try:
            return cls(normalized.lower())
        except ValueError:
            raise ValueError(f"Unknown request kind: {value!r}") from None


class RequestStatus(Enum):
    """Status of a request in its lifecycle."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class InvocationContext:
    """Snapshot of where the request was invoked from.

    Attributes:
        current_module: Name of the active editor module (e.g. ``ScriptEditor``).
        selected_code: Selected source excerpt, empty when nothing is selected.
        current_script: Path or name of the script open in the editor.
        selected_resources: Resources selected in the resource browser.
        selected_entities: Entities selected in the world editor.
    """

    current_module: str = ""
    selected_code: str = ""
    current_script: str = ""
    selected_resources: tuple[str, ...] = ()
    selected_entities: tuple[str, ...] = ()

    @property
    def has_code(self) -> bool:
        return bool(self.selected_code.strip())

    def summary(self) -> str:
        """Return a one-line description used in prompts and request metadata."""

        parts = [f"Module: {self.current_module or 'unknown'}"]
        if self.current_script:
            parts.append(f"Script: {self.current_script}")
        if self.selected_resources:
            parts.append(f"Selected resources: {len(self.selected_resources)}")
        if self.selected_entities:
            parts.append(f"Selected entities: {len(self.selected_entities)}")
        if self.has_code:
            parts.append(f"Selected code: {len(self.selected_code.splitlines())} line(s)")
        return "; ".join(parts)


@dataclass(slots=True)
class AIRequest:
    """One user-initiated AI operation.

    Once ``completed`` is true exactly one of ``response`` / ``error`` is
    non-empty; before completion both are empty.
    """

    kind: RequestKind
    user_input: str
    context: InvocationContext = field(default_factory=InvocationContext)
    request_id: str = field(default_factory=lambda: f"req-{uuid.uuid4().hex[:8]}")
    created_at: datetime = field(default_factory=_utcnow)
    status: RequestStatus = RequestStatus.PENDING
    completed: bool = False
    response: str = ""
    error: str = ""
    error_code: str | None = None
    completed_at: datetime | None = None

    @property
    def is_successful(self) -> bool:
        return self.status == RequestStatus.COMPLETED

    def mark_running(self) -> None:
        """Transition to running state."""
        self._ensure_open()
        self.status = RequestStatus.RUNNING

    def mark_completed(self, response: str) -> None:
        """Record a successful response."""
        self._ensure_open()
        if not response:
            raise ValueError("A completed request needs non-empty response text")
        self.status = RequestStatus.COMPLETED
        self.response = response
        self.completed = True
        self.completed_at = _utcnow()

    def mark_failed(self, error: str, error_code: str | None = None) -> None:
        """Record a failure."""
        self._ensure_open()
        if not error:
            raise ValueError("A failed request needs a non-empty error message")
        self.status = RequestStatus.FAILED
        self.error = error
        self.error_code = error_code
        self.completed = True
        self.completed_at = _utcnow()

    def _ensure_open(self) -> None:
        if self.completed:
            raise RuntimeError(f"Request {self.request_id} has already been resolved")


__all__ = [
    "RequestKind",
    "RequestStatus",
    "InvocationContext",
    "AIRequest",
]
