"""Bounded, chronological log of submitted requests."""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterator

from .models import AIRequest

__all__ = ["HistoryLog", "DEFAULT_MAX_ENTRIES", "MAX_HISTORY_LIMIT"]

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 100
MAX_HISTORY_LIMIT = 1000


class HistoryLog:
    """Ordered request history with oldest-first eviction.

    When retention is disabled the log keeps only the most recent request.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES, *, enabled: bool = True) -> None:
        self._entries: deque[AIRequest] = deque()
        self._max_entries = max(0, max_entries)
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def max_entries(self) -> int:
        return self._max_entries

    @property
    def entries(self) -> tuple[AIRequest, ...]:
        """Read-only snapshot, oldest first."""
        return tuple(self._entries)

    def configure(self, *, enabled: bool, max_entries: int) -> None:
        """Apply retention settings; they take effect on the next :meth:`record`."""

        self._enabled = enabled
        self._max_entries = max(0, max_entries)

    def record(self, request: AIRequest) -> None:
        if not self._enabled:
            self._entries.clear()
            self._entries.append(request)
            return

        self._entries.append(request)
        evicted = 0
        while len(self._entries) > self._max_entries:
            self._entries.popleft()
            evicted += 1
        if evicted:
            LOGGER.debug("History trimmed %d oldest entr%s", evicted, "y" if evicted == 1 else "ies")

    def latest(self) -> AIRequest | None:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[AIRequest]:
        return iter(tuple(self._entries))
