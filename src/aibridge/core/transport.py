"""File-based transport between the client and the external bridge process.

One exchange is: delete stale files, write the request file, then poll for
the response file on a fixed interval until it appears or the timeout
elapses. Polling is a chain of discrete scheduler callbacks, never a blocking
wait, so the host's event loop stays responsive.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable

from ..utils import file_io
from .codec import Codec, FixedSchemaCodec
from .envelope import BridgeOutcome, decode_envelope
from .errors import (
    TIMEOUT_MESSAGE,
    UNREADABLE_RESPONSE_MESSAGE,
    ErrorCode,
)
from .scheduler import ScheduledCall, Scheduler

__all__ = ["BridgeTransport", "ResultHandler"]

LOGGER = logging.getLogger(__name__)

ResultHandler = Callable[[BridgeOutcome], None]

DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_RESPONSE_TIMEOUT = 60.0


class BridgeTransport:
    """Writes request files and polls for the matching response file.

    Only one exchange may be in flight; :meth:`start_exchange` refuses a
    second one. The request lifecycle is expected to reject concurrent
    submissions before they ever reach the transport.
    """

    def __init__(
        self,
        request_path: Path | str,
        response_path: Path | str,
        scheduler: Scheduler,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        response_timeout: float = DEFAULT_RESPONSE_TIMEOUT,
        codec: Codec | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._scheduler = scheduler
        self._codec = codec or FixedSchemaCodec()
        self._clock = clock
        self._on_result: ResultHandler | None = None
        self._started_at = 0.0
        self._poll_handle: ScheduledCall | None = None
        self._request_path = Path(request_path)
        self._response_path = Path(response_path)
        self._poll_interval = poll_interval
        self._response_timeout = response_timeout

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def in_flight(self) -> bool:
        return self._on_result is not None

    @property
    def request_path(self) -> Path:
        return self._request_path

    @property
    def response_path(self) -> Path:
        return self._response_path

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def response_timeout(self) -> float:
        return self._response_timeout

    def configure(
        self,
        *,
        request_path: Path | str | None = None,
        response_path: Path | str | None = None,
        poll_interval: float | None = None,
        response_timeout: float | None = None,
    ) -> None:
        """Update paths and timing between exchanges."""

        if self.in_flight:
            raise RuntimeError("Cannot reconfigure the bridge transport during an exchange")
        if request_path is not None:
            self._request_path = Path(request_path)
        if response_path is not None:
            self._response_path = Path(response_path)
        if poll_interval is not None:
            self._poll_interval = max(0.0, poll_interval)
        if response_timeout is not None:
            self._response_timeout = max(0.0, response_timeout)

    # ------------------------------------------------------------------
    # Exchange
    # ------------------------------------------------------------------

    def start_exchange(self, payload: str, on_result: ResultHandler) -> bool:
        """Write ``payload`` to the request file and start polling.

        Returns ``False`` (and schedules nothing) when an exchange is already
        running, the payload is empty, or the request file cannot be written.
        """

        if self.in_flight:
            LOGGER.warning("Bridge exchange rejected: another exchange is in flight")
            return False
        if not payload:
            LOGGER.warning("Bridge exchange rejected: empty payload")
            return False

        self._clear_files()
        try:
            file_io.write_text(self._request_path, payload)
        except OSError as exc:
            LOGGER.warning("Failed to write bridge request file %s: %s", self._request_path, exc)
            self._clear_files()
            return False

        self._started_at = self._clock()
        self._on_result = on_result
        LOGGER.debug(
            "Bridge request written to %s (%d chars); polling %s every %.2fs",
            self._request_path,
            len(payload),
            self._response_path,
            self._poll_interval,
        )
        self._schedule_poll()
        return True

    def poll_once(self) -> None:
        """Check for the response file once, then resolve or reschedule."""

        self._poll_handle = None
        if not self.in_flight:
            return

        if not self._response_path.exists():
            elapsed = self._clock() - self._started_at
            if elapsed < self._response_timeout:
                self._schedule_poll()
                return
            LOGGER.warning(
                "No bridge response at %s after %.1fs", self._response_path, elapsed
            )
            self._finalize(BridgeOutcome.failure(ErrorCode.TIMEOUT, TIMEOUT_MESSAGE))
            return

        try:
            content = file_io.read_text(self._response_path)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Failed to read bridge response file %s: %s", self._response_path, exc)
            self._finalize(
                BridgeOutcome.failure(ErrorCode.MALFORMED_RESPONSE, UNREADABLE_RESPONSE_MESSAGE)
            )
            return

        # The response file is gone before decoding starts.
        try:
            file_io.remove_file(self._response_path)
        except OSError as exc:
            LOGGER.warning("Failed to remove bridge response file %s: %s", self._response_path, exc)
        outcome = decode_envelope(content, self._codec)
        LOGGER.debug(
            "Bridge response decoded: success=%s, length=%d", outcome.success, len(outcome.text)
        )
        self._finalize(outcome)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _schedule_poll(self) -> None:
        self._poll_handle = self._scheduler.call_later(self._poll_interval, self.poll_once)

    def _finalize(self, outcome: BridgeOutcome) -> None:
        self._clear_files()
        handler = self._on_result
        self._on_result = None
        self._started_at = 0.0
        if self._poll_handle is not None:
            self._poll_handle.cancel()
            self._poll_handle = None
        if handler is not None:
            handler(outcome)

    def _clear_files(self) -> None:
        for path in (self._request_path, self._response_path):
            try:
                if file_io.remove_file(path):
                    LOGGER.debug("Removed bridge file %s", path)
            except OSError as exc:
                LOGGER.warning("Failed to remove bridge file %s: %s", path, exc)
