"""Error types surfaced through a request's error path.

Every failure a caller can observe maps to one :class:`ErrorCode`; the
exceptions below carry the code together with the human readable message that
ends up in ``AIRequest.error``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class ErrorCode:
    """Constants for the error kinds a request can fail with."""

    BUSY = "busy"
    LOCAL_PRECONDITION = "local_precondition"
    TRANSPORT_WRITE_FAILURE = "transport_write_failure"
    TIMEOUT = "timeout"
    BRIDGE_FAILURE = "bridge_failure"
    MALFORMED_RESPONSE = "malformed_response"
    CONFIGURATION_INVALID = "configuration_invalid"


BUSY_MESSAGE = "AI Assistant is currently processing another request. Please wait..."
TIMEOUT_MESSAGE = "Timed out waiting for AI bridge response."
UNKNOWN_BRIDGE_ERROR_MESSAGE = "AI bridge reported an unknown error."
EMPTY_RESPONSE_MESSAGE = "AI bridge returned an empty response."
WRITE_FAILURE_MESSAGE = "Failed to write AI bridge request file."
UNREADABLE_RESPONSE_MESSAGE = "Failed to read AI bridge response file."


@dataclass
class BridgeError(Exception):
    """Base exception for all request failures.

    Attributes:
        error_code: Machine-readable error identifier (see :class:`ErrorCode`).
        message: Human-readable error description.
        details: Additional structured error information.
    """

    error_code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result

    def __str__(self) -> str:
        return self.message


@dataclass
class BusyError(BridgeError):
    """Another request is already in flight."""

    error_code: str = field(default=ErrorCode.BUSY)
    message: str = field(default=BUSY_MESSAGE)


@dataclass
class LocalPreconditionError(BridgeError):
    """The request cannot be sent (no code selected, empty input, bad provider)."""

    error_code: str = field(default=ErrorCode.LOCAL_PRECONDITION)
    message: str = field(default="Request is missing required input.")


@dataclass
class TransportWriteError(BridgeError):
    """The request file could not be written."""

    error_code: str = field(default=ErrorCode.TRANSPORT_WRITE_FAILURE)
    message: str = field(default=WRITE_FAILURE_MESSAGE)


@dataclass
class BridgeTimeoutError(BridgeError):
    """No response file appeared within the configured window."""

    error_code: str = field(default=ErrorCode.TIMEOUT)
    message: str = field(default=TIMEOUT_MESSAGE)


@dataclass
class BridgeReportedError(BridgeError):
    """The response envelope explicitly signalled failure."""

    error_code: str = field(default=ErrorCode.BRIDGE_FAILURE)
    message: str = field(default=UNKNOWN_BRIDGE_ERROR_MESSAGE)


@dataclass
class MalformedResponseError(BridgeError):
    """A response file was present but carried no usable content."""

    error_code: str = field(default=ErrorCode.MALFORMED_RESPONSE)
    message: str = field(default=EMPTY_RESPONSE_MESSAGE)


@dataclass
class ConfigurationInvalidError(BridgeError):
    """Settings validation failed before the request could proceed."""

    error_code: str = field(default=ErrorCode.CONFIGURATION_INVALID)
    message: str = field(default="AI Assistant settings are invalid.")


_ERROR_TYPES: dict[str, type[BridgeError]] = {
    ErrorCode.BUSY: BusyError,
    ErrorCode.LOCAL_PRECONDITION: LocalPreconditionError,
    ErrorCode.TRANSPORT_WRITE_FAILURE: TransportWriteError,
    ErrorCode.TIMEOUT: BridgeTimeoutError,
    ErrorCode.BRIDGE_FAILURE: BridgeReportedError,
    ErrorCode.MALFORMED_RESPONSE: MalformedResponseError,
    ErrorCode.CONFIGURATION_INVALID: ConfigurationInvalidError,
}


def error_for_code(error_code: str, message: str) -> BridgeError:
    """Build the exception type matching ``error_code``."""

    error_type = _ERROR_TYPES.get(error_code)
    if error_type is None:
        return BridgeError(error_code=error_code, message=message)
    return error_type(message=message)


__all__ = [
    "ErrorCode",
    "BridgeError",
    "BusyError",
    "LocalPreconditionError",
    "TransportWriteError",
    "BridgeTimeoutError",
    "BridgeReportedError",
    "MalformedResponseError",
    "ConfigurationInvalidError",
    "error_for_code",
    "BUSY_MESSAGE",
    "TIMEOUT_MESSAGE",
    "UNKNOWN_BRIDGE_ERROR_MESSAGE",
    "EMPTY_RESPONSE_MESSAGE",
    "WRITE_FAILURE_MESSAGE",
    "UNREADABLE_RESPONSE_MESSAGE",
]
