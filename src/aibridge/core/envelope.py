"""Interpretation of the response envelope written by the bridge process."""

from __future__ import annotations

from dataclasses import dataclass

from .codec import Codec, FixedSchemaCodec
from .errors import (
    EMPTY_RESPONSE_MESSAGE,
    UNKNOWN_BRIDGE_ERROR_MESSAGE,
    ErrorCode,
)

__all__ = ["BridgeOutcome", "decode_envelope"]

_DEFAULT_CODEC = FixedSchemaCodec()


@dataclass(slots=True, frozen=True)
class BridgeOutcome:
    """Result of one exchange: either response text or an error message."""

    success: bool
    text: str
    error_code: str | None = None

    @classmethod
    def ok(cls, text: str) -> BridgeOutcome:
        return cls(success=True, text=text)

    @classmethod
    def failure(cls, error_code: str, message: str) -> BridgeOutcome:
        return cls(success=False, text=message, error_code=error_code)


def decode_envelope(text: str, codec: Codec | None = None) -> BridgeOutcome:
    """Decode response file content into a :class:`BridgeOutcome`.

    An explicit ``"success": false`` always wins over a present ``response``
    field, and a missing or empty ``response`` degrades to an error rather
    than an empty success.
    """

    active = codec or _DEFAULT_CODEC

    success, has_success = active.decode_bool(text, "success")
    if has_success and not success:
        error, _ = active.decode_string(text, "error")
        return BridgeOutcome.failure(ErrorCode.BRIDGE_FAILURE, error or UNKNOWN_BRIDGE_ERROR_MESSAGE)

    response, has_response = active.decode_string(text, "response")
    if has_response and response:
        return BridgeOutcome.ok(response)

    error, has_error = active.decode_string(text, "error")
    if has_error and error:
        return BridgeOutcome.failure(ErrorCode.BRIDGE_FAILURE, error)
    return BridgeOutcome.failure(ErrorCode.MALFORMED_RESPONSE, EMPTY_RESPONSE_MESSAGE)
