"""Fixed-schema JSON codec for the bridge wire format.

The request and response files use a tiny, fixed set of fields, so this module
only knows how to emit a flat (or shallowly nested) object and how to pull a
single string or boolean field back out of a JSON text blob. It is not a
general JSON parser: only the first occurrence of a key is consulted, and
nested objects that reuse a key name are not disambiguated.
"""

from __future__ import annotations

from typing import Any, Mapping, Protocol, runtime_checkable

__all__ = [
    "Codec",
    "FixedSchemaCodec",
    "encode",
    "escape_string",
    "decode_string",
    "decode_bool",
]

_ESCAPES: Mapping[str, str] = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}
_UNESCAPES: Mapping[str, str] = {
    "\\": "\\",
    '"': '"',
    "n": "\n",
    "r": "\r",
    "t": "\t",
}
_WHITESPACE = " \t\r\n"


@runtime_checkable
class Codec(Protocol):
    """Interface the transport and lifecycle use to talk JSON."""

    def encode(self, fields: Mapping[str, Any]) -> str:  # pragma: no cover - Protocol placeholder
        ...

    def decode_string(self, text: str, key: str) -> tuple[str, bool]:  # pragma: no cover
        ...

    def decode_bool(self, text: str, key: str) -> tuple[bool, bool]:  # pragma: no cover
        ...


class FixedSchemaCodec:
    """Default :class:`Codec` backed by the module-level functions."""

    def encode(self, fields: Mapping[str, Any]) -> str:
        return encode(fields)

    def decode_string(self, text: str, key: str) -> tuple[str, bool]:
        return decode_string(text, key)

    def decode_bool(self, text: str, key: str) -> tuple[bool, bool]:
        return decode_bool(text, key)


def escape_string(value: str) -> str:
    """Escape backslash, quote, newline, carriage return and tab."""

    return "".join(_ESCAPES.get(char, char) for char in value)


def encode(fields: Mapping[str, Any]) -> str:
    """Encode ``fields`` as a JSON object literal, preserving insertion order."""

    parts = [f'"{escape_string(str(key))}": {_encode_value(value)}' for key, value in fields.items()]
    return "{" + ", ".join(parts) + "}"


def _encode_value(value: Any) -> str:
    # bool subclasses int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return f'"{escape_string(value)}"'
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            raise ValueError(f"Cannot encode non-finite float {value!r}")
        return repr(value)
    if isinstance(value, Mapping):
        return encode(value)
    raise TypeError(f"Unsupported value type for bridge payload: {type(value).__name__}")


def decode_string(text: str, key: str) -> tuple[str, bool]:
    """Return ``(value, True)`` for the first string field named ``key``.

    Returns ``("", False)`` when the key is absent, the value is not a quoted
    string, or the string is unterminated.
    """

    index = _locate_value(text, key)
    if index < 0 or index >= len(text) or text[index] != '"':
        return "", False

    chars: list[str] = []
    position = index + 1
    while position < len(text):
        char = text[position]
        if char == '"':
            return "".join(chars), True
        if char == "\\":
            position += 1
            if position >= len(text):
                break
            escaped = text[position]
            chars.append(_UNESCAPES.get(escaped, escaped))
        else:
            chars.append(char)
        position += 1
    return "", False


def decode_bool(text: str, key: str) -> tuple[bool, bool]:
    """Return ``(value, True)`` for the first literal ``true``/``false`` named ``key``."""

    index = _locate_value(text, key)
    if index < 0:
        return False, False
    for literal, value in (("true", True), ("false", False)):
        end = index + len(literal)
        if text.startswith(literal, index) and not _is_identifier_char(text, end):
            return value, True
    return False, False


def _locate_value(text: str, key: str) -> int:
    """Return the index of the first non-blank character after ``"key":``, or -1."""

    needle = f'"{key}"'
    start = text.find(needle)
    if start < 0:
        return -1
    position = _skip_whitespace(text, start + len(needle))
    if position >= len(text) or text[position] != ":":
        return -1
    return _skip_whitespace(text, position + 1)


def _skip_whitespace(text: str, position: int) -> int:
    while position < len(text) and text[position] in _WHITESPACE:
        position += 1
    return position


def _is_identifier_char(text: str, position: int) -> bool:
    return position < len(text) and (text[position].isalnum() or text[position] == "_")
