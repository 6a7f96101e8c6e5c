"""File helpers for the request/response handoff files.

The bridge process watches the exchange directory, so request files are
published with an atomic rename and response files may arrive with a BOM
from whatever runtime wrote them.
"""

from __future__ import annotations

import codecs
import os
import tempfile
from pathlib import Path

__all__ = ["read_text", "write_text", "remove_file"]

_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)
_FALLBACK_ENCODING = "latin-1"


def read_text(path: Path | str, *, encoding: str | None = None) -> str:
    """Return the decoded contents of ``path``.

    Without an explicit ``encoding`` a byte-order mark selects the codec;
    otherwise UTF-8 is tried first and Latin-1 accepts anything left.
    """

    raw = Path(path).read_bytes()
    if encoding is not None:
        return raw.decode(encoding)
    for bom, codec_name in _BOMS:
        if raw.startswith(bom):
            return raw.decode(codec_name)
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode(_FALLBACK_ENCODING)


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    atomic: bool = True,
) -> Path:
    """Write ``content`` to ``path``, creating parent directories.

    With ``atomic`` (the default) the text lands in a sibling temp file that
    is renamed over the target, so readers see either nothing or everything.
    """

    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    if not atomic:
        target.write_text(content, encoding=encoding, newline="")
        return target

    fd, staging = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".part", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding=encoding, newline="") as stream:
            stream.write(content)
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(staging, target)
    except BaseException:
        Path(staging).unlink(missing_ok=True)
        raise
    return target


def remove_file(path: Path | str) -> bool:
    """Delete ``path``; ``False`` when there was nothing to delete."""

    try:
        Path(path).unlink()
    except FileNotFoundError:
        return False
    return True
