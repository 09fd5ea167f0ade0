"""Human-editable interchange format for message archives.

One message per line, preceded by an optional ``# Key: 0xHHHH`` header that
carries the archive key. Escapes inside the lines use the grammar syntax, so
no line ever contains a raw newline.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from .archive import MAX_KEY, MessageArchive, atomic_write_bytes

logger = logging.getLogger(__name__)

KEY_HEADER_PREFIX = "# Key:"
_HEX_KEY = re.compile(r"(?:0[xX])?([0-9A-Fa-f]+)")


class TextFormatError(ValueError):
    """Raised when interchange text carries an unusable key header."""


def format_text_archive(archive: MessageArchive) -> str:
    """Return the interchange text for ``archive``."""

    header = f"{KEY_HEADER_PREFIX} 0x{archive.key:04X}"
    if not archive.messages:
        return header
    return header + "\n" + "\n".join(archive.messages)


def _parse_key(line: str) -> int:
    raw = line[len(KEY_HEADER_PREFIX) :].strip()
    match = _HEX_KEY.fullmatch(raw)
    if match is None:
        raise TextFormatError(f"invalid key header: {line!r}")
    key = int(match.group(1), 16)
    if not 0 <= key <= MAX_KEY:
        raise TextFormatError(f"key {raw} is not a 16-bit value")
    return key


def parse_text_archive(
    text: str, *, archive_id: int = 0, default_key: int = 0
) -> MessageArchive:
    """Parse interchange ``text``; ``default_key`` applies without a header.

    A trailing newline yields a final empty message, mirroring how the
    exported text is written.
    """

    body = text.replace("\r\n", "\n")
    if body.startswith(KEY_HEADER_PREFIX):
        header, newline, body = body.partition("\n")
        key = _parse_key(header)
        messages = body.split("\n") if newline else []
    else:
        key = default_key
        messages = body.split("\n") if body else []
    return MessageArchive(key=key, messages=messages, archive_id=archive_id)


def read_text_archive(
    path: Path | str, *, archive_id: int = 0, default_key: int = 0
) -> MessageArchive:
    text_path = Path(path)
    archive = parse_text_archive(
        text_path.read_text(encoding="utf-8-sig"),
        archive_id=archive_id,
        default_key=default_key,
    )
    logger.info("imported text archive %d from %s", archive_id, text_path)
    return archive


def write_text_archive(path: Path | str, archive: MessageArchive) -> None:
    """Atomically write ``archive`` as UTF-8 interchange text (no BOM)."""

    text_path = Path(path)
    atomic_write_bytes(text_path, format_text_archive(archive).encode("utf-8"))
    logger.info("exported text archive %d to %s", archive.archive_id, text_path)


__all__ = [
    "KEY_HEADER_PREFIX",
    "TextFormatError",
    "format_text_archive",
    "parse_text_archive",
    "read_text_archive",
    "write_text_archive",
]
