"""Binary message archives: table codec, body cipher and grammar combined.

Archive layout (little-endian)::

    u16 message_count
    u16 key
    message_count x (i32 offset, i32 length)   obfuscated, see cipher.py
    message bodies                              length x u16, obfuscated

Offsets are absolute byte positions within the archive and lengths count
16-bit codes, terminator included.
"""

from __future__ import annotations

import logging
import os
import struct
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

from .charmap import CharacterMap
from .cipher import TableEntry, apply_message_cipher
from .diagnostics import Diagnostic, DiagnosticLog, DiagnosticSummary
from .grammar import (
    TRAINER_NAME_PREFIX,
    decode_message,
    encode_message,
    strip_trainer_name,
    wrap_trainer_name,
)

logger = logging.getLogger(__name__)

HEADER = struct.Struct("<HH")
TABLE_ROW = struct.Struct("<II")
MAX_MESSAGES = 0xFFFF
MAX_KEY = 0xFFFF


class ArchiveError(ValueError):
    """Raised when an archive cannot be serialized as requested."""


@dataclass
class MessageArchive:
    """Ordered messages sharing one cipher key."""

    key: int = 0
    messages: List[str] = field(default_factory=list)
    archive_id: int = 0

    @property
    def message_count(self) -> int:
        return len(self.messages)

    def get_message(self, index: int) -> str:
        if 0 <= index < len(self.messages):
            return self.messages[index]
        return ""

    def set_message(self, index: int, message: str) -> bool:
        """Replace message ``index``, or append when ``index`` is one past the end."""

        if 0 <= index < len(self.messages):
            self.messages[index] = message
            return True
        if index == len(self.messages):
            self.messages.append(message)
            return True
        logger.warning("invalid message index %d for archive %d", index, self.archive_id)
        return False

    def simple_trainer_names(self) -> List[str]:
        return [strip_trainer_name(message) for message in self.messages]

    def set_simple_trainer_name(self, index: int, name: str) -> bool:
        """Update the bare trainer name at ``index``; ``False`` when nothing changed."""

        if index < 0:
            logger.error("invalid message index %d for archive %d", index, self.archive_id)
            return False
        if index >= len(self.messages):
            self.messages.append(f"{TRAINER_NAME_PREFIX}{name}}}")
            return True
        current = self.messages[index]
        updated = wrap_trainer_name(current, name)
        if updated == current:
            return False
        self.messages[index] = updated
        return True


@dataclass(frozen=True)
class DecodeResult(DiagnosticSummary):
    """Decoded archive plus the diagnostics recorded while reading it."""

    archive: MessageArchive
    diagnostics: Tuple[Diagnostic, ...] = ()


@dataclass(frozen=True)
class EncodeResult(DiagnosticSummary):
    """Serialized archive bytes plus the diagnostics recorded while encoding."""

    data: bytes
    diagnostics: Tuple[Diagnostic, ...] = ()


def decrypt_message(
    codes: Sequence[int],
    index: int,
    charmap: CharacterMap,
    diagnostics: Optional[DiagnosticLog] = None,
) -> str:
    """Remove the cipher of 1-based message ``index`` and decode ``codes``."""

    return decode_message(apply_message_cipher(codes, index), charmap, diagnostics)


def encrypt_message(
    text: str,
    index: int,
    charmap: CharacterMap,
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[int]:
    """Encode ``text`` and apply the cipher of 1-based message ``index``."""

    return apply_message_cipher(encode_message(text, charmap, diagnostics), index)


def _read_source(source: Union[bytes, bytearray, memoryview, BinaryIO]) -> bytes:
    if isinstance(source, (bytes, bytearray, memoryview)):
        return bytes(source)
    return source.read()


def read_archive(
    source: Union[bytes, bytearray, memoryview, BinaryIO],
    charmap: CharacterMap,
    *,
    archive_id: int = 0,
) -> DecodeResult:
    """Decode the message archive in ``source``.

    Structural damage never raises: the messages decoded before the first bad
    table row are returned together with an error diagnostic.
    """

    data = _read_source(source)
    log = DiagnosticLog(logger)
    if len(data) < HEADER.size:
        log.error(f"archive header truncated: {len(data)} bytes")
        return DecodeResult(MessageArchive(archive_id=archive_id), log.entries)

    message_count, key = HEADER.unpack_from(data, 0)
    archive = MessageArchive(key=key, archive_id=archive_id)

    available_rows = (len(data) - HEADER.size) // TABLE_ROW.size
    if available_rows < message_count:
        log.error(
            f"message table truncated: {message_count} entries declared, "
            f"{available_rows} present"
        )
    rows = min(message_count, available_rows)
    entries = [
        TableEntry.decrypt(
            row, key, *TABLE_ROW.unpack_from(data, HEADER.size + row * TABLE_ROW.size)
        )
        for row in range(rows)
    ]

    consumed = HEADER.size + rows * TABLE_ROW.size
    complete = rows == message_count
    for row, entry in enumerate(entries):
        index = row + 1
        logger.debug("message %d: offset=%d length=%d", row, entry.offset, entry.length)
        with log.message(row):
            if (
                entry.offset < 0
                or entry.length < 0
                or entry.offset + entry.byte_length > len(data)
            ):
                log.error(
                    f"invalid offset/length: offset={entry.offset}, "
                    f"length={entry.length}, archive size {len(data)}"
                )
                complete = False
                break
            codes = struct.unpack_from(f"<{entry.length}H", data, entry.offset)
            archive.messages.append(decrypt_message(codes, index, charmap, log))
        consumed = max(consumed, entry.offset + entry.byte_length)

    remaining = len(data) - consumed
    if complete and remaining > 0:
        log.warning(f"{remaining} unread bytes remain in the message archive")

    return DecodeResult(archive, log.entries)


def write_archive(archive: MessageArchive, charmap: CharacterMap) -> EncodeResult:
    """Serialize ``archive``; unresolvable tokens become ``0x0000`` codes."""

    if not 0 <= archive.key <= MAX_KEY:
        raise ArchiveError(f"archive key {archive.key:#x} is not a 16-bit value")
    if len(archive.messages) > MAX_MESSAGES:
        raise ArchiveError(
            f"archive holds {len(archive.messages)} messages; at most {MAX_MESSAGES} fit"
        )

    log = DiagnosticLog(logger)
    bodies: List[List[int]] = []
    for row, message in enumerate(archive.messages):
        with log.message(row):
            bodies.append(encrypt_message(message, row + 1, charmap, log))

    output = bytearray(HEADER.pack(len(bodies), archive.key))
    offset = HEADER.size + len(bodies) * TABLE_ROW.size
    for row, body in enumerate(bodies):
        entry = TableEntry(offset=offset, length=len(body))
        output += TABLE_ROW.pack(*entry.encrypt(row, archive.key))
        offset += entry.byte_length
    for body in bodies:
        output += struct.pack(f"<{len(body)}H", *body)

    return EncodeResult(bytes(output), log.entries)


def read_archive_file(
    path: Path | str, charmap: CharacterMap, *, archive_id: int = 0
) -> DecodeResult:
    with open(Path(path), "rb") as source:
        return read_archive(source, charmap, archive_id=archive_id)


def atomic_write_bytes(path: Path, payload: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "wb",
            dir=str(path.parent),
            prefix=path.name,
            suffix=".tmp",
            delete=False,
        ) as stream:
            temp_path = Path(stream.name)
            stream.write(payload)
            stream.flush()
            os.fsync(stream.fileno())
        os.replace(temp_path, path)
    except Exception:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()
        raise


def write_archive_file(
    path: Path | str, archive: MessageArchive, charmap: CharacterMap
) -> EncodeResult:
    """Serialize ``archive`` and atomically replace the file at ``path``."""

    result = write_archive(archive, charmap)
    atomic_write_bytes(Path(path), result.data)
    logger.info("saved archive %d to %s", archive.archive_id, path)
    return result


__all__ = [
    "ArchiveError",
    "DecodeResult",
    "EncodeResult",
    "MessageArchive",
    "decrypt_message",
    "encrypt_message",
    "read_archive",
    "read_archive_file",
    "write_archive",
    "write_archive_file",
]
