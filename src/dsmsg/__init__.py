"""Codec for Nintendo DS Pokemon message archives."""
from __future__ import annotations

from .archive import (
    ArchiveError,
    DecodeResult,
    EncodeResult,
    MessageArchive,
    decrypt_message,
    encrypt_message,
    read_archive,
    read_archive_file,
    write_archive,
    write_archive_file,
)
from .charmap import (
    CharacterMap,
    CharmapEntry,
    CharmapError,
    EntryKind,
    cached_charmap,
    load_charmap,
    parse_charmap_xml,
)
from .diagnostics import Diagnostic, Severity
from .grammar import decode_message, encode_message
from .text_format import (
    TextFormatError,
    format_text_archive,
    parse_text_archive,
    read_text_archive,
    write_text_archive,
)

__all__ = [
    "ArchiveError",
    "CharacterMap",
    "CharmapEntry",
    "CharmapError",
    "DecodeResult",
    "Diagnostic",
    "EncodeResult",
    "EntryKind",
    "MessageArchive",
    "Severity",
    "TextFormatError",
    "cached_charmap",
    "decode_message",
    "decrypt_message",
    "encode_message",
    "encrypt_message",
    "format_text_archive",
    "load_charmap",
    "parse_charmap_xml",
    "parse_text_archive",
    "read_archive",
    "read_archive_file",
    "read_text_archive",
    "write_archive",
    "write_archive_file",
    "write_text_archive",
]
