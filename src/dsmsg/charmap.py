"""Character map translating 16-bit message codes to editable text.

A character map is loaded once from a declarative entry list and is read-only
afterwards. Codec functions receive it explicitly; :func:`cached_charmap`
offers a process-wide, lock-guarded cache for applications that want one.
"""

from __future__ import annotations

import logging
import re
import threading
import xml.etree.ElementTree as ElementTree
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping

logger = logging.getLogger(__name__)

MAX_CODE = 0xFFFF
_HEX_CODE = re.compile(r"[0-9A-Fa-f]+")


class CharmapError(RuntimeError):
    """Raised when a character map source cannot be loaded."""


class EntryKind(str, Enum):
    """How a charmap entry participates in decoding and encoding."""

    CHAR = "char"
    ESCAPE = "escape"
    ALIAS = "alias"
    COMMAND = "command"


@dataclass(frozen=True)
class CharmapEntry:
    """One ``code -> text`` declaration from the charmap source."""

    code: int
    kind: EntryKind
    text: str


@dataclass(frozen=True)
class CharacterMap:
    """Immutable code/text mappings consumed by the message codec."""

    decode: Mapping[int, str] = field(default_factory=dict)
    encode: Mapping[str, int] = field(default_factory=dict)
    commands: Mapping[int, str] = field(default_factory=dict)
    command_ids: Mapping[str, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        reverse: Dict[str, int] = {}
        for code, name in self.commands.items():
            reverse.setdefault(name, code)
        object.__setattr__(self, "decode", MappingProxyType(dict(self.decode)))
        object.__setattr__(self, "encode", MappingProxyType(dict(self.encode)))
        object.__setattr__(self, "commands", MappingProxyType(dict(self.commands)))
        object.__setattr__(self, "command_ids", MappingProxyType(reverse))

    @classmethod
    def from_entries(cls, entries: Iterable[CharmapEntry]) -> "CharacterMap":
        """Build the three mappings from already-validated ``entries``."""

        decode: Dict[int, str] = {}
        encode: Dict[str, int] = {}
        commands: Dict[int, str] = {}
        for entry in entries:
            if entry.kind in (EntryKind.CHAR, EntryKind.ESCAPE):
                decode[entry.code] = entry.text
                encode[entry.text] = entry.code
            elif entry.kind is EntryKind.ALIAS:
                encode[entry.text] = entry.code
            else:
                commands[entry.code] = entry.text
        return cls(decode=decode, encode=encode, commands=commands)

    def command_name(self, command_id: int) -> str | None:
        return self.commands.get(command_id)


def parse_charmap_xml(source: str | bytes) -> List[CharmapEntry]:
    """Return the valid ``<entry>`` declarations found in ``source``.

    Entries with a malformed code, an unknown kind or no text are logged and
    skipped. A document that is not well-formed XML raises
    :class:`CharmapError`.
    """

    try:
        root = ElementTree.fromstring(source)
    except ElementTree.ParseError as exc:
        raise CharmapError(f"charmap is not well-formed XML: {exc}") from exc

    entries: List[CharmapEntry] = []
    for element in root.iter("entry"):
        raw_code = element.get("code")
        raw_kind = element.get("kind")
        text = element.text
        if raw_code is None or raw_kind is None or not text:
            logger.error("charmap entry with missing code, kind or text: %r", raw_code)
            continue
        if _HEX_CODE.fullmatch(raw_code) is None:
            logger.error("invalid code value in charmap: %r", raw_code)
            continue
        code = int(raw_code, 16)
        if code > MAX_CODE:
            logger.error("charmap code out of 16-bit range: %r", raw_code)
            continue
        try:
            kind = EntryKind(raw_kind.lower())
        except ValueError:
            logger.error("unknown kind %r in charmap entry %s", raw_kind, raw_code)
            continue
        entries.append(CharmapEntry(code=code, kind=kind, text=text))
    return entries


def load_charmap(path: Path | str) -> CharacterMap:
    """Load and build a :class:`CharacterMap` from the XML file at ``path``."""

    charmap_path = Path(path)
    try:
        raw = charmap_path.read_bytes()
    except OSError as exc:
        logger.error("charmap file could not be read: %s", charmap_path)
        raise CharmapError(f"charmap file could not be read: {charmap_path}") from exc

    charmap = CharacterMap.from_entries(parse_charmap_xml(raw))
    logger.info(
        "charmap loaded from %s: %d decode entries, %d encode entries, %d commands",
        charmap_path,
        len(charmap.decode),
        len(charmap.encode),
        len(charmap.commands),
    )
    return charmap


_CACHE: Dict[Path, CharacterMap] = {}
_CACHE_LOCK = threading.Lock()


def cached_charmap(path: Path | str) -> CharacterMap:
    """Return the process-wide :class:`CharacterMap` for ``path``, loading once."""

    resolved = Path(path).resolve()
    with _CACHE_LOCK:
        charmap = _CACHE.get(resolved)
        if charmap is None:
            charmap = load_charmap(resolved)
            _CACHE[resolved] = charmap
    return charmap


def clear_charmap_cache() -> None:
    with _CACHE_LOCK:
        _CACHE.clear()


__all__ = [
    "CharacterMap",
    "CharmapEntry",
    "CharmapError",
    "EntryKind",
    "cached_charmap",
    "clear_charmap_cache",
    "load_charmap",
    "parse_charmap_xml",
]
