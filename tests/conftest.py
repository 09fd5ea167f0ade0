"""Pytest configuration to ensure the dsmsg package is importable."""
from __future__ import annotations

import sys
from pathlib import Path
from typing import List

import pytest

_REPO_ROOT = Path(__file__).resolve().parents[1]
_root_str = str(_REPO_ROOT)
if _root_str not in sys.path:
    sys.path.insert(0, _root_str)

import sitecustomize  # noqa: F401,E402  # Ensure src/ is on sys.path via sitecustomize hook.

from dsmsg.charmap import (  # noqa: E402
    CharacterMap,
    CharmapEntry,
    EntryKind,
    clear_charmap_cache,
)

DATA_DIR = Path(__file__).resolve().parent / "data"

UPPER_A = 0x012B
LOWER_A = 0x0145
SPACE = 0x01DE
NEWLINE = 0xE000


def code_for(char: str) -> int:
    """Return the fixture charmap code for an ASCII letter."""

    if "A" <= char <= "Z":
        return UPPER_A + ord(char) - ord("A")
    return LOWER_A + ord(char) - ord("a")


def _fixture_entries() -> List[CharmapEntry]:
    entries = [
        CharmapEntry(code_for(chr(ord("A") + i)), EntryKind.CHAR, chr(ord("A") + i))
        for i in range(26)
    ]
    entries += [
        CharmapEntry(code_for(chr(ord("a") + i)), EntryKind.CHAR, chr(ord("a") + i))
        for i in range(26)
    ]
    entries += [
        CharmapEntry(SPACE, EntryKind.CHAR, " "),
        CharmapEntry(0x01AB, EntryKind.CHAR, "!"),
        CharmapEntry(0x01B3, EntryKind.CHAR, "'"),
        CharmapEntry(0x01B3, EntryKind.ALIAS, "’"),
        CharmapEntry(0x0188, EntryKind.CHAR, "é"),
        CharmapEntry(0x01E0, EntryKind.CHAR, "[PK]"),
        CharmapEntry(0x01E1, EntryKind.CHAR, "[MN]"),
        CharmapEntry(0x2460, EntryKind.CHAR, "€"),
        CharmapEntry(NEWLINE, EntryKind.ESCAPE, "\\n"),
        CharmapEntry(0x25BC, EntryKind.ESCAPE, "\\r"),
        CharmapEntry(0x25BD, EntryKind.ESCAPE, "\\f"),
        CharmapEntry(0x0100, EntryKind.COMMAND, "STRVAR_1"),
        CharmapEntry(0x0200, EntryKind.COMMAND, "WAIT"),
        CharmapEntry(0x1A00, EntryKind.COMMAND, "STRVAR_1A"),
    ]
    return entries


@pytest.fixture
def charmap() -> CharacterMap:
    return CharacterMap.from_entries(_fixture_entries())


@pytest.fixture
def charmap_xml_path() -> Path:
    return DATA_DIR / "charmap.xml"


@pytest.fixture(autouse=True)
def _reset_charmap_cache():
    clear_charmap_cache()
    yield
    clear_charmap_cache()
