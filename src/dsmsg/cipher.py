"""XOR keystreams obfuscating the archive table and message bodies.

Both keystreams are pure functions of an index and the archive key, so rows
and messages can be processed independently and in any order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Tuple

TABLE_KEY_MULTIPLIER = 765
MESSAGE_KEY_MULTIPLIER = 596947
MESSAGE_KEY_INCREMENT = 18749

_MASK16 = 0xFFFF
_MASK32 = 0xFFFFFFFF


def table_entry_key(index: int, key: int) -> int:
    """Return the 32-bit mask for the 0-based table row ``index``."""

    local_key = (TABLE_KEY_MULTIPLIER * (index + 1) * key) & _MASK16
    return local_key | (local_key << 16)


def _to_signed32(value: int) -> int:
    value &= _MASK32
    return value - 0x100000000 if value & 0x80000000 else value


@dataclass(frozen=True)
class TableEntry:
    """Decoded ``(offset, length)`` row; ``length`` counts 16-bit codes."""

    offset: int
    length: int

    @property
    def byte_length(self) -> int:
        return self.length * 2

    def encrypt(self, index: int, key: int) -> Tuple[int, int]:
        """Return the raw unsigned 32-bit words stored on disk for this row."""

        mask = table_entry_key(index, key)
        return (self.offset ^ mask) & _MASK32, (self.length ^ mask) & _MASK32

    @classmethod
    def decrypt(
        cls, index: int, key: int, raw_offset: int, raw_length: int
    ) -> "TableEntry":
        mask = table_entry_key(index, key)
        return cls(
            offset=_to_signed32(raw_offset ^ mask),
            length=_to_signed32(raw_length ^ mask),
        )


def message_keystream(index: int) -> Iterator[int]:
    """Yield the 16-bit masks for the 1-based message ``index`` forever."""

    state = (index * MESSAGE_KEY_MULTIPLIER) & _MASK16
    while True:
        yield state
        state = (state + MESSAGE_KEY_INCREMENT) & _MASK16


def apply_message_cipher(codes: Iterable[int], index: int) -> List[int]:
    """XOR ``codes`` with the keystream of message ``index``.

    The transform is its own inverse, so it serves both directions.
    """

    return [
        (code ^ mask) & _MASK16
        for code, mask in zip(codes, message_keystream(index))
    ]


__all__ = [
    "MESSAGE_KEY_INCREMENT",
    "MESSAGE_KEY_MULTIPLIER",
    "TABLE_KEY_MULTIPLIER",
    "TableEntry",
    "apply_message_cipher",
    "message_keystream",
    "table_entry_key",
]
