"""Bit packing for trainer-name messages.

Trainer names store 9-bit character codes LSB-first inside 15-bit words; the
top bit of every 16-bit storage word stays clear. The 9-bit value ``0x1FF``
terminates the name.
"""

from __future__ import annotations

from typing import List, Sequence, Tuple

TRAINER_NAME_MARKER = 0xF100
NAME_SENTINEL = 0x1FF
CHAR_BITS = 9
WORD_BITS = 15

_CHAR_MASK = (1 << CHAR_BITS) - 1
_WORD_MASK = (1 << WORD_BITS) - 1
_TERMINATOR = 0xFFFF


def packed_word_count(char_count: int) -> int:
    """Return the number of words :func:`pack_trainer_name` emits."""

    bits = CHAR_BITS * (char_count + 1)
    return -(-bits // WORD_BITS)


def pack_trainer_name(codes: Sequence[int]) -> List[int]:
    """Pack 9-bit ``codes`` and the trailing sentinel into 15-bit words."""

    for code in codes:
        if not 0 <= code < NAME_SENTINEL:
            raise ValueError(f"trainer name code {code:#x} is not a 9-bit character")

    words: List[int] = []
    buffer = 0
    bits = 0
    for code in (*codes, NAME_SENTINEL):
        buffer |= code << bits
        bits += CHAR_BITS
        if bits >= WORD_BITS:
            words.append(buffer & _WORD_MASK)
            buffer >>= WORD_BITS
            bits -= WORD_BITS
    if bits:
        buffer |= NAME_SENTINEL << bits
        words.append(buffer & _WORD_MASK)
    return words


def unpack_trainer_name(codes: Sequence[int], start: int = 0) -> Tuple[List[int], int]:
    """Unpack 9-bit character codes from the words at ``codes[start:]``.

    Returns the character codes and the number of words consumed. Unpacking
    stops at the first sentinel. Bits past the end of ``codes`` or inside a
    ``0xFFFF`` terminator word read as ones, which completes a sentinel the
    game split across the terminator without consuming it.
    """

    chars: List[int] = []
    buffer = 0
    bits = 0
    position = start
    while True:
        while bits < CHAR_BITS:
            if position < len(codes) and codes[position] != _TERMINATOR:
                buffer |= (codes[position] & _WORD_MASK) << bits
                position += 1
            else:
                buffer |= _WORD_MASK << bits
            bits += WORD_BITS
        value = buffer & _CHAR_MASK
        buffer >>= CHAR_BITS
        bits -= CHAR_BITS
        if value == NAME_SENTINEL:
            return chars, position - start
        chars.append(value)


__all__ = [
    "CHAR_BITS",
    "NAME_SENTINEL",
    "TRAINER_NAME_MARKER",
    "WORD_BITS",
    "pack_trainer_name",
    "packed_word_count",
    "unpack_trainer_name",
]
