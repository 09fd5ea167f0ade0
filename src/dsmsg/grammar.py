"""Message grammar translating plaintext code streams to editable text.

Decoding walks a stream of 16-bit codes and builds a small AST of
:class:`Literal`, :class:`Command`, :class:`TrainerName` and
:class:`RawEscape` nodes. Each node renders to the textual syntax and
serializes back to codes, so encoding is parsing text into the same nodes.

Textual syntax::

    {NAME, special, p1, p2}   command (``{0xHHHH, ...}`` when unnamed)
    {TRAINER_NAME:chars}      bit-packed trainer name
    \\xHHHH                    raw code without a charmap entry
    [alias] / \\c              multi-character and two-character aliases
"""

from __future__ import annotations

import logging
import re
import string
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from .charmap import CharacterMap
from .diagnostics import DiagnosticLog
from .trainer_name import (
    NAME_SENTINEL,
    TRAINER_NAME_MARKER,
    pack_trainer_name,
    unpack_trainer_name,
)

logger = logging.getLogger(__name__)

COMMAND_MARKER = 0xFFFE
TERMINATOR = 0xFFFF
NULL_CODE = 0x0000
TRAINER_NAME_PREFIX = "{TRAINER_NAME:"

_MAX_CODE = 0xFFFF
_MAX_SPECIAL_BYTE = 0xFF
_HEX_ESCAPE_LENGTH = 6
_NUMBER = re.compile(r"0[xX][0-9A-Fa-f]+|[0-9]+")


def _hex_escape(code: int) -> str:
    return f"\\x{code:04X}"


@dataclass(frozen=True)
class Literal:
    """A charmap character, escape or alias."""

    text: str
    code: int

    def render(self) -> str:
        return self.text

    def to_codes(self) -> List[int]:
        return [self.code]


@dataclass(frozen=True)
class RawEscape:
    """A code with no charmap entry, kept losslessly as ``\\xHHHH``."""

    code: int

    def render(self) -> str:
        return _hex_escape(self.code)

    def to_codes(self) -> List[int]:
        return [self.code]


@dataclass(frozen=True)
class Command:
    """A control command; ``special_byte`` rides in the id's low byte."""

    command_id: int
    special_byte: int = 0
    params: Tuple[int, ...] = ()
    name: Optional[str] = None

    def render(self) -> str:
        head = self.name if self.name is not None else f"0x{self.command_id:04X}"
        fields = [head, str(self.special_byte), *(str(p) for p in self.params)]
        return "{" + ", ".join(fields) + "}"

    def to_codes(self) -> List[int]:
        return [
            COMMAND_MARKER,
            self.command_id | (self.special_byte & _MAX_SPECIAL_BYTE),
            len(self.params),
            *self.params,
        ]


@dataclass(frozen=True)
class TrainerName:
    """A trainer name stored as packed 9-bit character codes."""

    text: str
    codes: Tuple[int, ...] = ()

    def render(self) -> str:
        return f"{TRAINER_NAME_PREFIX}{self.text}}}"

    def to_codes(self) -> List[int]:
        return [TRAINER_NAME_MARKER, *pack_trainer_name(self.codes)]


Node = Union[Literal, RawEscape, Command, TrainerName]


# Decoding


def decode_nodes(
    codes: Sequence[int],
    charmap: CharacterMap,
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[Node]:
    """Parse plaintext ``codes`` up to the first terminator into nodes."""

    log = diagnostics if diagnostics is not None else DiagnosticLog(logger)
    nodes: List[Node] = []
    position = 0
    while position < len(codes):
        code = codes[position]
        text = charmap.decode.get(code)
        if text is not None:
            # An opening brace would start a command when the text is parsed again.
            nodes.append(Literal(text, code) if "{" not in text else RawEscape(code))
            position += 1
        elif code == COMMAND_MARKER:
            node, used = _decode_command(codes, position, charmap, log)
            nodes.append(node)
            position += used
        elif code == TRAINER_NAME_MARKER:
            chars, used = unpack_trainer_name(codes, position + 1)
            nodes.append(TrainerName(_render_name_chars(chars, charmap), tuple(chars)))
            position += 1 + used
        elif code == TERMINATOR:
            return nodes
        else:
            nodes.append(RawEscape(code))
            position += 1
    log.warning("message has no 0xFFFF terminator")
    return nodes


def _decode_command(
    codes: Sequence[int],
    position: int,
    charmap: CharacterMap,
    log: DiagnosticLog,
) -> Tuple[Node, int]:
    if position + 2 >= len(codes):
        log.warning(f"truncated command header at code {position}")
        return RawEscape(COMMAND_MARKER), 1

    command_id = codes[position + 1]
    param_count = codes[position + 2]
    end = position + 3 + param_count
    if end > len(codes):
        log.warning(
            f"command at code {position} declares {param_count} parameters "
            f"but only {len(codes) - position - 3} codes remain"
        )
        return RawEscape(COMMAND_MARKER), 1

    special_byte = 0
    masked_id = command_id & 0xFF00
    if command_id not in charmap.commands and masked_id in charmap.commands:
        # String buffer commands carry a one-byte argument in the id's low byte.
        special_byte = command_id & 0x00FF
        command_id = masked_id

    command = Command(
        command_id=command_id,
        special_byte=special_byte,
        params=tuple(codes[position + 3 : end]),
        name=charmap.command_name(command_id),
    )
    return command, end - position


def _render_name_char(char: int, charmap: CharacterMap) -> str:
    text = charmap.decode.get(char)
    # A closing brace would end the name early when the text is parsed again.
    if text is None or "}" in text:
        return _hex_escape(char)
    return text


def _render_name_chars(chars: Sequence[int], charmap: CharacterMap) -> str:
    return "".join(_render_name_char(char, charmap) for char in chars)


def render_nodes(nodes: Sequence[Node]) -> str:
    return "".join(node.render() for node in nodes)


def decode_message(
    codes: Sequence[int],
    charmap: CharacterMap,
    diagnostics: Optional[DiagnosticLog] = None,
) -> str:
    """Return the editable text for plaintext message ``codes``."""

    return render_nodes(decode_nodes(codes, charmap, diagnostics))


# Encoding


def parse_message(
    text: str,
    charmap: CharacterMap,
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[Node]:
    """Parse editable ``text`` into nodes.

    Unresolvable tokens are logged and replaced by a ``0x0000`` code; the
    scanner always advances at least one character.
    """

    log = diagnostics if diagnostics is not None else DiagnosticLog(logger)
    nodes: List[Node] = []
    position = 0
    while position < len(text):
        if text[position] == "{":
            end = text.find("}", position)
            if end != -1:
                nodes.append(_parse_brace(text[position : end + 1], charmap, log))
                position = end + 1
                continue
        node, position = _scan_token(text, position, charmap, log)
        nodes.append(node)
    return nodes


def _match_hex_escape(text: str, position: int) -> Optional[int]:
    if not text.startswith("\\x", position):
        return None
    digits = text[position + 2 : position + _HEX_ESCAPE_LENGTH]
    if len(digits) == 4 and all(char in string.hexdigits for char in digits):
        return int(digits, 16)
    return None


def _scan_token(
    text: str,
    position: int,
    charmap: CharacterMap,
    log: DiagnosticLog,
) -> Tuple[Union[Literal, RawEscape], int]:
    char = text[position]
    token = char
    if char == "[":
        end = text.find("]", position)
        if end != -1:
            token = text[position : end + 1]
            code = charmap.encode.get(token)
            if code is not None:
                return Literal(token, code), end + 1
    elif char == "\\":
        raw = _match_hex_escape(text, position)
        if raw is not None:
            return RawEscape(raw), position + _HEX_ESCAPE_LENGTH
        pair = text[position : position + 2]
        if len(pair) == 2:
            token = pair
            code = charmap.encode.get(pair)
            if code is not None:
                return Literal(pair, code), position + 2

    code = charmap.encode.get(char)
    if code is not None:
        return Literal(char, code), position + 1
    log.error(f"unresolved token {token!r} at position {position}, replaced with 0x0000")
    return RawEscape(NULL_CODE), position + 1


def _parse_number(text: str, limit: int) -> Optional[int]:
    if _NUMBER.fullmatch(text) is None:
        return None
    if text[:2].lower() == "0x":
        value = int(text[2:], 16)
    else:
        value = int(text, 10)
    return value if 0 <= value <= limit else None


def _parse_brace(token: str, charmap: CharacterMap, log: DiagnosticLog) -> Node:
    if token.startswith(TRAINER_NAME_PREFIX):
        return _parse_trainer_name(token[len(TRAINER_NAME_PREFIX) : -1], charmap, log)

    parts = [part.strip() for part in token[1:-1].split(",")]
    parts = [part for part in parts if part]
    if len(parts) < 2:
        log.error(f"malformed command {token!r}, replaced with 0x0000")
        return RawEscape(NULL_CODE)

    name = parts[0]
    command_id = charmap.command_ids.get(name)
    if command_id is None:
        command_id = _parse_number(name, _MAX_CODE)
        if command_id is None:
            log.error(f"unknown command {name!r}, replaced with 0x0000")
            return RawEscape(NULL_CODE)

    special_byte = _parse_number(parts[1], _MAX_SPECIAL_BYTE)
    if special_byte is None:
        log.error(f"invalid special byte {parts[1]!r} in {token!r}, replaced with 0")
        special_byte = 0

    params: List[int] = []
    for raw_param in parts[2:]:
        value = _parse_number(raw_param, _MAX_CODE)
        if value is None:
            log.error(f"invalid parameter {raw_param!r} in {token!r}, replaced with 0")
            value = 0
        params.append(value)

    return Command(
        command_id=command_id,
        special_byte=special_byte,
        params=tuple(params),
        name=charmap.command_name(command_id),
    )


def _parse_trainer_name(
    content: str, charmap: CharacterMap, log: DiagnosticLog
) -> TrainerName:
    codes: List[int] = []
    position = 0
    while position < len(content):
        node, position = _scan_token(content, position, charmap, log)
        code = node.code
        if code >= NAME_SENTINEL:
            log.error(
                f"trainer name character {node.render()!r} does not fit in "
                "9 bits, replaced with 0x0000"
            )
            code = NULL_CODE
        codes.append(code)
    return TrainerName(content, tuple(codes))


def serialize_nodes(nodes: Sequence[Node]) -> List[int]:
    """Return the codes for ``nodes`` followed by exactly one terminator."""

    codes: List[int] = []
    for node in nodes:
        codes.extend(node.to_codes())
    codes.append(TERMINATOR)
    return codes


def encode_message(
    text: str,
    charmap: CharacterMap,
    diagnostics: Optional[DiagnosticLog] = None,
) -> List[int]:
    """Return the terminated plaintext codes for editable ``text``."""

    return serialize_nodes(parse_message(text, charmap, diagnostics))


# Trainer name helpers


def strip_trainer_name(message: str) -> str:
    """Return the bare name inside a ``{TRAINER_NAME:...}`` message."""

    if message.startswith(TRAINER_NAME_PREFIX) and message.endswith("}"):
        return message[len(TRAINER_NAME_PREFIX) : -1]
    return message


def wrap_trainer_name(message: str, name: str) -> str:
    """Replace the name in a trainer-name ``message``; other text is unchanged."""

    if message.startswith(TRAINER_NAME_PREFIX) and message.endswith("}"):
        return f"{TRAINER_NAME_PREFIX}{name}}}"
    return message


__all__ = [
    "COMMAND_MARKER",
    "Command",
    "Literal",
    "NULL_CODE",
    "Node",
    "RawEscape",
    "TERMINATOR",
    "TRAINER_NAME_PREFIX",
    "TrainerName",
    "decode_message",
    "decode_nodes",
    "encode_message",
    "parse_message",
    "render_nodes",
    "serialize_nodes",
    "strip_trainer_name",
    "wrap_trainer_name",
]
