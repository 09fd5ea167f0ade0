from __future__ import annotations

import logging
import re

import pytest

from dsmsg.charmap import CharacterMap, CharmapEntry, EntryKind
from dsmsg.diagnostics import DiagnosticLog, Severity
from dsmsg.grammar import (
    Command,
    Literal,
    RawEscape,
    TrainerName,
    decode_message,
    decode_nodes,
    encode_message,
    parse_message,
    render_nodes,
    serialize_nodes,
    strip_trainer_name,
    wrap_trainer_name,
)
from dsmsg.trainer_name import pack_trainer_name

A, B = 0x012B, 0x012C
LOWER_C, LOWER_E = 0x0147, 0x0149


def test_decode_literal_characters(charmap: CharacterMap) -> None:
    assert decode_message([A, B, 0xFFFF], charmap) == "AB"


def test_decode_stops_at_first_terminator(charmap: CharacterMap) -> None:
    assert decode_message([A, 0xFFFF, B, 0xFFFF], charmap) == "A"


def test_decode_without_terminator_warns(charmap: CharacterMap) -> None:
    log = DiagnosticLog()

    assert decode_message([A, B], charmap, log) == "AB"
    assert [d.severity for d in log.entries] == [Severity.WARNING]


def test_unknown_code_passthrough(charmap: CharacterMap) -> None:
    assert decode_message([0x9999, 0xFFFF], charmap) == "\\x9999"
    assert encode_message("\\x9999", charmap) == [0x9999, 0xFFFF]


def test_encode_appends_exactly_one_terminator(charmap: CharacterMap) -> None:
    assert encode_message("", charmap) == [0xFFFF]
    assert encode_message("AB", charmap) == [A, B, 0xFFFF]


def test_escape_alias_and_multi_character_tokens(charmap: CharacterMap) -> None:
    assert encode_message("A\\nB", charmap) == [A, 0xE000, B, 0xFFFF]
    assert encode_message("[PK][MN]", charmap) == [0x01E0, 0x01E1, 0xFFFF]
    assert encode_message("’", charmap) == [0x01B3, 0xFFFF]
    assert decode_message([A, 0xE000, 0x01E0, 0x01B3, 0xFFFF], charmap) == "A\\n[PK]'"


def test_hex_escape_accepts_lowercase_digits(charmap: CharacterMap) -> None:
    assert encode_message("\\xbeef", charmap) == [0xBEEF, 0xFFFF]


def test_command_special_byte_folding(charmap: CharacterMap) -> None:
    codes = [0xFFFE, 0x1A07, 1, 42, 0xFFFF]

    assert encode_message("{STRVAR_1A, 7, 42}", charmap) == codes
    assert decode_message(codes, charmap) == "{STRVAR_1A, 7, 42}"
    assert decode_nodes(codes, charmap) == [
        Command(command_id=0x1A00, special_byte=7, params=(42,), name="STRVAR_1A")
    ]


def test_known_command_id_is_not_folded(charmap: CharacterMap) -> None:
    assert decode_message([0xFFFE, 0x0100, 0, 0xFFFF], charmap) == "{STRVAR_1, 0}"


def test_unknown_command_renders_losslessly(charmap: CharacterMap) -> None:
    codes = [0xFFFE, 0x4242, 2, 1, 65535, 0xFFFF]

    text = decode_message(codes, charmap)

    assert text == "{0x4242, 0, 1, 65535}"
    assert encode_message(text, charmap) == codes


def test_command_accepts_numeric_ids(charmap: CharacterMap) -> None:
    assert encode_message("{256, 3}", charmap) == [0xFFFE, 0x0103, 0, 0xFFFF]
    assert encode_message("{0x0200, 0, 5}", charmap) == [0xFFFE, 0x0200, 1, 5, 0xFFFF]


@pytest.mark.parametrize(
    "text, expected, message",
    [
        ("{NOPE, 0}", [0x0000, 0xFFFF], "unknown command"),
        ("{STRVAR_1}", [0x0000, 0xFFFF], "malformed command"),
        ("{WAIT, 300}", [0xFFFE, 0x0200, 0, 0xFFFF], "invalid special byte"),
        ("{WAIT, 0, x}", [0xFFFE, 0x0200, 1, 0, 0xFFFF], "invalid parameter"),
        ("A~B", [A, 0x0000, B, 0xFFFF], "unresolved token '~'"),
        ("[NOPE]", [0x0000, 0x012B + 13, 0x012B + 14, 0x012B + 15, 0x012B + 4, 0x0000, 0xFFFF], "'\\[NOPE\\]'"),
        ("{WAIT, 0, 1_0}", [0xFFFE, 0x0200, 1, 0, 0xFFFF], "invalid parameter '1_0'"),
        ("{WAIT, +7}", [0xFFFE, 0x0200, 0, 0xFFFF], "invalid special byte '\\+7'"),
        ("{WAIT, 0, \u0663}", [0xFFFE, 0x0200, 1, 0, 0xFFFF], "invalid parameter"),
        ("{0x_200, 0}", [0x0000, 0xFFFF], "unknown command"),
    ],
)
def test_unresolvable_tokens_become_null_codes(
    charmap: CharacterMap, text: str, expected: list[int], message: str
) -> None:
    log = DiagnosticLog()

    assert encode_message(text, charmap, log) == expected
    errors = [d for d in log.entries if d.severity is Severity.ERROR]
    assert errors
    assert any(re.search(message, d.text) for d in errors)


def test_unresolved_tokens_are_logged(
    charmap: CharacterMap, caplog: pytest.LogCaptureFixture
) -> None:
    caplog.set_level(logging.ERROR)

    encode_message("A~", charmap)

    assert "unresolved token '~'" in caplog.text


def test_unclosed_brace_is_scanned_as_text(charmap: CharacterMap) -> None:
    assert encode_message("{A", charmap) == [0x0000, A, 0xFFFF]


def test_truncated_command_header_is_kept_as_raw_codes(charmap: CharacterMap) -> None:
    log = DiagnosticLog()

    text = decode_message([0xFFFE, 0x0100], charmap, log)

    assert text == "\\xFFFE\\x0100"
    assert all(d.severity is Severity.WARNING for d in log.entries)
    assert encode_message(text, charmap) == [0xFFFE, 0x0100, 0xFFFF]


def test_command_with_missing_parameters_is_kept_as_raw_codes(charmap: CharacterMap) -> None:
    text = decode_message([0xFFFE, 0x0100, 5, A, 0xFFFF], charmap)

    assert text == "\\xFFFE\\x0100\\x0005A"


def test_trainer_name_round_trip(charmap: CharacterMap) -> None:
    codes = [0xF100, *pack_trainer_name([A, LOWER_C, LOWER_E]), 0xFFFF]

    assert encode_message("{TRAINER_NAME:Ace}", charmap) == codes
    assert decode_message(codes, charmap) == "{TRAINER_NAME:Ace}"


def test_trainer_name_followed_by_text(charmap: CharacterMap) -> None:
    text = "{TRAINER_NAME:AB}C"

    assert decode_message(encode_message(text, charmap), charmap) == text


def test_trainer_name_keeps_unmapped_codes_as_hex(charmap: CharacterMap) -> None:
    codes = encode_message("{TRAINER_NAME:\\x0055}", charmap)

    assert codes == [0xF100, *pack_trainer_name([0x55]), 0xFFFF]
    assert decode_message(codes, charmap) == "{TRAINER_NAME:\\x0055}"


def test_trainer_name_rejects_wide_characters(charmap: CharacterMap) -> None:
    log = DiagnosticLog()

    codes = encode_message("{TRAINER_NAME:A€}", charmap, log)

    assert codes == [0xF100, *pack_trainer_name([A, 0]), 0xFFFF]
    assert "does not fit in 9 bits" in log.entries[0].text


def test_brace_glyphs_decode_as_hex_escapes() -> None:
    braces = CharacterMap.from_entries(
        [
            CharmapEntry(A, EntryKind.CHAR, "A"),
            CharmapEntry(0x01C0, EntryKind.CHAR, "}"),
            CharmapEntry(0x01C1, EntryKind.CHAR, "{"),
        ]
    )
    name_codes = [0xF100, *pack_trainer_name([A, 0x01C0, A]), 0xFFFF]
    body_codes = [0x01C1, A, 0x01C0, 0xFFFF]

    assert decode_message(name_codes, braces) == "{TRAINER_NAME:A\\x01C0A}"
    assert decode_message(body_codes, braces) == "\\x01C1A}"
    assert encode_message(decode_message(name_codes, braces), braces) == name_codes
    assert encode_message(decode_message(body_codes, braces), braces) == body_codes


def test_nodes_render_and_serialize(charmap: CharacterMap) -> None:
    nodes = parse_message("A{WAIT, 0, 30}\\x9999{TRAINER_NAME:B}", charmap)

    assert nodes == [
        Literal("A", A),
        Command(command_id=0x0200, special_byte=0, params=(30,), name="WAIT"),
        RawEscape(0x9999),
        TrainerName("B", (B,)),
    ]
    assert render_nodes(nodes) == "A{WAIT, 0, 30}\\x9999{TRAINER_NAME:B}"
    assert serialize_nodes(nodes) == [
        A,
        0xFFFE,
        0x0200,
        1,
        30,
        0x9999,
        0xF100,
        *pack_trainer_name([B]),
        0xFFFF,
    ]


@pytest.mark.parametrize(
    "text",
    [
        "Hello World!",
        "A\\nB\\rC\\f",
        "{STRVAR_1, 0, 5}{STRVAR_1A, 12}",
        "{TRAINER_NAME:Ace}",
        "\\x9999[PK]é",
    ],
)
def test_encode_decode_round_trip(charmap: CharacterMap, text: str) -> None:
    assert decode_message(encode_message(text, charmap), charmap) == text


def test_trainer_name_helpers() -> None:
    assert strip_trainer_name("{TRAINER_NAME:Ace}") == "Ace"
    assert strip_trainer_name("Plain text") == "Plain text"
    assert wrap_trainer_name("{TRAINER_NAME:Ace}", "Bea") == "{TRAINER_NAME:Bea}"
    assert wrap_trainer_name("Plain text", "Bea") == "Plain text"
