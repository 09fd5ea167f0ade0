"""Convert DS message archives to and from editable text."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Sequence

from .archive import (
    ArchiveError,
    DecodeResult,
    read_archive_file,
    write_archive,
    write_archive_file,
)
from .charmap import CharacterMap, CharmapError, cached_charmap
from .config import CodecConfig, ConfigError, load_codec_config, parse_key
from .diagnostics import Diagnostic
from .text_format import (
    TextFormatError,
    format_text_archive,
    read_text_archive,
    write_text_archive,
)

EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_FATAL = 2


def _parse_key_argument(value: str) -> int:
    try:
        return parse_key(value)
    except ConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Return parsed arguments for the ``dsmsg`` command line."""

    parser = argparse.ArgumentParser(prog="dsmsg", description=__doc__)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a TOML file with charmap, logging and archive settings",
    )
    parser.add_argument(
        "--charmap",
        type=Path,
        default=None,
        help="Path to the charmap XML (overrides the configuration file)",
    )
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
        default=None,
        help="Logging threshold (overrides the configuration file)",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    decode = commands.add_parser("decode", help="Decode a binary archive to text")
    decode.add_argument("archive", type=Path, help="Binary message archive")
    decode_target = decode.add_mutually_exclusive_group()
    decode_target.add_argument(
        "-o", "--output", type=Path, default=None, help="Write text here instead of stdout"
    )
    decode_target.add_argument(
        "--json",
        action="store_true",
        help="Emit key, messages and diagnostics as JSON",
    )

    encode = commands.add_parser("encode", help="Encode a text archive to binary")
    encode.add_argument("text", type=Path, help="Interchange text file")
    encode.add_argument(
        "-o", "--output", type=Path, required=True, help="Binary archive to write"
    )
    encode.add_argument(
        "--key",
        type=_parse_key_argument,
        default=None,
        help="Archive key, overriding the text header (hex, e.g. 0x1A2B)",
    )

    verify = commands.add_parser(
        "verify", help="Check that an archive survives a decode/encode round trip"
    )
    verify.add_argument("archive", type=Path, help="Binary message archive")

    return parser.parse_args(argv)


def _load_config(args: argparse.Namespace) -> CodecConfig:
    if args.config is None:
        return CodecConfig()
    return load_codec_config(args.config)


def _resolve_charmap(args: argparse.Namespace, config: CodecConfig) -> CharacterMap:
    path = args.charmap or config.charmap_path
    if path is None:
        raise CharmapError("no charmap configured; pass --charmap or set [charmap] path")
    return cached_charmap(path)


def _print_diagnostics(diagnostics: Sequence[Diagnostic]) -> None:
    for diagnostic in diagnostics:
        print(diagnostic.describe(), file=sys.stderr)


def _decode_payload(result: DecodeResult) -> dict[str, object]:
    return {
        "key": result.archive.key,
        "messages": result.archive.messages,
        "diagnostics": [
            {
                "severity": d.severity.name.lower(),
                "message_index": d.message_index,
                "text": d.text,
            }
            for d in result.diagnostics
        ],
    }


def _run_decode(args: argparse.Namespace, charmap: CharacterMap) -> int:
    result = read_archive_file(args.archive, charmap)
    if args.json:
        print(json.dumps(_decode_payload(result), ensure_ascii=False))
    elif args.output is not None:
        write_text_archive(args.output, result.archive)
    else:
        sys.stdout.write(format_text_archive(result.archive))
    _print_diagnostics(result.diagnostics)
    return EXIT_OK if result.ok else EXIT_DIAGNOSTICS


def _run_encode(
    args: argparse.Namespace, config: CodecConfig, charmap: CharacterMap
) -> int:
    archive = read_text_archive(args.text, default_key=config.default_key)
    if args.key is not None:
        archive.key = args.key
    result = write_archive_file(args.output, archive, charmap)
    _print_diagnostics(result.diagnostics)
    return EXIT_OK if result.ok else EXIT_DIAGNOSTICS


def _run_verify(args: argparse.Namespace, charmap: CharacterMap) -> int:
    original = args.archive.read_bytes()
    decoded = read_archive_file(args.archive, charmap)
    encoded = write_archive(decoded.archive, charmap)
    _print_diagnostics([*decoded.diagnostics, *encoded.diagnostics])
    if encoded.data == original:
        print(f"{args.archive}: {decoded.archive.message_count} messages round-trip")
        return EXIT_OK if decoded.ok and encoded.ok else EXIT_DIAGNOSTICS
    print(
        f"{args.archive}: round trip differs "
        f"({len(original)} bytes in, {len(encoded.data)} bytes out)"
    )
    return EXIT_DIAGNOSTICS


def main(argv: List[str] | None = None) -> int:
    """Entry point for the ``dsmsg`` command."""

    args = parse_args(argv)
    try:
        config = _load_config(args)
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL

    logging.basicConfig(
        level=args.log_level or config.log_level,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        charmap = _resolve_charmap(args, config)
        if args.command == "decode":
            return _run_decode(args, charmap)
        if args.command == "encode":
            return _run_encode(args, config, charmap)
        return _run_verify(args, charmap)
    except (ArchiveError, CharmapError, TextFormatError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_FATAL


if __name__ == "__main__":  # pragma: no cover - exercised via python -m
    raise SystemExit(main())
