"""Load codec settings from TOML configuration files."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import tomllib

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_MAX_KEY = 0xFFFF
_HEX_KEY = re.compile(r"(?:0[xX])?([0-9A-Fa-f]+)")


class ConfigError(ValueError):
    """Raised when a codec configuration file fails validation."""


@dataclass(frozen=True)
class CodecConfig:
    """Resolved settings for the command-line front end."""

    charmap_path: Path | None = None
    log_level: str = "WARNING"
    default_key: int = 0


def load_codec_config(config_path: Path) -> CodecConfig:
    """Parse and validate the codec configuration at ``config_path``."""

    try:
        with config_path.open("rb") as stream:
            raw_data = tomllib.load(stream)
    except OSError as exc:
        raise ConfigError(f"configuration file could not be read: {config_path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"invalid TOML in {config_path}: {exc}") from exc

    charmap = _section(raw_data, "charmap")
    logging_section = _section(raw_data, "logging")
    archive = _section(raw_data, "archive")

    return CodecConfig(
        charmap_path=_normalise_path(charmap.get("path"), base=config_path.parent),
        log_level=_coerce_log_level(logging_section.get("level", "WARNING")),
        default_key=parse_key(archive.get("default_key", 0)),
    )


def _section(data: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, Mapping):
        raise ConfigError(f"[{name}] section must be a mapping")
    return section


def _normalise_path(raw_path: Any, *, base: Path) -> Path | None:
    if raw_path is None:
        return None
    if not isinstance(raw_path, str):
        raise ConfigError("charmap path must be a string")
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def _coerce_log_level(raw_level: Any) -> str:
    if not isinstance(raw_level, str):
        raise ConfigError("logging level must be a string")
    level = raw_level.strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigError(
            f"unknown logging level {raw_level!r} (expected one of {', '.join(_LOG_LEVELS)})"
        )
    return level


def parse_key(raw_key: Any) -> int:
    """Coerce an integer or hexadecimal string into a 16-bit archive key."""

    if isinstance(raw_key, bool):
        raise ConfigError("archive key must be an integer or hex string")
    if isinstance(raw_key, int):
        key = raw_key
    elif isinstance(raw_key, str):
        match = _HEX_KEY.fullmatch(raw_key.strip())
        if match is None:
            raise ConfigError(f"invalid archive key: {raw_key!r}")
        key = int(match.group(1), 16)
    else:
        raise ConfigError("archive key must be an integer or hex string")

    if not 0 <= key <= _MAX_KEY:
        raise ConfigError(f"archive key {key:#x} is not a 16-bit value")
    return key


__all__ = [
    "CodecConfig",
    "ConfigError",
    "load_codec_config",
    "parse_key",
]
