"""Per-operation diagnostics collected alongside decoded or encoded data.

Codec operations never abort an archive over one malformed message or token.
Instead they record a :class:`Diagnostic` and keep going, so callers can show
exactly which messages were silently repaired.
"""

from __future__ import annotations

import contextlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple


class Severity(Enum):
    """Diagnostic severity, mirrored onto :mod:`logging` levels."""

    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR


@dataclass(frozen=True)
class Diagnostic:
    """A single problem found while decoding or encoding."""

    severity: Severity
    text: str
    message_index: Optional[int] = None

    def describe(self) -> str:
        prefix = self.severity.name.lower()
        if self.message_index is None:
            return f"{prefix}: {self.text}"
        return f"{prefix}: message {self.message_index}: {self.text}"


class DiagnosticLog:
    """Collect diagnostics and emit the matching log lines."""

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger("dsmsg")
        self._entries: List[Diagnostic] = []
        self._message_index: Optional[int] = None

    @property
    def entries(self) -> Tuple[Diagnostic, ...]:
        return tuple(self._entries)

    @contextlib.contextmanager
    def message(self, index: int) -> Iterator["DiagnosticLog"]:
        """Attribute diagnostics recorded inside the block to message ``index``."""

        previous = self._message_index
        self._message_index = index
        try:
            yield self
        finally:
            self._message_index = previous

    def record(self, severity: Severity, text: str) -> Diagnostic:
        diagnostic = Diagnostic(severity, text, self._message_index)
        self._entries.append(diagnostic)
        if self._message_index is None:
            self._logger.log(severity.value, "%s", text)
        else:
            self._logger.log(
                severity.value, "message %d: %s", self._message_index, text
            )
        return diagnostic

    def info(self, text: str) -> Diagnostic:
        return self.record(Severity.INFO, text)

    def warning(self, text: str) -> Diagnostic:
        return self.record(Severity.WARNING, text)

    def error(self, text: str) -> Diagnostic:
        return self.record(Severity.ERROR, text)


class DiagnosticSummary:
    """Convenience accessors shared by result types carrying ``diagnostics``."""

    diagnostics: Tuple[Diagnostic, ...]

    @property
    def errors(self) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity is Severity.ERROR)

    @property
    def warnings(self) -> Tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if d.severity is Severity.WARNING)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def failed_messages(self) -> Tuple[int, ...]:
        """Return the sorted indices of messages that recorded an error."""

        indices = {
            d.message_index for d in self.errors if d.message_index is not None
        }
        return tuple(sorted(indices))


__all__ = [
    "Diagnostic",
    "DiagnosticLog",
    "DiagnosticSummary",
    "Severity",
]
