"""
Core type definitions for shellguard.

Uses frozen dataclasses and enums for lightweight, typed records.
"""

from __future__ import annotations

import json
import shlex
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Callable

from shellguard.errors import CommandError

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"

JsonEncoder = Callable[[Any], str]


def utc_timestamp(when: float | None = None) -> str:
    """Return a UTC ISO-8601 timestamp with second precision."""
    moment = (
        datetime.now(timezone.utc)
        if when is None
        else datetime.fromtimestamp(when, tz=timezone.utc)
    )
    return moment.strftime(TIMESTAMP_FORMAT)


_ANSI_C_ESCAPES = {"\\": "\\\\", "'": "\\'", "\n": "\\n", "\r": "\\r", "\t": "\\t"}


def _is_control(char: str) -> bool:
    code = ord(char)
    return code < 32 or 127 <= code < 160 or char in "\u2028\u2029"


def _ansi_c_escape(char: str) -> str:
    if char in _ANSI_C_ESCAPES:
        return _ANSI_C_ESCAPES[char]
    if _is_control(char):
        code = ord(char)
        return f"\\x{code:02x}" if code < 256 else f"\\u{code:04x}"
    return char


def quote_fragment(fragment: str) -> str:
    """
    Quote one message fragment so it reads back as a single shell word.

    Fragments holding control characters use ANSI-C ``$'...'`` quoting, so a
    rendered record never spans more than one line.
    """
    if not any(_is_control(char) for char in fragment):
        return shlex.quote(fragment)
    return "$'" + "".join(_ansi_c_escape(char) for char in fragment) + "'"


class LogFormat(Enum):
    """Output format of the diagnostic stream."""

    TEXT = "text"
    JSON = "json"

    @classmethod
    def parse(cls, value: str | None) -> LogFormat:
        """Parse a format selector; unknown values fall back to TEXT."""
        if value and value.strip().lower() == "json":
            return cls.JSON
        return cls.TEXT


class LogLevel(IntEnum):
    """Severity levels. Numeric values match the stdlib logging module."""

    DEBUG = 10
    INFO = 20
    WARN = 30
    ERROR = 40

    @classmethod
    def parse(cls, value: str | int | None) -> LogLevel:
        """
        Resolve a level name or number.

        Unrecognized input resolves to INFO instead of raising, so a bad
        LOG_LEVEL never prevents startup.
        """
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                return cls.INFO
        if not value:
            return cls.INFO
        text = value.strip().upper()
        if text == "WARNING":
            return cls.WARN
        if text in cls.__members__:
            return cls[text]
        if text.isascii() and text.isdigit():
            return cls.parse(int(text))
        return cls.INFO


class FailureKind(Enum):
    """Named categories of validation and runtime failure."""

    MISSING_DEPENDENCY = "MissingDependency"
    INVALID_HOSTNAME = "InvalidHostname"
    UNSAFE_INPUT = "UnsafeInput"
    INPUT_TOO_LONG = "InputTooLong"
    PATH_TRAVERSAL = "PathTraversal"
    INVALID_PATH = "InvalidPath"
    COMMAND_NOT_ALLOWED = "CommandNotAllowed"
    READ_ONLY_VIOLATION = "ReadOnlyViolation"
    UNHANDLED_FAILURE = "UnhandledFailure"


@dataclass(frozen=True, slots=True)
class LogLine:
    """A single diagnostic record. Exists only for the duration of emission."""

    timestamp: str
    level: LogLevel
    fragments: tuple[str, ...] = ()
    fields: dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        """Fragments joined with a single space."""
        return " ".join(self.fragments)

    def render_text(self) -> str:
        """
        Render as ``[ts] [LEVEL] msg`` with each fragment quoted individually.

        Structured fields follow the fragments as ``key=value`` words.
        """
        words = [*self.fragments, *(f"{key}={value}" for key, value in self.fields.items())]
        joined = " ".join(quote_fragment(word) for word in words)
        return f"[{self.timestamp}] [{self.level.name}] {joined}"

    def render_json(self, encoder: JsonEncoder = json.dumps) -> str:
        """Render as a single-line JSON object. Fields never replace the header keys."""
        payload: dict[str, Any] = {"timestamp": self.timestamp, "level": self.level.name}
        if self.fragments or not self.fields:
            payload["message"] = self.message
        for key, value in self.fields.items():
            payload.setdefault(key, value)
        rendered = encoder(payload)
        if not isinstance(rendered, str) or "\n" in rendered:
            raise ValueError("JSON encoder must return a single-line string")
        return rendered


@dataclass(frozen=True, slots=True)
class Frame:
    """One entry of a captured call chain."""

    filename: str
    lineno: int
    function: str
    source: str = ""

    def __str__(self) -> str:
        return f"at {self.function} ({self.filename}:{self.lineno})"


@dataclass(frozen=True, slots=True)
class FailureContext:
    """
    Everything known about the failure that tripped a trap.

    Attributes:
        line: Line number of the innermost frame, or 0 when unknown.
        command: The failing operation text.
        exit_code: Status the process terminates with.
        timestamp: UTC time the failure was detected.
        call_chain: Captured frames, innermost first and outermost last.
        kind: Failure category.
        error: ``repr`` of the triggering exception.
    """

    line: int
    command: str
    exit_code: int
    timestamp: str
    call_chain: tuple[Frame, ...] = ()
    kind: FailureKind = FailureKind.UNHANDLED_FAILURE
    error: str = ""

    def as_record(self) -> dict[str, Any]:
        """Fields of the machine-readable ``script_error`` record."""
        return {
            "event": "script_error",
            "line": self.line,
            "command": self.command,
            "exit_code": self.exit_code,
        }


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Immutable result from command execution."""

    argv: tuple[str, ...]
    stdout: str
    stderr: str
    exit_code: int
    timed_out: bool = False
    truncated: bool = False
    dry_run: bool = False

    @property
    def success(self) -> bool:
        """Return True if command exited with code 0 and did not time out."""
        return self.exit_code == 0 and not self.timed_out

    def raise_for_status(self) -> None:
        """Raise CommandError if exit_code is non-zero."""
        if not self.success:
            raise CommandError(
                shlex.join(self.argv),
                self.exit_code,
                stderr=self.stderr or self.stdout,
            )
