"""
Exception hierarchy for shellguard.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shellguard._types import FailureKind


class ShellGuardError(Exception):
    """Base class for all shellguard errors."""

    exit_code: int = 1


class ConfigurationError(ShellGuardError):
    """Raised when environment-provided configuration cannot be parsed."""


class ValidationError(ShellGuardError):
    """
    Raised when a value fails a validation check.

    Validation is fail-closed: callers must not proceed past this error.

    Attributes:
        kind: The FailureKind of the violated rule.
        reason: Human-readable description naming the rule.
        parameter: Name of the offending parameter or path, if any.
    """

    exit_code = 1

    def __init__(self, kind: FailureKind, reason: str, *, parameter: str = "") -> None:
        self.kind = kind
        self.reason = reason
        self.parameter = parameter
        self.logged = False
        super().__init__(f"{kind.value}: {reason}")


class SecurityViolation(ValidationError):
    """
    Raised when a command violates the execution policy.

    Attributes:
        command: The command that was blocked.
    """

    def __init__(self, kind: FailureKind, reason: str, command: str = "") -> None:
        self.command = command
        super().__init__(kind, reason, parameter=command)


class CommandError(ShellGuardError):
    """Raised when a command exits with non-zero status."""

    def __init__(self, command: str, exit_code: int, *, stderr: str = "") -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr.strip() else ""
        super().__init__(f"Command failed with exit code {exit_code}: {command}{detail}")
