"""
Execution policy for governed commands.

Decides whether an argv may be run: metacharacter-free arguments, read-only
mode blocking known mutators, and an optional command allow-list.
"""

from __future__ import annotations

import os
import shlex
import shutil
from dataclasses import dataclass, field
from typing import Sequence

from shellguard._types import FailureKind
from shellguard.errors import SecurityViolation

# Commands known to alter system state, refused in read-only mode
MUTATING_COMMANDS: frozenset[str] = frozenset(
    {
        "rm",
        "mv",
        "chmod",
        "chown",
        "dd",
        "mkfs",
        "systemctl",
        "apt",
        "apt-get",
        "yum",
        "zypper",
        "kubectl",
        "helm",
        "terraform",
        "ansible-playbook",
    }
)

# Argument characters that would chain or redirect if the argv reached a shell
ARGUMENT_METACHARACTERS = frozenset(";&|<>")


@dataclass
class CommandPolicy:
    """
    Configurable policy for command execution.

    - ``allowed_commands``: if non-empty, only these basenames may run.
    - ``read_only``: refuse commands listed in ``mutators``.
    - ``strict_paths``: a command given as a path must be the executable
      that PATH lookup finds for its basename.

    The allow-list matches basenames, so without ``strict_paths``
    ``/tmp/evil/cat`` passes an allow-list containing ``cat``.
    """

    allowed_commands: set[str] = field(default_factory=set)
    read_only: bool = False
    mutators: frozenset[str] = MUTATING_COMMANDS
    strict_paths: bool = False

    @classmethod
    def permissive(cls) -> CommandPolicy:
        """Only the argument metacharacter check applies."""
        return cls()

    @classmethod
    def read_only_policy(cls) -> CommandPolicy:
        """Block known mutating commands."""
        return cls(read_only=True)

    @classmethod
    def allowlist(
        cls, allowed: set[str], *, read_only: bool = False, strict_paths: bool = False
    ) -> CommandPolicy:
        """
        Create a policy that only allows specified commands.

        Args:
            allowed: Command basenames that may run (e.g., {"awk", "cat", "sed"}).
            strict_paths: Refuse path-qualified commands that are not the PATH match.
        """
        return cls(
            allowed_commands=set(allowed), read_only=read_only, strict_paths=strict_paths
        )

    @staticmethod
    def unwrap(argv: Sequence[str]) -> tuple[str, ...]:
        """Drop a leading ``sudo``. Governed commands never run with escalated privileges."""
        args = tuple(argv)
        if args and args[0] == "sudo":
            return args[1:]
        return args

    def check(self, argv: Sequence[str]) -> str:
        """
        Validate an argv against the policy.

        A leading ``sudo`` is unwrapped so the checks apply to the real command.

        Returns:
            The basename of the command that would run.

        Raises:
            SecurityViolation: If the command is blocked.
        """
        args = self.unwrap(argv)
        if not args or not args[0]:
            raise SecurityViolation(
                FailureKind.UNSAFE_INPUT, "Missing command", shlex.join(argv)
            )

        command = shlex.join(argv)
        base_cmd = os.path.basename(args[0])

        for arg in args[1:]:
            if any(char in ARGUMENT_METACHARACTERS for char in arg):
                raise SecurityViolation(
                    FailureKind.UNSAFE_INPUT,
                    "Shell metacharacters are not allowed in arguments",
                    command,
                )

        if self.read_only and base_cmd in self.mutators:
            raise SecurityViolation(
                FailureKind.READ_ONLY_VIOLATION,
                f"Read-only mode: refusing mutator '{base_cmd}'",
                command,
            )

        if self.allowed_commands and base_cmd not in self.allowed_commands:
            raise SecurityViolation(
                FailureKind.COMMAND_NOT_ALLOWED,
                f"Command '{base_cmd}' not in allow-list",
                command,
            )

        if self.strict_paths and os.sep in args[0]:
            found = shutil.which(base_cmd)
            if found is None or os.path.realpath(found) != os.path.realpath(args[0]):
                raise SecurityViolation(
                    FailureKind.COMMAND_NOT_ALLOWED,
                    f"Command path '{args[0]}' does not match '{base_cmd}' on PATH",
                    command,
                )

        return base_cmd

    def add_allowed_command(self, command: str) -> None:
        """
        Add a command to the allowlist.

        Args:
            command: Command name to allow (e.g., "ls").
        """
        self.allowed_commands.add(command)
