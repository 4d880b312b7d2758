"""
Governed command execution.

CommandRunner is the executor that sits in front of the validators: it checks
the CommandPolicy, optionally validates every argument as agent input, then
runs the argv with asyncio.subprocess (never through a shell) under a
wall-clock timeout.
"""

from __future__ import annotations

import asyncio
import shlex
from pathlib import Path
from typing import Sequence

from shellguard._types import CommandResult
from shellguard.config import RunnerConfig
from shellguard.log import Logger, get_logger
from shellguard.security.policy import CommandPolicy
from shellguard.security.validators import ensure_under_directory, validate_ai_agent_input

# Status reported by coreutils timeout(1) for a command that ran out of time
TIMEOUT_EXIT_CODE = 124


class CommandRunner:
    """
    Subprocess-based executor with policy checks.

    Security features:
    - Command allow-list and read-only enforcement via CommandPolicy
    - Per-argument agent input validation
    - Timeout enforcement
    - Output truncation to prevent memory exhaustion
    - Dry-run mode that logs intent without executing

    Example:
        >>> runner = CommandRunner("./workspace", policy=CommandPolicy.allowlist({"awk", "cat"}))
        >>> result = await runner.run(["cat", "notes.txt"])
        >>> print(result.stdout)
    """

    def __init__(
        self,
        cwd: Path | str,
        *,
        policy: CommandPolicy | None = None,
        config: RunnerConfig | None = None,
        env: dict[str, str] | None = None,
        logger: Logger | None = None,
    ) -> None:
        """
        Initialize a runner.

        Args:
            cwd: Working directory for command execution.
            policy: Execution policy. Defaults to a read-only policy when
                ``config.read_only`` is set, otherwise a permissive one.
            config: Timeout, output cap and dry-run settings.
            env: Environment variables for subprocesses.
            logger: Logger for RUN / DRY RUN records.
        """
        self._cwd = Path(cwd).resolve()
        self._config = config or RunnerConfig()
        self._env = env
        self._logger = logger or get_logger()
        if policy is None:
            policy = (
                CommandPolicy.read_only_policy()
                if self._config.read_only
                else CommandPolicy.permissive()
            )
        self._policy = policy

    @property
    def cwd(self) -> Path:
        return self._cwd

    @property
    def policy(self) -> CommandPolicy:
        return self._policy

    def resolve_path(self, path: str | Path) -> Path:
        """Resolve ``path`` relative to the working directory, confined to it."""
        return ensure_under_directory(self._cwd, self._cwd / path, logger=self._logger)

    async def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None = None,
        agent_input: bool = False,
    ) -> CommandResult:
        """
        Run a command.

        Args:
            argv: Command and arguments. A leading ``sudo`` is dropped, not executed.
            timeout: Seconds before the process is killed. Defaults to the config.
            agent_input: Validate every argument with validate_ai_agent_input.

        Returns:
            CommandResult with stdout, stderr and exit_code.

        Raises:
            SecurityViolation: If the policy blocks the command.
            ValidationError: If an argument fails agent input validation.
        """
        argv = tuple(argv)
        base_cmd = self._policy.check(argv)
        argv = self._policy.unwrap(argv)
        if agent_input:
            for index, arg in enumerate(argv[1:], start=1):
                validate_ai_agent_input(arg, f"argv[{index}]", logger=self._logger)

        display = shlex.join((base_cmd, *argv[1:]))
        if self._config.dry_run:
            self._logger.info(f"DRY RUN: {display}")
            return CommandResult(argv=argv, stdout="", stderr="", exit_code=0, dry_run=True)

        self._logger.info(f"RUN: {display}")
        limit = timeout if timeout is not None else self._config.timeout

        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=self._cwd,
            env=self._env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(proc.communicate(), timeout=limit)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()  # Ensure process is reaped
            self._logger.warn(f"Command timed out after {limit}s: {display}")
            return CommandResult(
                argv=argv,
                stdout="",
                stderr=f"Command timed out after {limit}s",
                exit_code=TIMEOUT_EXIT_CODE,
                timed_out=True,
            )

        stdout, stdout_truncated = self._decode_and_truncate(stdout_bytes)
        stderr, stderr_truncated = self._decode_and_truncate(stderr_bytes)

        result = CommandResult(
            argv=argv,
            stdout=stdout,
            stderr=stderr,
            exit_code=proc.returncode or 0,
            truncated=stdout_truncated or stderr_truncated,
        )
        self._logger.debug("Exit", str(result.exit_code), "for", display)
        return result

    def _decode_and_truncate(self, data: bytes) -> tuple[str, bool]:
        """Decode bytes and truncate if too large."""
        limit = self._config.max_output_bytes
        text = data.decode("utf-8", errors="replace")
        if len(text) > limit:
            truncated_count = len(text) - limit
            text = text[:limit]
            text += f"\n\n[Truncated: {truncated_count} characters removed]"
            return text, True
        return text, False
