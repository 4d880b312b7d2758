"""
Environment-provided configuration.

Both config objects are read once at startup and are immutable afterwards.
Reconfiguring means building a new instance and re-initializing.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from shellguard._types import LogFormat, LogLevel
from shellguard.errors import ConfigurationError

DEFAULT_TIMEOUT = 300.0
_TRUTHY = frozenset({"1", "true", "yes", "on"})


def _flag(value: str | None) -> bool:
    return bool(value) and value.strip().lower() in _TRUTHY


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logger configuration: output format, minimum level and the debug gate."""

    format: LogFormat = LogFormat.TEXT
    min_level: LogLevel = LogLevel.INFO
    verbose: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> LogConfig:
        """
        Build a config from LOG_FORMAT, LOG_LEVEL and VERBOSE.

        Never raises: unknown values degrade to the defaults.
        """
        env = os.environ if environ is None else environ
        return cls(
            format=LogFormat.parse(env.get("LOG_FORMAT")),
            min_level=LogLevel.parse(env.get("LOG_LEVEL")),
            verbose=_flag(env.get("VERBOSE")),
        )


@dataclass(frozen=True, slots=True)
class RunnerConfig:
    """Execution limits for CommandRunner."""

    timeout: float = DEFAULT_TIMEOUT
    max_output_bytes: int = 30_000
    dry_run: bool = False
    read_only: bool = False

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RunnerConfig:
        """
        Build a config from SHELLGUARD_TIMEOUT, DRY_RUN and READ_ONLY.

        Raises:
            ConfigurationError: If SHELLGUARD_TIMEOUT is not a positive number.
        """
        env = os.environ if environ is None else environ
        raw_timeout = env.get("SHELLGUARD_TIMEOUT")
        timeout = DEFAULT_TIMEOUT
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ConfigurationError(
                    f"SHELLGUARD_TIMEOUT must be a number, got {raw_timeout!r}"
                ) from None
            if timeout <= 0:
                raise ConfigurationError("SHELLGUARD_TIMEOUT must be positive")
        return cls(
            timeout=timeout,
            dry_run=_flag(env.get("DRY_RUN")),
            read_only=_flag(env.get("READ_ONLY")),
        )
