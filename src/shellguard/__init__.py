"""
Top-level facade for shellguard.

Typical host program::

    from shellguard import init_logging, install_trap, validate_ai_agent_input

    log = init_logging()
    trap = install_trap(log)
    validate_ai_agent_input(user_value, "query")
"""

from shellguard._types import (
    CommandResult,
    FailureContext,
    FailureKind,
    Frame,
    LogFormat,
    LogLevel,
    LogLine,
)
from shellguard.config import LogConfig, RunnerConfig
from shellguard.errors import (
    CommandError,
    ConfigurationError,
    SecurityViolation,
    ShellGuardError,
    ValidationError,
)
from shellguard.log import Logger, debug, error, fatal, get_logger, info, init_logging, warn
from shellguard.runner import CommandRunner
from shellguard.security import (
    CommandPolicy,
    ensure_under_directory,
    require_commands_available,
    validate_ai_agent_input,
    validate_email,
    validate_file_path,
    validate_hostname,
    validate_identifier,
    validate_no_shell_metacharacters,
    validate_port,
    validate_string_length,
    validate_timeout,
)
from shellguard.trap import ExitTimer, FailureScope, FailureTrap, install_trap

__all__ = [
    "CommandError",
    "CommandPolicy",
    "CommandResult",
    "CommandRunner",
    "ConfigurationError",
    "ExitTimer",
    "FailureContext",
    "FailureKind",
    "FailureScope",
    "FailureTrap",
    "Frame",
    "LogConfig",
    "LogFormat",
    "LogLevel",
    "LogLine",
    "Logger",
    "RunnerConfig",
    "SecurityViolation",
    "ShellGuardError",
    "ValidationError",
    "debug",
    "ensure_under_directory",
    "error",
    "fatal",
    "get_logger",
    "info",
    "init_logging",
    "install_trap",
    "require_commands_available",
    "validate_ai_agent_input",
    "validate_email",
    "validate_file_path",
    "validate_hostname",
    "validate_identifier",
    "validate_no_shell_metacharacters",
    "validate_port",
    "validate_string_length",
    "validate_timeout",
    "warn",
]
