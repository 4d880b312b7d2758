"""Security module for shellguard."""

from shellguard.security.policy import (
    ARGUMENT_METACHARACTERS,
    MUTATING_COMMANDS,
    CommandPolicy,
)
from shellguard.security.validators import (
    MAX_AGENT_INPUT_LENGTH,
    SHELL_METACHARACTERS,
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

__all__ = [
    "ARGUMENT_METACHARACTERS",
    "MAX_AGENT_INPUT_LENGTH",
    "MUTATING_COMMANDS",
    "SHELL_METACHARACTERS",
    "CommandPolicy",
    "ensure_under_directory",
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
]
