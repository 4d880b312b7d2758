"""
Input validation for values supplied by partially trusted callers.

Every check either returns normally or raises ValidationError carrying a
FailureKind. Checks hold no state of their own; the only side effect is log
emission, so they are safe to call concurrently.
"""

from __future__ import annotations

import os
import re
import shutil
import socket
from pathlib import Path

from shellguard._types import FailureKind, LogLevel
from shellguard.errors import ValidationError
from shellguard.log import Logger, get_logger

MAX_AGENT_INPUT_LENGTH = 1000

# Characters that change how a shell parses a command line once interpolated
SHELL_METACHARACTERS = frozenset(";|&`$()<>'\"\n")

_HOSTNAME_LABEL = r"[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
HOSTNAME_PATTERN = re.compile(rf"{_HOSTNAME_LABEL}(?:\.{_HOSTNAME_LABEL})*")
IDENTIFIER_PATTERN = re.compile(r"[A-Za-z0-9_-]+")
MAX_EMAIL_LENGTH = 254
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_ACCESS_MODES = {
    "r": os.R_OK,
    "read": os.R_OK,
    "w": os.W_OK,
    "write": os.W_OK,
    "x": os.X_OK,
    "execute": os.X_OK,
}


def _fail(
    log: Logger, kind: FailureKind, reason: str, *, parameter: str = ""
) -> ValidationError:
    log.error(reason)
    err = ValidationError(kind, reason, parameter=parameter)
    err.logged = True
    return err


def require_commands_available(
    *names: str, path: str | None = None, logger: Logger | None = None
) -> dict[str, str]:
    """
    Verify that every named executable is resolvable.

    All names are checked before failing so the error lists every missing one.

    Args:
        names: Command names to look up (e.g. "jq", "awk").
        path: Search path override; defaults to $PATH.

    Returns:
        Mapping of each name to its resolved location.

    Raises:
        ValidationError: MissingDependency if any name is not found.
    """
    log = logger or get_logger()
    found: dict[str, str] = {}
    missing: list[str] = []
    for name in names:
        location = shutil.which(name, path=path)
        if location is None:
            log.error("Required command not found:", name)
            missing.append(name)
        else:
            found[name] = location

    if missing:
        raise _fail(
            log,
            FailureKind.MISSING_DEPENDENCY,
            f"Missing required commands: {', '.join(missing)}",
            parameter=",".join(missing),
        )
    return found


def validate_hostname(
    hostname: str, *, resolve: bool | None = None, logger: Logger | None = None
) -> None:
    """
    Validate an RFC 1123 hostname.

    A DNS lookup is attempted as a diagnostic only, never as a condition for
    success. By default it runs only when debug logging is enabled.

    Raises:
        ValidationError: InvalidHostname if the name is empty or malformed.
    """
    log = logger or get_logger()
    if not hostname:
        raise _fail(
            log, FailureKind.INVALID_HOSTNAME, "Hostname cannot be empty", parameter="hostname"
        )
    if HOSTNAME_PATTERN.fullmatch(hostname) is None:
        raise _fail(
            log,
            FailureKind.INVALID_HOSTNAME,
            f"Invalid hostname format: {hostname}",
            parameter="hostname",
        )

    if resolve is None:
        resolve = log.is_enabled_for(LogLevel.DEBUG)
    if resolve:
        try:
            socket.getaddrinfo(hostname, None)
        except (OSError, UnicodeError) as exc:
            log.debug("Hostname does not resolve:", hostname, f"({exc})")
        else:
            log.debug("Hostname resolves:", hostname)
    log.debug("Hostname validation passed:", hostname)


def validate_no_shell_metacharacters(
    value: str, name: str = "input", *, logger: Logger | None = None
) -> None:
    """
    Reject values that could alter a shell command line.

    Raises:
        ValidationError: UnsafeInput naming the parameter and the character.
    """
    log = logger or get_logger()
    for char in value:
        if char in SHELL_METACHARACTERS:
            raise _fail(
                log,
                FailureKind.UNSAFE_INPUT,
                f"Dangerous character {char!r} detected in {name}",
                parameter=name,
            )


def validate_ai_agent_input(value: str, name: str = "input", *, logger: Logger | None = None) -> None:
    """
    Validate a parameter supplied by an AI agent.

    Applies, in order: a length cap, NUL and carriage-return rejection, and the
    shell metacharacter check. On success a DEBUG audit record is written with
    the parameter name and length. The value itself is never logged.

    Raises:
        ValidationError: InputTooLong or UnsafeInput.
    """
    log = logger or get_logger()
    if len(value) > MAX_AGENT_INPUT_LENGTH:
        raise _fail(
            log,
            FailureKind.INPUT_TOO_LONG,
            f"Parameter {name} too long: {len(value)} characters (maximum {MAX_AGENT_INPUT_LENGTH})",
            parameter=name,
        )
    if "\x00" in value:
        raise _fail(
            log, FailureKind.UNSAFE_INPUT, f"Null byte detected in {name}", parameter=name
        )
    if "\r" in value:
        raise _fail(
            log,
            FailureKind.UNSAFE_INPUT,
            f"Carriage return detected in {name}",
            parameter=name,
        )
    validate_no_shell_metacharacters(value, name, logger=log)
    log.debug("Parameter validated:", name, f"length={len(value)}", "passed")


def _canonical(path: str | os.PathLike[str], role: str, log: Logger) -> Path:
    try:
        return Path(path).resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise _fail(
            log,
            FailureKind.INVALID_PATH,
            f"Bad {role} path: {os.fspath(path)} ({exc.__class__.__name__})",
            parameter=os.fspath(path),
        ) from exc


def ensure_under_directory(
    base_dir: str | os.PathLike[str],
    target_path: str | os.PathLike[str],
    *,
    logger: Logger | None = None,
) -> Path:
    """
    Confine a path to a directory tree.

    Both paths are canonicalized (symlinks and ``..`` resolved) before the
    comparison. The target must equal the base or lie below it on a path
    component boundary, so ``/opt/base`` does not admit ``/opt/baseball``.

    Returns:
        The canonical target path.

    Raises:
        ValidationError: InvalidPath if either path cannot be canonicalized,
            PathTraversal if the target escapes the base.
    """
    log = logger or get_logger()
    base = _canonical(base_dir, "base", log)
    target = _canonical(target_path, "target", log)
    if target != base and base not in target.parents:
        raise _fail(
            log,
            FailureKind.PATH_TRAVERSAL,
            f"Security Violation: Refusing to operate outside '{base}' (target: '{target}')",
            parameter=os.fspath(target_path),
        )
    return target


def validate_port(value: str | int, *, name: str = "port", logger: Logger | None = None) -> int:
    """Validate a TCP/UDP port number (1-65535). Privileged ports only warn."""
    log = logger or get_logger()
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()) or not 1 <= int(text) <= 65535:
        raise _fail(
            log,
            FailureKind.UNSAFE_INPUT,
            f"Port number out of range in {name}: {text!r} (must be 1-65535)",
            parameter=name,
        )
    port = int(text)
    if port < 1024:
        log.warn(f"Using privileged port: {port} (requires elevated privileges)")
    log.debug("Port validation passed:", str(port))
    return port


def validate_timeout(
    value: str | int, *, name: str = "timeout", logger: Logger | None = None
) -> int:
    """Validate a timeout in whole seconds (1-86400). Very short timeouts only warn."""
    log = logger or get_logger()
    text = str(value).strip()
    if not (text.isascii() and text.isdigit()) or not 1 <= int(text) <= 86400:
        raise _fail(
            log,
            FailureKind.UNSAFE_INPUT,
            f"Timeout out of range in {name}: {text!r} (must be 1-86400 seconds)",
            parameter=name,
        )
    seconds = int(text)
    if seconds < 5:
        log.warn(f"Very short timeout: {seconds} seconds (may cause premature failures)")
    return seconds


def validate_string_length(
    value: str,
    min_length: int,
    max_length: int,
    name: str = "field",
    *,
    logger: Logger | None = None,
) -> None:
    log = logger or get_logger()
    length = len(value)
    if length < min_length:
        raise _fail(
            log,
            FailureKind.UNSAFE_INPUT,
            f"{name} too short: {length} characters (minimum {min_length})",
            parameter=name,
        )
    if length > max_length:
        raise _fail(
            log,
            FailureKind.INPUT_TOO_LONG,
            f"{name} too long: {length} characters (maximum {max_length})",
            parameter=name,
        )
    log.debug("String length validation passed for", name, f"length={length}")


def validate_identifier(value: str, name: str = "field", *, logger: Logger | None = None) -> None:
    """Allow only non-empty alphanumerics, underscores and hyphens."""
    log = logger or get_logger()
    if IDENTIFIER_PATTERN.fullmatch(value) is None:
        raise _fail(
            log,
            FailureKind.UNSAFE_INPUT,
            f"Invalid characters in {name} (only alphanumeric, underscore, hyphen allowed)",
            parameter=name,
        )


def validate_email(value: str, *, name: str = "email", logger: Logger | None = None) -> str:
    """
    Validate an email address against a basic RFC-compatible pattern.

    Rejects empty addresses, addresses over 254 characters, and consecutive
    dots anywhere in the address.

    Raises:
        ValidationError: UnsafeInput or InputTooLong.
    """
    log = logger or get_logger()
    if not value:
        raise _fail(log, FailureKind.UNSAFE_INPUT, f"{name} cannot be empty", parameter=name)
    if len(value) > MAX_EMAIL_LENGTH:
        raise _fail(
            log,
            FailureKind.INPUT_TOO_LONG,
            f"Email address too long: {len(value)} characters (max {MAX_EMAIL_LENGTH})",
            parameter=name,
        )
    if EMAIL_PATTERN.fullmatch(value) is None or ".." in value:
        raise _fail(
            log, FailureKind.UNSAFE_INPUT, f"Invalid email format: {value!r}", parameter=name
        )
    log.debug("Email validation passed:", value)
    return value


def validate_file_path(
    path: str | os.PathLike[str], access: str = "r", *, logger: Logger | None = None
) -> Path:
    """
    Check that a file exists and is accessible in the given mode.

    Modes are ``r``, ``w`` and ``x``. For ``w`` a missing file is accepted if
    its parent directory is writable.

    Returns:
        The absolute, normalized path.

    Raises:
        ValidationError: InvalidPath.
    """
    log = logger or get_logger()
    raw = os.fspath(path)
    if not raw:
        raise _fail(log, FailureKind.INVALID_PATH, "File path cannot be empty")
    mode = _ACCESS_MODES.get(access)
    if mode is None:
        raise _fail(
            log,
            FailureKind.INVALID_PATH,
            f"Invalid access mode: {access!r} (use r, w, or x)",
            parameter=raw,
        )

    resolved = Path(raw).resolve()
    if mode == os.W_OK and not resolved.exists():
        parent = resolved.parent
        if not parent.is_dir() or not os.access(parent, os.W_OK):
            raise _fail(
                log,
                FailureKind.INVALID_PATH,
                f"Cannot write to parent directory: '{parent}'",
                parameter=raw,
            )
    elif not resolved.is_file():
        raise _fail(
            log, FailureKind.INVALID_PATH, f"File does not exist: '{resolved}'", parameter=raw
        )
    elif not os.access(resolved, mode):
        raise _fail(
            log,
            FailureKind.INVALID_PATH,
            f"File not accessible for {access!r}: '{resolved}'",
            parameter=raw,
        )
    log.debug("File path validation passed:", str(resolved), f"({access} access)")
    return resolved
