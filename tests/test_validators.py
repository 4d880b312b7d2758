"""Tests for input validators."""

from __future__ import annotations

import io
import os
import socket
from pathlib import Path

import pytest

from shellguard import FailureKind, Logger, ValidationError
from shellguard.security import validators
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


def _kind(exc_info: pytest.ExceptionInfo[ValidationError]) -> FailureKind:
    return exc_info.value.kind


class TestRequireCommandsAvailable:
    def test_resolves_present_commands(self, logger: Logger) -> None:
        found = require_commands_available("sh", logger=logger)
        assert os.path.basename(found["sh"]) == "sh"

    def test_lists_every_missing_command(self, logger: Logger, stream: io.StringIO) -> None:
        with pytest.raises(ValidationError) as exc_info:
            require_commands_available(
                "sh", "shellguard-missing-one", "shellguard-missing-two", logger=logger
            )
        assert _kind(exc_info) is FailureKind.MISSING_DEPENDENCY
        assert "shellguard-missing-one" in exc_info.value.reason
        assert "shellguard-missing-two" in exc_info.value.reason
        output = stream.getvalue()
        assert "not found: shellguard-missing-one" in output
        assert "not found: shellguard-missing-two" in output

    def test_is_idempotent(self, logger: Logger) -> None:
        assert require_commands_available("sh", logger=logger) == require_commands_available(
            "sh", logger=logger
        )
        for _ in range(2):
            with pytest.raises(ValidationError) as exc_info:
                require_commands_available("shellguard-missing", logger=logger)
            assert exc_info.value.parameter == "shellguard-missing"

    def test_honours_search_path(self, logger: Logger, temp_dir: Path) -> None:
        tool = temp_dir / "mytool"
        tool.write_text("#!/bin/sh\n")
        tool.chmod(0o755)
        found = require_commands_available("mytool", path=str(temp_dir), logger=logger)
        assert found["mytool"] == str(tool)


class TestValidateHostname:
    @pytest.mark.parametrize("hostname", ["api.example.com", "localhost", "a", "web-01.prod"])
    def test_accepts_valid(self, hostname: str, logger: Logger) -> None:
        validate_hostname(hostname, resolve=False, logger=logger)

    @pytest.mark.parametrize(
        "hostname",
        [
            "",
            "-bad.host",
            "bad-.host",
            "host..example",
            "host_with_underscore_that_is_also_a_valid_dns_label?",
            "a" * 64,
            "api.example.com\n",
            "trailing.",
        ],
    )
    def test_rejects_invalid(self, hostname: str, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_hostname(hostname, resolve=False, logger=logger)
        assert _kind(exc_info) is FailureKind.INVALID_HOSTNAME

    def test_rejected_value_cannot_forge_a_log_line(
        self, logger: Logger, stream: io.StringIO
    ) -> None:
        with pytest.raises(ValidationError):
            validate_hostname(
                "evil\n[2026-01-01T00:00:00Z] [INFO] all clear", resolve=False, logger=logger
            )
        lines = stream.getvalue().splitlines()
        assert len(lines) == 1
        assert "[ERROR]" in lines[0]
        assert "\\n[2026-01-01T00:00:00Z] [INFO] all clear" in lines[0]

    def test_label_of_63_characters(self, logger: Logger) -> None:
        validate_hostname("a" * 63 + ".example", resolve=False, logger=logger)

    def test_dns_failure_is_not_fatal(
        self, logger: Logger, stream: io.StringIO, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def fail(*args: object, **kwargs: object) -> None:
            raise socket.gaierror("Name or service not known")

        monkeypatch.setattr(validators.socket, "getaddrinfo", fail)
        validate_hostname("does-not-exist.invalid", logger=logger)
        assert "does not resolve" in stream.getvalue()

    def test_no_lookup_without_debug(
        self, make_logger, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def explode(*args: object, **kwargs: object) -> None:
            raise AssertionError("lookup should not run")

        monkeypatch.setattr(validators.socket, "getaddrinfo", explode)
        validate_hostname("api.example.com", logger=make_logger())


class TestValidateNoShellMetacharacters:
    @pytest.mark.parametrize("char", sorted(SHELL_METACHARACTERS))
    def test_rejects_each_metacharacter(self, char: str, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_no_shell_metacharacters(f"safe{char}value", "arg", logger=logger)
        assert _kind(exc_info) is FailureKind.UNSAFE_INPUT
        assert exc_info.value.parameter == "arg"

    @pytest.mark.parametrize(
        "value", ["", "plain", "with spaces", "path/to/file.txt", "key=value", "a-b_c.d", "50%"]
    )
    def test_accepts_clean_values(self, value: str, logger: Logger) -> None:
        validate_no_shell_metacharacters(value, "arg", logger=logger)

    def test_message_names_parameter(self, logger: Logger, stream: io.StringIO) -> None:
        with pytest.raises(ValidationError):
            validate_no_shell_metacharacters("x; reboot", "target_host", logger=logger)
        assert "target_host" in stream.getvalue()


class TestValidateAiAgentInput:
    def test_accepts_and_audits(self, logger: Logger, stream: io.StringIO) -> None:
        validate_ai_agent_input("report-2024.csv", "filename", logger=logger)
        lines = stream.getvalue().splitlines()
        assert len(lines) == 1
        assert "[DEBUG]" in lines[0]
        assert "filename" in lines[0]
        assert "length=15" in lines[0]
        assert "passed" in lines[0]
        assert "report-2024.csv" not in lines[0]

    def test_boundary_length_passes(self, logger: Logger) -> None:
        validate_ai_agent_input("a" * MAX_AGENT_INPUT_LENGTH, "blob", logger=logger)

    @pytest.mark.parametrize("value", ["a" * 1001, ";" * 5000])
    def test_too_long(self, value: str, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_ai_agent_input(value, "blob", logger=logger)
        assert _kind(exc_info) is FailureKind.INPUT_TOO_LONG

    @pytest.mark.parametrize("value", ["nul\x00byte", "carriage\rreturn", "x && y"])
    def test_unsafe(self, value: str, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_ai_agent_input(value, "param", logger=logger)
        assert _kind(exc_info) is FailureKind.UNSAFE_INPUT

    def test_payload_not_logged_on_failure(self, logger: Logger, stream: io.StringIO) -> None:
        with pytest.raises(ValidationError):
            validate_ai_agent_input("$(cat /etc/shadow)", "query", logger=logger)
        assert "/etc/shadow" not in stream.getvalue()


class TestEnsureUnderDirectory:
    @pytest.fixture
    def tree(self, temp_dir: Path) -> Path:
        (temp_dir / "app" / "data").mkdir(parents=True)
        (temp_dir / "app" / "data" / "x").write_text("x")
        (temp_dir / "application").mkdir()
        (temp_dir / "escape").mkdir()
        return temp_dir

    def test_accepts_nested_path(self, tree: Path, logger: Logger) -> None:
        result = ensure_under_directory(tree / "app", tree / "app" / "data" / "x", logger=logger)
        assert result == tree / "app" / "data" / "x"

    def test_accepts_base_itself(self, tree: Path, logger: Logger) -> None:
        assert ensure_under_directory(tree / "app", tree / "app", logger=logger) == tree / "app"

    def test_rejects_sibling_prefix(self, tree: Path, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ensure_under_directory(tree / "app", tree / "application", logger=logger)
        assert _kind(exc_info) is FailureKind.PATH_TRAVERSAL

    def test_rejects_dotdot_escape(self, tree: Path, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ensure_under_directory(tree / "app", f"{tree}/app/../escape", logger=logger)
        assert _kind(exc_info) is FailureKind.PATH_TRAVERSAL

    def test_accepts_dotdot_that_stays_inside(self, tree: Path, logger: Logger) -> None:
        result = ensure_under_directory(tree / "app", f"{tree}/app/data/../data/x", logger=logger)
        assert result == tree / "app" / "data" / "x"

    def test_rejects_symlink_escape(self, tree: Path, logger: Logger) -> None:
        link = tree / "app" / "link"
        link.symlink_to(tree / "escape")
        with pytest.raises(ValidationError) as exc_info:
            ensure_under_directory(tree / "app", link, logger=logger)
        assert _kind(exc_info) is FailureKind.PATH_TRAVERSAL

    def test_nonexistent_target_is_invalid_path(self, tree: Path, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ensure_under_directory(tree / "app", tree / "app" / "missing", logger=logger)
        assert _kind(exc_info) is FailureKind.INVALID_PATH

    def test_nonexistent_base_is_invalid_path(self, tree: Path, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            ensure_under_directory(tree / "nope", tree / "app", logger=logger)
        assert _kind(exc_info) is FailureKind.INVALID_PATH

    def test_root_base_admits_everything(self, tree: Path, logger: Logger) -> None:
        assert ensure_under_directory("/", tree / "app", logger=logger) == tree / "app"


class TestSupplementaryValidators:
    def test_port(self, logger: Logger, stream: io.StringIO) -> None:
        assert validate_port("8080", logger=logger) == 8080
        assert validate_port(22, logger=logger) == 22
        assert "privileged port" in stream.getvalue()

    @pytest.mark.parametrize("value", ["0", "65536", "http", "-1", "", "\u00b2", "\u0668\u0660"])
    def test_port_rejects(self, value: str, logger: Logger) -> None:
        with pytest.raises(ValidationError):
            validate_port(value, logger=logger)

    def test_timeout(self, logger: Logger, stream: io.StringIO) -> None:
        assert validate_timeout("300", logger=logger) == 300
        assert validate_timeout(2, logger=logger) == 2
        assert "Very short timeout" in stream.getvalue()
        with pytest.raises(ValidationError):
            validate_timeout("86401", logger=logger)
        with pytest.raises(ValidationError):
            validate_timeout("\u00b2", logger=logger)

    def test_string_length(self, logger: Logger) -> None:
        validate_string_length("abc", 1, 3, "code", logger=logger)
        with pytest.raises(ValidationError) as too_short:
            validate_string_length("", 1, 3, "code", logger=logger)
        assert _kind(too_short) is FailureKind.UNSAFE_INPUT
        with pytest.raises(ValidationError) as too_long:
            validate_string_length("abcd", 1, 3, "code", logger=logger)
        assert _kind(too_long) is FailureKind.INPUT_TOO_LONG

    def test_identifier(self, logger: Logger) -> None:
        validate_identifier("web_app-01", "service", logger=logger)
        for bad in ("", "web app", "web.app", "app;"):
            with pytest.raises(ValidationError):
                validate_identifier(bad, "service", logger=logger)

    def test_file_path_modes(self, temp_dir: Path, logger: Logger) -> None:
        target = temp_dir / "config.yml"
        target.write_text("a: 1")
        assert validate_file_path(target, "r", logger=logger) == target
        assert validate_file_path(temp_dir / "new.yml", "w", logger=logger) == temp_dir / "new.yml"

        with pytest.raises(ValidationError) as missing:
            validate_file_path(temp_dir / "absent.yml", "r", logger=logger)
        assert _kind(missing) is FailureKind.INVALID_PATH

        with pytest.raises(ValidationError):
            validate_file_path(target, "x", logger=logger)

        with pytest.raises(ValidationError):
            validate_file_path(target, "z", logger=logger)


class TestValidateEmail:
    @pytest.mark.parametrize(
        "value", ["ops@example.com", "first.last+tag@mail.example.co.uk", "a_b%c@x-y.io"]
    )
    def test_accepts_valid(self, value: str, logger: Logger) -> None:
        assert validate_email(value, logger=logger) == value

    @pytest.mark.parametrize(
        "value",
        [
            "plainaddress",
            "missing-domain@",
            "@example.com",
            "user@example",
            "user@example.c",
            "user..name@example.com",
            "user@example..com",
            "user@exa mple.com",
            "user@example.com\n",
        ],
    )
    def test_rejects_invalid(self, value: str, logger: Logger) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_email(value, logger=logger)
        assert _kind(exc_info) is FailureKind.UNSAFE_INPUT

    def test_rejects_empty(self, logger: Logger, stream: io.StringIO) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_email("", name="contact", logger=logger)
        assert exc_info.value.parameter == "contact"
        assert "contact cannot be empty" in stream.getvalue()

    def test_length_cap(self, logger: Logger) -> None:
        local = "a" * 64
        address = f"{local}@{'b' * 185}.com"
        assert len(address) == 254
        validate_email(address, logger=logger)
        with pytest.raises(ValidationError) as exc_info:
            validate_email(f"{local}@{'b' * 186}.com", logger=logger)
        assert _kind(exc_info) is FailureKind.INPUT_TOO_LONG
