"""Pytest configuration and fixtures for shellguard tests."""

from __future__ import annotations

import io
import tempfile
from pathlib import Path
from typing import Callable, Generator

import pytest

from shellguard import CommandPolicy, CommandRunner, LogConfig, LogFormat, Logger, LogLevel
from shellguard.log import _json_fallback_latch


@pytest.fixture(autouse=True)
def reset_fallback_latch() -> Generator[None, None, None]:
    """The JSON fallback notice is once per process; give every test a fresh process view."""
    _json_fallback_latch.reset()
    yield
    _json_fallback_latch.reset()


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(prefix="shellguard_test_") as tmp:
        yield Path(tmp).resolve()


@pytest.fixture
def stream() -> io.StringIO:
    """Captured diagnostic stream."""
    return io.StringIO()


@pytest.fixture
def make_logger(stream: io.StringIO) -> Callable[..., Logger]:
    """Build a Logger writing to the captured stream."""

    def factory(
        format: LogFormat = LogFormat.TEXT,
        min_level: LogLevel = LogLevel.INFO,
        verbose: bool = False,
        **kwargs: object,
    ) -> Logger:
        config = LogConfig(format=format, min_level=min_level, verbose=verbose)
        return Logger(config, stream=stream, name="shellguard.test", **kwargs)

    return factory


@pytest.fixture
def logger(make_logger: Callable[..., Logger]) -> Logger:
    """Verbose text logger so DEBUG audit records are visible."""
    return make_logger(min_level=LogLevel.DEBUG, verbose=True)


@pytest.fixture
def runner(temp_dir: Path, logger: Logger) -> CommandRunner:
    """Create a CommandRunner over a workspace with sample files."""
    (temp_dir / "test.txt").write_text("hello world")
    (temp_dir / "data.json").write_text('{"key": "value"}')
    return CommandRunner(temp_dir, logger=logger)


@pytest.fixture
def allowlist_policy() -> CommandPolicy:
    """Create an allow-list policy with basic commands."""
    return CommandPolicy.allowlist({"ls", "cat", "echo", "grep"})
