"""
Failure trap and exit telemetry.

An unguarded exception is converted into a FailureContext, reported through
the logger (ERROR line, optional JSON ``script_error`` record, call-chain
walk) and turned into process termination with the failure's own exit code.

Each FailureScope carries its own Armed/Tripped state. The process-wide
FailureTrap owns one scope for the main thread; threads and tasks should
enter their own ``trap.scope()`` so one context's failure never masks
another's.
"""

from __future__ import annotations

import atexit
import os
import sys
import threading
import time
import traceback
from types import TracebackType
from typing import Any, Callable, TypeVar

from shellguard._types import FailureContext, FailureKind, Frame, LogLevel, utc_timestamp
from shellguard.errors import ValidationError
from shellguard.log import Logger, OnceLatch, get_logger

T = TypeVar("T")

# 128 + SIGINT, the status shells report for an interrupted command
INTERRUPTED_EXIT_CODE = 130


def capture_frames(tb: TracebackType | None) -> tuple[Frame, ...]:
    """Capture the call chain of a traceback, innermost first and outermost last."""
    return tuple(
        Frame(
            filename=summary.filename,
            lineno=summary.lineno or 0,
            function=summary.name,
            source=(summary.line or "").strip(),
        )
        for summary in reversed(traceback.extract_tb(tb))
    )


def exit_code_for(exc: BaseException) -> int:
    """Return the status a failure should terminate the process with."""
    if isinstance(exc, KeyboardInterrupt):
        return INTERRUPTED_EXIT_CODE
    for attr in ("exit_code", "returncode"):
        code = getattr(exc, attr, None)
        if isinstance(code, int) and not isinstance(code, bool) and 0 < code < 256:
            return code
    return 1


def build_context(exc: BaseException, tb: TracebackType | None = None) -> FailureContext:
    """Build the FailureContext for an exception."""
    frames = capture_frames(tb if tb is not None else exc.__traceback__)
    innermost = frames[0] if frames else None
    command = getattr(exc, "command", None) or (innermost.source if innermost else "") or repr(exc)
    kind = exc.kind if isinstance(exc, ValidationError) else FailureKind.UNHANDLED_FAILURE
    return FailureContext(
        line=innermost.lineno if innermost else 0,
        command=str(command),
        exit_code=exit_code_for(exc),
        timestamp=utc_timestamp(),
        call_chain=frames,
        kind=kind,
        error=repr(exc),
    )


def report_failure(logger: Logger, context: FailureContext, exc: BaseException) -> None:
    """
    Emit a FailureContext.

    Validation failures were already reported when detected, so they produce at
    most one ERROR line. Anything else gets the human-readable line, the JSON
    record when JSON mode is on, and the call-chain walk.
    """
    if isinstance(exc, ValidationError):
        if not exc.logged:
            logger.error(exc.reason)
        return

    logger.error(f"Failed at line {context.line}: {context.command} (exit {context.exit_code})")
    logger.event(
        LogLevel.ERROR,
        "script_error",
        line=context.line,
        command=context.command,
        exit_code=context.exit_code,
    )
    lines = [f"Call chain for {type(exc).__name__} (innermost first):"]
    lines.extend(f"  {frame}" for frame in context.call_chain)
    logger.write("\n".join(lines))


class FailureScope:
    """
    One-shot failure handling for a block of code.

    The first exception leaving the block trips the scope: it is reported and
    replaced by ``SystemExit`` with the failure's exit code. Exceptions arriving
    after the scope has tripped, ``SystemExit`` itself and other
    ``BaseException`` subclasses pass through untouched.

    Example:
        >>> with FailureScope(logger):
        ...     deploy()
    """

    def __init__(
        self,
        logger: Logger | None = None,
        *,
        on_trip: Callable[[FailureContext], None] | None = None,
    ) -> None:
        self.logger = logger or get_logger()
        self.context: FailureContext | None = None
        self._on_trip = on_trip

    @property
    def tripped(self) -> bool:
        return self.context is not None

    def handles(self, exc: BaseException) -> bool:
        """True if ``exc`` would trip this scope."""
        return not self.tripped and isinstance(exc, (Exception, KeyboardInterrupt))

    def handle(self, exc: BaseException, tb: TracebackType | None = None) -> int:
        """Trip the scope on ``exc`` and report it. Returns the exit code."""
        context = build_context(exc, tb)
        # Tripped before reporting so a failure inside the report cannot recurse
        self.context = context
        try:
            report_failure(self.logger, context, exc)
        except Exception as report_exc:
            fallback = sys.__stderr__
            if fallback is not None:
                fallback.write(f"shellguard: failed to report {context.error}: {report_exc!r}\n")
        if self._on_trip is not None:
            self._on_trip(context)
        return context.exit_code

    def __enter__(self) -> FailureScope:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        if exc is None or not self.handles(exc):
            return False
        raise SystemExit(self.handle(exc, tb)) from exc


class ExitTimer:
    """Logs elapsed run time once, when the process terminates."""

    def __init__(self, logger: Logger) -> None:
        self.logger = logger
        self.started_at = utc_timestamp()
        self._start = time.monotonic()
        self._latch = OnceLatch()

    def fire(self, exit_code: int | None = None) -> None:
        if not self._latch.claim():
            return
        try:
            elapsed = time.monotonic() - self._start
            status = "?" if exit_code is None else exit_code
            self.logger.debug(
                f"Exit {status}; started {self.started_at}; "
                f"finished {utc_timestamp()}; elapsed {elapsed:.3f}s"
            )
        except Exception:
            # Must never raise: the exit status is already decided
            pass


def _hard_exit(code: int) -> None:
    for stream in (sys.stdout, sys.stderr):
        try:
            if stream is not None:
                stream.flush()
        except (OSError, ValueError):
            pass
    os._exit(code)


class FailureTrap:
    """
    Process-wide interception of unhandled exceptions.

    ``install()`` arms ``sys.excepthook`` and registers the exit timer with
    ``atexit``. The first uncaught exception is reported once and the process
    terminates with that exception's exit code instead of Python's default 1.

    Example:
        >>> trap = FailureTrap(logger).install()
        >>> trap.run(main)
    """

    def __init__(
        self,
        logger: Logger | None = None,
        *,
        terminate: Callable[[int], Any] | None = None,
    ) -> None:
        self.logger = logger or get_logger()
        self.exit_code: int | None = None
        self.timer: ExitTimer | None = None
        self._terminate = terminate or _hard_exit
        self._scope = FailureScope(self.logger)
        self._previous_hook: Callable[..., Any] | None = None
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def tripped(self) -> bool:
        return self._scope.tripped

    @property
    def context(self) -> FailureContext | None:
        return self._scope.context

    def install(self) -> FailureTrap:
        """Arm the trap. Calling it again is a no-op."""
        if self._installed:
            return self
        self.timer = ExitTimer(self.logger)
        self._previous_hook = sys.excepthook
        sys.excepthook = self._excepthook
        atexit.register(self._at_exit)
        self._installed = True
        return self

    def uninstall(self) -> None:
        """Restore the previous excepthook and drop the exit hook."""
        if not self._installed:
            return
        if sys.excepthook == self._excepthook:
            sys.excepthook = self._previous_hook or sys.__excepthook__
        atexit.unregister(self._at_exit)
        self._installed = False

    def scope(self) -> FailureScope:
        """Return an independent scope for a thread or task."""
        return FailureScope(self.logger)

    def run(self, main: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """
        Run ``main`` under the trap's own scope.

        The exit code the call ends with is recorded for the exit timer.
        """
        try:
            with self._scope:
                result = main(*args, **kwargs)
        except SystemExit as exc:
            self.exit_code = _status_of(exc)
            raise
        self.exit_code = 0
        return result

    def _excepthook(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
    ) -> None:
        if not self._scope.handles(exc):
            (self._previous_hook or sys.__excepthook__)(exc_type, exc, tb)
            return
        code = self._scope.handle(exc, tb)
        self.exit_code = code
        if self.timer is not None:
            self.timer.fire(code)
        self._terminate(code)

    def _at_exit(self) -> None:
        if self.timer is not None:
            self.timer.fire(self.exit_code)


def _status_of(exc: SystemExit) -> int:
    if exc.code is None:
        return 0
    if isinstance(exc.code, int):
        return exc.code
    return 1


_process_trap: FailureTrap | None = None
_process_trap_lock = threading.Lock()


def install_trap(logger: Logger | None = None) -> FailureTrap:
    """Install the process-wide trap once and return it."""
    global _process_trap
    with _process_trap_lock:
        if _process_trap is None:
            _process_trap = FailureTrap(logger).install()
        return _process_trap
