"""
Structured, level-filtered logging to the diagnostic stream.

Each Logger owns a private stdlib logger with a single stream handler. The
formatter renders either a human-readable text line or a single-line JSON
object. JSON rendering is fail-open: if the encoder is unavailable or breaks,
the line is rendered as text and a one-time notice is written.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
import time
from contextlib import contextmanager
from typing import IO, Any, Iterator, Mapping, NoReturn

from shellguard._types import JsonEncoder, LogFormat, LogLevel, LogLine, utc_timestamp
from shellguard.config import LogConfig

FALLBACK_NOTICE = "JSON encoder unavailable; falling back to text logs"


class OnceLatch:
    """Thread-safe one-shot flag."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._fired = False

    def claim(self) -> bool:
        """Return True exactly once, for the first caller."""
        with self._lock:
            if self._fired:
                return False
            self._fired = True
            return True

    def reset(self) -> None:
        with self._lock:
            self._fired = False


_json_fallback_latch = OnceLatch()


def _level_of(levelno: int) -> LogLevel:
    for level in reversed(LogLevel):
        if levelno >= level:
            return level
    return LogLevel.DEBUG


class GuardFormatter(logging.Formatter):
    """
    Render log records as shellguard text or JSON lines.

    Records carry their message fragments in ``record.fragments`` and any
    structured fields in ``record.fields``. Records from other code fall back
    to ``record.getMessage()`` as a single fragment.
    """

    def __init__(self, log_format: LogFormat, encoder: JsonEncoder | None = json.dumps) -> None:
        super().__init__()
        self.log_format = log_format
        self.encoder = encoder

    def format(self, record: logging.LogRecord) -> str:
        fragments = getattr(record, "fragments", None)
        if fragments is None:
            fragments = (record.getMessage(),)
        line = LogLine(
            timestamp=utc_timestamp(record.created),
            level=_level_of(record.levelno),
            fragments=fragments,
            fields=getattr(record, "fields", None) or {},
        )
        if self.log_format is LogFormat.JSON:
            try:
                if self.encoder is None:
                    raise LookupError("no JSON encoder configured")
                return line.render_json(self.encoder)
            except Exception:
                return self._render_fallback(line)
        return line.render_text()

    def _render_fallback(self, line: LogLine) -> str:
        text = line.render_text()
        if _json_fallback_latch.claim():
            notice = f"[{line.timestamp}] [{LogLevel.WARN.name}] {FALLBACK_NOTICE}"
            return f"{notice}\n{text}"
        return text


class Logger:
    """
    Severity-specific logging API over a configured stdlib logger.

    A call at level L is emitted iff L >= config.min_level. DEBUG calls also
    require ``config.verbose``.

    ``context`` holds key-value pairs (service, environment, trace id...)
    attached to every ``structured`` and ``metric`` record.

    Example:
        >>> log = Logger(LogConfig(format=LogFormat.JSON), context={"service": "web"})
        >>> log.info("deploying", "web 01")
        >>> log.structured(LogLevel.INFO, "deploy started", operation="deploy")
    """

    def __init__(
        self,
        config: LogConfig | None = None,
        *,
        stream: IO[str] | None = None,
        name: str = "shellguard",
        encoder: JsonEncoder | None = json.dumps,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self.config = config or LogConfig.from_env()
        self.stream = stream if stream is not None else sys.stderr
        self.encoder = encoder
        self.name = name
        self.context: dict[str, Any] = dict(context or {})

        self._handler = logging.StreamHandler(self.stream)
        self._handler.setFormatter(GuardFormatter(self.config.format, encoder))

        # Not registered with logging.getLogger, so no two instances share handlers or levels
        self._logger = logging.Logger(name, logging.DEBUG)
        self._logger.addHandler(self._handler)
        self._logger.propagate = False

    @property
    def json_enabled(self) -> bool:
        """True when machine-readable records can be emitted."""
        return self.config.format is LogFormat.JSON and self.encoder is not None

    def is_enabled_for(self, level: LogLevel) -> bool:
        """Apply both gates: the minimum level and, for DEBUG, the verbose flag."""
        if level < self.config.min_level:
            return False
        return level is not LogLevel.DEBUG or self.config.verbose

    def debug(self, *fragments: object) -> None:
        self._emit(LogLevel.DEBUG, fragments)

    def info(self, *fragments: object) -> None:
        self._emit(LogLevel.INFO, fragments)

    def warn(self, *fragments: object) -> None:
        self._emit(LogLevel.WARN, fragments)

    def error(self, *fragments: object) -> None:
        self._emit(LogLevel.ERROR, fragments)

    def fatal(self, *fragments: object) -> NoReturn:
        """Log at ERROR, then terminate with status 1."""
        self.error(*fragments)
        raise SystemExit(1)

    def event(self, level: LogLevel, event: str, **fields: Any) -> bool:
        """
        Emit a machine-readable record with ``event`` and extra fields.

        Only JSON mode emits anything. Returns True if a record was written.
        """
        if not self.json_enabled or not self.is_enabled_for(level):
            return False
        self._emit(level, (), {"event": event, **fields})
        return True

    def structured(self, level: LogLevel, message: str, /, **fields: Any) -> None:
        """
        Emit ``message`` with the bound context and per-call fields.

        JSON mode writes one object holding the message, the context keys and
        the fields. Text mode appends them to the message as ``key=value``
        words. Per-call fields override context keys of the same name.
        """
        self._emit(level, (message,), {**self.context, **fields})

    def metric(self, name: str, value: float, /, *, unit: str = "seconds", **labels: Any) -> None:
        """Emit an INFO record for a measured value, such as an operation's duration."""
        self.structured(LogLevel.INFO, name, metric=name, value=value, unit=unit, **labels)

    @contextmanager
    def timed(self, name: str, /, **labels: Any) -> Iterator[None]:
        """
        Measure the enclosed block and emit its duration as a metric.

        The metric is emitted even if the block raises.

        Example:
            >>> with log.timed("deploy_duration", environment="prod"):
            ...     deploy()
        """
        started = time.monotonic()
        try:
            yield
        finally:
            self.metric(name, round(time.monotonic() - started, 3), **labels)

    def bind(self, **context: Any) -> Logger:
        """Return a logger with the same configuration and additional context."""
        return Logger(
            self.config,
            stream=self.stream,
            name=self.name,
            encoder=self.encoder,
            context={**self.context, **context},
        )

    def write(self, text: str) -> None:
        """Write pre-formatted text to the diagnostic stream, bypassing the gates."""
        if not text.endswith("\n"):
            text += "\n"
        self._handler.acquire()
        try:
            self.stream.write(text)
            self.stream.flush()
        finally:
            self._handler.release()

    def _emit(
        self,
        level: LogLevel,
        fragments: tuple[object, ...],
        fields: dict[str, Any] | None = None,
    ) -> None:
        if not self.is_enabled_for(level):
            return
        parts = tuple(str(fragment) for fragment in fragments)
        self._logger.log(
            int(level),
            " ".join(parts),
            extra={"fragments": parts, "fields": fields or {}},
        )


_default: Logger | None = None
_default_lock = threading.Lock()


def init_logging(
    config: LogConfig | None = None,
    *,
    stream: IO[str] | None = None,
    encoder: JsonEncoder | None = json.dumps,
) -> Logger:
    """(Re)initialize the process-wide logger. Reads the environment if no config is given."""
    global _default
    with _default_lock:
        _default = Logger(config, stream=stream, encoder=encoder)
        return _default


def get_logger() -> Logger:
    """Return the process-wide logger, building it from the environment on first use."""
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                _default = Logger()
    return _default


def debug(*fragments: object) -> None:
    get_logger().debug(*fragments)


def info(*fragments: object) -> None:
    get_logger().info(*fragments)


def warn(*fragments: object) -> None:
    get_logger().warn(*fragments)


def error(*fragments: object) -> None:
    get_logger().error(*fragments)


def fatal(*fragments: object) -> NoReturn:
    get_logger().fatal(*fragments)
