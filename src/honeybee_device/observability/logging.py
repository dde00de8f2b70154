"""Structured logging for honeybee-device.

Thin layer over the standard logging module that lets callers attach
key-value data to a record instead of formatting it into the message:

    logger = get_logger(__name__)
    logger.info("Frame published", width=640, height=480, size_kb=41.2)

Output is either human-readable (``message | key=value ...``) or one JSON
object per line for log shippers. ``LogContext`` scopes extra keys to a
block of code; the capture worker uses it to stamp every record it emits
with the stream it belongs to.

Security Note:
    Values coming from the GUI or from subprocess output belong in keyword
    arguments, never interpolated into the message string, so that CR/LF
    in them cannot forge additional log lines.
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
import threading
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, cast

ROOT_LOGGER_NAME = "honeybee_device"

_log_context: contextvars.ContextVar[dict[str, Any]] = contextvars.ContextVar(
    "honeybee_log_context", default={}
)


# =============================================================================
# Logger
# =============================================================================


class StructuredLogger(logging.Logger):
    """Logger accepting keyword arguments as structured data.

    Every level method forwards unknown keyword arguments to ``_log``,
    which merges them with the active ``LogContext`` and stores the
    result on the record as ``structured_data``. The message and level
    parameters are positional-only, so ``level=`` and ``msg=`` are
    ordinary structured keys.
    """

    def debug(
        self,
        msg: object,
        /,
        *args: Any,
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log debug message with optional structured data kwargs."""
        if self.isEnabledFor(logging.DEBUG):
            self._log(
                logging.DEBUG,
                msg,
                args,
                exc_info=exc_info,
                extra=extra,
                stack_info=stack_info,
                stacklevel=stacklevel + 1,
                **kwargs,
            )

    def info(
        self,
        msg: object,
        /,
        *args: Any,
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log info message with optional structured data kwargs."""
        if self.isEnabledFor(logging.INFO):
            self._log(
                logging.INFO,
                msg,
                args,
                exc_info=exc_info,
                extra=extra,
                stack_info=stack_info,
                stacklevel=stacklevel + 1,
                **kwargs,
            )

    def warning(
        self,
        msg: object,
        /,
        *args: Any,
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log warning message with optional structured data kwargs."""
        if self.isEnabledFor(logging.WARNING):
            self._log(
                logging.WARNING,
                msg,
                args,
                exc_info=exc_info,
                extra=extra,
                stack_info=stack_info,
                stacklevel=stacklevel + 1,
                **kwargs,
            )

    def error(
        self,
        msg: object,
        /,
        *args: Any,
        exc_info: Any = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        extra: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        """Log error message with optional structured data kwargs."""
        if self.isEnabledFor(logging.ERROR):
            self._log(
                logging.ERROR,
                msg,
                args,
                exc_info=exc_info,
                extra=extra,
                stack_info=stack_info,
                stacklevel=stacklevel + 1,
                **kwargs,
            )

    def _log(
        self,
        level: int,
        msg: object,
        args: tuple[Any, ...] | MutableMapping[str, Any] | None = None,
        /,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **kwargs: Any,
    ) -> None:
        """Attach context and keyword data to the record, then log it.

        Merge order is ``LogContext`` first, explicit kwargs second, so a
        call site can override an ambient key for a single record.

        Args:
            level: Numeric log level.
            msg: Log message.
            args: %-style formatting arguments for msg.
            exc_info: Exception info passed through to logging.
            extra: Extra LogRecord attributes; ``structured_data`` is set on it.
            stack_info: Include a stack trace when True.
            stacklevel: Frames to skip when resolving the caller.
            **kwargs: Structured key-value data (frame sizes, durations, ...).

        Example:
            >>> with LogContext(stream_id=3):
            ...     logger.info("Cycle skipped", reason="decode")
            # ... | stream_id=3 reason=decode
        """
        structured_data = {**_log_context.get(), **kwargs}

        if extra is None:
            extra = {}
        extra["structured_data"] = structured_data

        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


# =============================================================================
# Formatters
# =============================================================================


class StructuredFormatter(logging.Formatter):
    """Human-readable formatter: ``timestamp - name - level - msg | k=v``."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_structured: bool = True,
    ) -> None:
        """Create the formatter.

        Args:
            fmt: Base format string; defaults to
                ``%(asctime)s - %(name)s - %(levelname)s - %(message)s``.
            datefmt: Date format for ``%(asctime)s``.
            include_structured: Append ``| key=value`` pairs when True.
        """
        if fmt is None:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        super().__init__(fmt, datefmt)
        self.include_structured = include_structured

    def format(self, record: logging.LogRecord) -> str:
        """Format the record and append its structured data, if any.

        Args:
            record: Record to format. A missing ``structured_data``
                attribute (records from foreign loggers) is treated as empty.

        Returns:
            Formatted line, e.g.
            ``... - INFO - Camera stream stopped | frames=250 skipped=2``.
        """
        base = super().format(record)
        if not self.include_structured:
            return base

        structured = getattr(record, "structured_data", {})
        if not structured:
            return base

        pairs = " ".join(f"{k}={_format_value(v)}" for k, v in structured.items())
        return f"{base} | {pairs}"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, structured data merged at top level."""

    def format(self, record: logging.LogRecord) -> str:
        """Serialize the record as a single JSON line.

        Keys: ``timestamp`` (UTC ISO 8601), ``level``, ``logger``,
        ``message``, every structured key, and ``exception`` when the
        record carries exc_info. Unserializable values fall back to str().
        """
        log_dict: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log_dict.update(getattr(record, "structured_data", {}))

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_dict, default=str)


def _format_value(value: Any) -> str:
    """Render one structured value for the key=value format.

    None becomes ``null``, strings containing spaces are quoted, dicts and
    lists are JSON-encoded, everything else goes through str().

    Example:
        >>> _format_value("Failed to open camera")
        '"Failed to open camera"'
        >>> _format_value({"width": 640})
        '{"width": 640}'
    """
    if value is None:
        return "null"
    if isinstance(value, str):
        if " " in value:
            return f'"{value}"'
        return value
    if isinstance(value, dict | list):
        return json.dumps(value, default=str)
    return str(value)


# =============================================================================
# Context
# =============================================================================


@dataclass
class LogContext:
    """Scope key-value pairs onto every record logged inside a block.

    Backed by contextvars, so a context entered in the capture worker
    thread is invisible to request handlers running elsewhere. Nested
    contexts merge, inner values winning.

    Usage:
        with LogContext(stream_id=1):
            logger.info("Opening device")  # carries stream_id=1
    """

    _kwargs: dict[str, Any] = field(default_factory=dict, init=False, repr=True)
    _token: contextvars.Token[dict[str, Any]] | None = field(
        default=None, init=False, repr=False
    )

    def __init__(self, **kwargs: Any) -> None:
        self._kwargs = kwargs
        self._token = None

    def __enter__(self) -> LogContext:
        """Push this context's values on top of the current context."""
        self._token = _log_context.set({**_log_context.get(), **self._kwargs})
        return self

    def __exit__(self, *args: Any) -> None:
        """Restore the context that was active before ``__enter__``."""
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None


# =============================================================================
# Configuration
# =============================================================================

_configured = False
_config_lock = threading.Lock()


def configure_logging(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
    force: bool = False,
) -> None:
    """Install the handler and formatter on the ``honeybee_device`` logger.

    Idempotent: only the first call takes effect unless ``force=True``,
    which tears down the existing handler first. Called by the CLI at
    startup; library code relies on ``get_logger`` configuring defaults.

    Args:
        level: Minimum level (int or name such as ``"DEBUG"``).
        json_format: Emit JSON lines instead of key=value text.
        stream: Destination stream, default ``sys.stderr``.
        include_structured: Append structured data in text mode.
        force: Reconfigure even if already configured.

    Example:
        >>> configure_logging(level="DEBUG", json_format=True, force=True)
    """
    with _config_lock:
        if force:
            _reset_logging_impl()
        _configure_logging_impl(level, json_format, stream, include_structured)


def _configure_logging_impl(
    level: int | str = logging.INFO,
    json_format: bool = False,
    stream: Any = None,
    include_structured: bool = True,
) -> None:
    """Body of configure_logging; caller holds ``_config_lock``."""
    global _configured

    if _configured:
        return

    logging.setLoggerClass(StructuredLogger)

    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    formatter: logging.Formatter
    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = StructuredFormatter(include_structured=include_structured)
    handler.setFormatter(formatter)

    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel(level.upper() if isinstance(level, str) else level)
    root.addHandler(handler)
    root.propagate = False

    _configured = True


def _reset_logging_impl() -> None:
    """Body of reset_logging; caller holds ``_config_lock``."""
    global _configured

    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()

    _configured = False


def reset_logging() -> None:
    """Drop the installed handler so the next configure call starts fresh.

    Intended for test teardown.
    """
    with _config_lock:
        _reset_logging_impl()


def get_logger(name: str) -> StructuredLogger:
    """Return a StructuredLogger, configuring defaults on first use.

    Args:
        name: Logger name, normally ``__name__`` so records are attributed
            to ``honeybee_device.<module>``.

    Returns:
        Logger accepting structured keyword arguments.

    Example:
        >>> logger = get_logger("honeybee_device.devices.stream")
        >>> logger.info("Camera stream started", stream_id=1)
    """
    if not _configured:
        with _config_lock:
            if not _configured:  # pragma: no branch
                _configure_logging_impl()

    # setLoggerClass() above guarantees the concrete type
    return cast(StructuredLogger, logging.getLogger(name))
