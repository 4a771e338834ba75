"""Logging for the mcpd client.

Logging is off unless MCPD_LOG_LEVEL is set to one of trace, debug,
info, warn or error. The level is read on every call, so it can be
changed at runtime.

Output goes to stderr through a private structlog pipeline; the host
application's structlog configuration is left untouched. Hosts that
speak a protocol over stdio should leave MCPD_LOG_LEVEL unset.
"""

import os
import sys
from collections.abc import Mapping
from enum import Enum
from typing import Any, Callable, Optional

import structlog
from structlog.types import Processor


LOG_LEVEL_ENV = "MCPD_LOG_LEVEL"

LOG_METHODS = ("trace", "debug", "info", "warn", "error")


class LogLevel(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    OFF = "off"


# Lower rank = more verbose
_RANKS = {
    LogLevel.TRACE: 5,
    LogLevel.DEBUG: 10,
    LogLevel.INFO: 20,
    LogLevel.WARN: 30,
    LogLevel.ERROR: 40,
    LogLevel.OFF: 1000,
}

# structlog method used to emit each SDK level
_STRUCTLOG_METHODS = {
    LogLevel.TRACE: "debug",
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
}


def resolve_log_level(raw: Optional[str]) -> LogLevel:
    """Parse a level name case-insensitively; anything unrecognised is OFF."""
    try:
        return LogLevel((raw or "").strip().lower())
    except ValueError:
        return LogLevel.OFF


def current_log_level() -> LogLevel:
    return resolve_log_level(os.environ.get(LOG_LEVEL_ENV))


def is_enabled(level: LogLevel) -> bool:
    active = current_log_level()
    return active is not LogLevel.OFF and _RANKS[active] <= _RANKS[level]


def add_log_level(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Add log level to event dict unless the caller already set one."""
    event_dict["level"] = event_dict.get("level", method_name).upper()
    return event_dict


def _processors() -> list[Processor]:
    return [
        add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=False),
    ]


def _format(message: Any, args: tuple[Any, ...]) -> str:
    text = str(message)
    if args:
        try:
            return text % args
        except (TypeError, ValueError):
            return " ".join([text, *(str(arg) for arg in args)])
    return text


class DefaultLogger:
    """Logger gated by MCPD_LOG_LEVEL, writing to stderr via structlog."""

    def _emit(self, level: LogLevel, message: Any, *args: Any) -> None:
        if not is_enabled(level):
            return
        # Bind to the current stderr so redirected streams are honoured
        logger = structlog.wrap_logger(
            structlog.PrintLogger(file=sys.stderr),
            processors=_processors(),
            wrapper_class=structlog.make_filtering_bound_logger(0),
            context_class=dict,
        )
        getattr(logger, _STRUCTLOG_METHODS[level])(
            _format(message, args), level=level.value
        )

    def trace(self, message: Any, *args: Any) -> None:
        self._emit(LogLevel.TRACE, message, *args)

    def debug(self, message: Any, *args: Any) -> None:
        self._emit(LogLevel.DEBUG, message, *args)

    def info(self, message: Any, *args: Any) -> None:
        self._emit(LogLevel.INFO, message, *args)

    def warn(self, message: Any, *args: Any) -> None:
        self._emit(LogLevel.WARN, message, *args)

    def error(self, message: Any, *args: Any) -> None:
        self._emit(LogLevel.ERROR, message, *args)


class SDKLogger:
    """
    Logger combining caller-supplied methods with the default logger.

    Any method the caller does not provide is delegated to DefaultLogger
    at call time, so it keeps honouring MCPD_LOG_LEVEL.
    """

    def __init__(self, overrides: Optional[dict[str, Callable[..., Any]]] = None) -> None:
        self._overrides = dict(overrides or {})
        self._default = DefaultLogger()

    def _dispatch(self, method: str, message: Any, *args: Any) -> None:
        override = self._overrides.get(method)
        if override is not None:
            override(message, *args)
        else:
            getattr(self._default, method)(message, *args)

    def trace(self, message: Any, *args: Any) -> None:
        self._dispatch("trace", message, *args)

    def debug(self, message: Any, *args: Any) -> None:
        self._dispatch("debug", message, *args)

    def info(self, message: Any, *args: Any) -> None:
        self._dispatch("info", message, *args)

    def warn(self, message: Any, *args: Any) -> None:
        self._dispatch("warn", message, *args)

    def error(self, message: Any, *args: Any) -> None:
        self._dispatch("error", message, *args)


def create_logger(impl: Any = None) -> SDKLogger:
    """
    Create a logger, optionally overriding some or all of its methods.

    Args:
        impl: None, a mapping of method name to callable, or any object
            exposing some of trace/debug/info/warn/error

    Returns:
        An SDKLogger with every method available
    """
    if impl is None:
        return SDKLogger()
    if isinstance(impl, SDKLogger):
        return impl

    overrides: dict[str, Callable[..., Any]] = {}
    for method in LOG_METHODS:
        if isinstance(impl, Mapping):
            candidate = impl.get(method)
        else:
            candidate = getattr(impl, method, None)
        if callable(candidate):
            overrides[method] = candidate

    return SDKLogger(overrides)
