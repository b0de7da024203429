"""Logging for the TTLock bridge.

Every module gets a :class:`BridgeLogger` from :func:`get_logger`. Lines go to
stdout (or stderr, or a file) in a compact human format, and optionally as JSON
objects to a file for log shippers. Both carry the correlation ID of the MQTT
command or lock event being handled, plus any ``extra=`` context::

    10/18/26 09:12:55.042 INFO [command_routing:118] [cmd-1a2b3c4d5e6f] > mqtt:cmd: LOCK done | attempts=2
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast, override

from ttlock_bridge.correlation import get_correlation_id

__all__ = [
    "BridgeLogger",
    "HumanReadableFormatter",
    "JSONFormatter",
    "get_logger",
    "set_package_level",
]

PACKAGE_LOGGER = "ttlock_bridge"


def record_context(record: logging.LogRecord) -> dict[str, object]:
    """Structured context attached through ``BridgeLogger(..., extra=...)``."""
    context = getattr(record, "extra_data", None)
    if not isinstance(context, Mapping):
        return {}
    return dict(cast("Mapping[str, object]", context))


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }
        if context := record_context(record):
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``date time.ms LEVEL [module:line] [correlation] > message | key=value``"""

    default_time_format = "%m/%d/%y %H:%M:%S"
    default_msec_format = "%s.%03d"

    @override
    def format(self, record: logging.LogRecord) -> str:
        tag = get_correlation_id() or "--"
        line = (
            f"{self.formatTime(record)} {record.levelname} [{record.module}:{record.lineno}] [{tag}] > "
            f"{record.getMessage()}"
        )
        if context := record_context(record):
            line += " | " + " | ".join(f"{key}={value}" for key, value in context.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _human_handler(target: str) -> logging.Handler:
    if target in ("stdout", "stderr"):
        return logging.StreamHandler(getattr(sys, target))
    path = Path(target)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a")
    except OSError as e:
        print(f"Warning: cannot open log file {path} ({e}), logging to stdout", file=sys.stderr)
        return logging.StreamHandler(sys.stdout)


def _json_handler(target: str | Path) -> logging.Handler | None:
    path = Path(target)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a")
    except OSError as e:
        print(f"Warning: cannot open JSON log file {path} ({e}), JSON logging disabled", file=sys.stderr)
        return None


def build_handlers(log_format: str, json_file: str | Path | None, human_output: str | None) -> list[logging.Handler]:
    """Handlers for ``log_format`` ("human", "json" or "both")."""
    handlers: list[logging.Handler] = []
    if log_format in ("json", "both") and json_file:
        handler = _json_handler(json_file)
        if handler is not None:
            handler.setFormatter(JSONFormatter())
            handlers.append(handler)
    if log_format in ("human", "both"):
        handler = _human_handler(human_output or "stdout")
        handler.setFormatter(HumanReadableFormatter())
        handlers.append(handler)
    return handlers


class BridgeLogger:
    """A :class:`logging.Logger` whose methods accept ``extra=`` as plain structured context.

    Handlers are attached once per logger name, so asking for the same name
    twice never duplicates output.
    """

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stdout",
    ) -> None:
        from ttlock_bridge.const import TTLOCK_DEBUG

        self.name: str = name
        self.log_format: str = log_format
        self.logger: logging.Logger = logging.getLogger(name)
        if not self.logger.handlers:
            for handler in build_handlers(log_format, json_file, human_output):
                self.logger.addHandler(handler)
        self.set_level(logging.DEBUG if TTLOCK_DEBUG else logging.INFO)

    def _log(self, level: int, msg: str, args: tuple[object, ...], extra: Mapping[str, object] | None) -> None:
        if self.logger.isEnabledFor(level):
            # stacklevel 3 attributes the record to the caller of debug()/info()/...
            self.logger.log(level, msg, *args, extra={"extra_data": dict(extra or {})}, stacklevel=3)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, args, extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, args, extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, args, extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, args, extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        self.logger.exception(msg, *args, extra={"extra_data": dict(extra or {})}, stacklevel=2)

    def set_level(self, level: int) -> None:
        """Set the level on the logger and all of its handlers."""
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


def get_logger(
    name: str,
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> BridgeLogger:
    """Logger for ``name``; unset outputs fall back to ``TTLOCK_LOG_FORMAT`` and friends."""
    from ttlock_bridge.const import TTLOCK_LOG_FORMAT, TTLOCK_LOG_HUMAN_OUTPUT, TTLOCK_LOG_JSON_FILE

    return BridgeLogger(
        name,
        log_format=log_format or TTLOCK_LOG_FORMAT,
        json_file=json_file or TTLOCK_LOG_JSON_FILE,
        human_output=human_output or TTLOCK_LOG_HUMAN_OUTPUT,
    )


def set_package_level(level: int) -> None:
    """Apply ``level`` to every ``ttlock_bridge`` logger created so far (``-D`` on the command line)."""
    for name, existing in logging.Logger.manager.loggerDict.items():
        if not isinstance(existing, logging.Logger):
            continue
        if name == PACKAGE_LOGGER or name.startswith(f"{PACKAGE_LOGGER}."):
            existing.setLevel(level)
            for handler in existing.handlers:
                handler.setLevel(level)
