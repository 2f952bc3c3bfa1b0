"""Logging for the Neato MQTT bridge.

``get_logger(__name__)`` returns a :class:`NeatoLogger`. Every record carries
the active correlation ID plus any structured context passed as
``extra={...}``; output is human-readable text, JSON lines, or both, as
selected by ``NEATO_LOG_FORMAT``.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO, cast, override

from neato_mqtt.correlation import get_correlation_id

__all__ = [
    "CONTEXT_ATTR",
    "HumanReadableFormatter",
    "JSONFormatter",
    "NeatoLogger",
    "get_logger",
    "record_context",
    "set_package_level",
]

# LogRecord attribute holding the ``extra=`` mapping
CONTEXT_ATTR = "neato_context"
_NO_CORRELATION = "--------"
_STREAMS: dict[str, TextIO] = {"stdout": sys.stdout, "stderr": sys.stderr}


def record_context(record: logging.LogRecord) -> dict[str, object]:
    context = getattr(record, CONTEXT_ATTR, None)
    if isinstance(context, Mapping):
        return dict(cast("Mapping[str, object]", context))
    return {}


class JSONFormatter(logging.Formatter):
    """JSON lines; structured context goes under ``"context"``."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "where": f"{record.module}:{record.lineno}",
            "correlation_id": get_correlation_id(),
            "message": record.getMessage(),
        }
        if context := record_context(record):
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class HumanReadableFormatter(logging.Formatter):
    """``01/02/26 10:00:00.123 INFO [service:88] [1a2b3c4d] > message | key=value``"""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] [%(short_correlation_id)s] > %(message)s",
            "%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        correlation_id = get_correlation_id()
        record.short_correlation_id = correlation_id[:8] if correlation_id else _NO_CORRELATION
        line = super().format(record)
        context = record_context(record)
        if not context:
            return line
        return " | ".join([line, *(f"{key}={value}" for key, value in context.items())])


def _file_handler(path: Path) -> logging.FileHandler | None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return logging.FileHandler(path, mode="a", encoding="utf-8")
    except OSError as e:
        print(f"Warning: cannot open log file {path}: {e}", file=sys.stderr)
        return None


def _text_handler(target: str) -> logging.Handler:
    """Handler for ``stdout``, ``stderr`` or a file path (stdout if the file cannot be opened)."""
    if target in _STREAMS:
        return logging.StreamHandler(_STREAMS[target])
    return _file_handler(Path(target)) or logging.StreamHandler(sys.stdout)


class NeatoLogger:
    """:class:`logging.Logger` wrapper that takes structured context.

    ``logger.info("published %d topics", n, extra={"root": root})``
    """

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stdout",
    ) -> None:
        """Initialize NeatoLogger.

        Args:
            name: Logger name, normally the module's ``__name__``
            log_format: "human", "json" or "both"
            json_file: JSON lines file; no JSON output when None
            human_output: "stdout", "stderr" or a file path

        """
        from neato_mqtt.const import NEATO_DEBUG

        self.name: str = name
        self.log_format: str = log_format
        self.logger: logging.Logger = logging.getLogger(name)
        self.logger.setLevel(logging.DEBUG if NEATO_DEBUG else logging.INFO)
        if not self.logger.handlers:
            for handler in self._build_handlers(json_file, human_output):
                handler.setLevel(self.logger.level)
                self.logger.addHandler(handler)

    def _build_handlers(self, json_file: str | Path | None, human_output: str | None) -> list[logging.Handler]:
        handlers: list[logging.Handler] = []
        if json_file and self.log_format in ("json", "both"):
            json_handler = _file_handler(Path(json_file))
            if json_handler is not None:
                json_handler.setFormatter(JSONFormatter())
                handlers.append(json_handler)
        if self.log_format in ("human", "both"):
            text_handler = _text_handler(human_output or "stdout")
            text_handler.setFormatter(HumanReadableFormatter())
            handlers.append(text_handler)
        return handlers

    def _log(
        self,
        level: int,
        msg: str,
        *args: object,
        extra: Mapping[str, object] | None = None,
        exc_info: bool = False,
    ) -> None:
        # stacklevel 3: report the caller of debug()/info()/..., not this wrapper
        self.logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            extra={CONTEXT_ATTR: dict(extra)} if extra else None,
            stacklevel=3,
        )

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """ERROR with the traceback of the exception being handled."""
        self._log(logging.ERROR, msg, *args, extra=extra, exc_info=True)

    def set_level(self, level: int) -> None:
        """Set the level of the logger and of each of its handlers."""
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


def get_logger(name: str) -> NeatoLogger:
    """NeatoLogger configured from the ``NEATO_LOG_*`` environment."""
    from neato_mqtt.const import NEATO_LOG_FORMAT, NEATO_LOG_HUMAN_OUTPUT, NEATO_LOG_JSON_FILE

    return NeatoLogger(
        name,
        log_format=NEATO_LOG_FORMAT,
        json_file=NEATO_LOG_JSON_FILE,
        human_output=NEATO_LOG_HUMAN_OUTPUT,
    )


def set_package_level(level: int, package: str = "neato_mqtt") -> None:
    """Set ``level`` on every existing logger of ``package`` and on their handlers."""
    for name in list(logging.Logger.manager.loggerDict):
        if name == package or name.startswith(f"{package}."):
            package_logger = logging.getLogger(name)
            package_logger.setLevel(level)
            for handler in package_logger.handlers:
                handler.setLevel(level)
