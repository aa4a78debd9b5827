"""
Structured logging for the progression engine.

The engine logs through plain `logging.getLogger(__name__)` loggers. The host
application calls `setup_logging()` once; until then records go wherever the
host's own logging sends them, and importing this module touches no handlers.

After setup, the root logger feeds a bounded queue drained by a listener
thread, so file and console writes never run on the event loop. The listener
writes to the console (coloured text in development, JSON in production) and,
optionally, to a JSON file rotated at midnight UTC.

Every record is stamped with the current `LogContext` (user_id, operation,
component, correlation_id), which lets one mutation be followed through the
saves and events it queues.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from progression_engine.core.config.config import Config

_log_context: ContextVar[Dict[str, Any]] = ContextVar("progression_log_context", default={})

# Fields ContextFilter stamps on every record; JSONFormatter lifts them to top level.
CONTEXT_FIELDS = ("user_id", "operation", "component", "correlation_id")

# Attributes every LogRecord carries; anything else came from `extra=`.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}

_MISSING = "N/A"


@dataclass(frozen=True)
class LogSettings:
    """Logging switches resolved from `Config`."""

    level: int
    json_console: bool
    colors: bool
    logs_dir: Path
    file_name: str = "progression.json.log"
    file_backups: int = 1
    queue_size: int = 10_000

    CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
    DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

    @classmethod
    def from_config(cls) -> "LogSettings":
        production = Config.is_production()
        json_console = production if Config.LOG_JSON is None else bool(Config.LOG_JSON)
        level = logging.getLevelName(str(Config.LOG_LEVEL).upper())
        return cls(
            level=level if isinstance(level, int) else logging.INFO,
            json_console=json_console,
            colors=not json_console and bool(Config.LOG_COLORS) and sys.stdout.isatty(),
            logs_dir=Path(Config.LOGS_DIR).resolve(),
        )


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the active LogContext onto the record. Explicit `extra` wins."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        for name in CONTEXT_FIELDS:
            if getattr(record, name, None) in (None, _MISSING):
                setattr(record, name, context.get(name) or _MISSING)
        if record.component == _MISSING:
            record.component = record.name.split(".")[-1]
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS: Dict[int, str] = {
        logging.DEBUG: "\033[90m",
        logging.INFO: "\033[94m",
        logging.WARNING: "\033[93m",
        logging.ERROR: "\033[91m",
        logging.CRITICAL: "\033[1;91m",
    }

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        text = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        return f"{color}{text}\033[0m" if color else text


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    Context fields sit at the top level when set; every other `extra=`
    field is nested under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, _MISSING):
                data[name] = value

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in CONTEXT_FIELDS and not key.startswith("_")
        }
        if extra:
            data["extra"] = extra
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)

        return json.dumps(data, ensure_ascii=False, default=str)


class DroppingQueueHandler(QueueHandler):
    """Queue handler that drops records instead of blocking when the queue is full."""

    dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            DroppingQueueHandler.dropped += 1
            sys.stderr.write("progression_engine: log queue full, record dropped\n")


# ============================================================================
# Setup / Teardown
# ============================================================================

_listener: Optional[QueueListener] = None
_installed: List[logging.Handler] = []


def _console_handler(settings: LogSettings) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if settings.json_console:
        handler.setFormatter(JSONFormatter())
    elif settings.colors:
        handler.setFormatter(ColoredFormatter(settings.CONSOLE_FORMAT, settings.DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(settings.CONSOLE_FORMAT, settings.DATE_FORMAT))
    return handler


def _file_handler(settings: LogSettings) -> logging.Handler:
    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        settings.logs_dir / settings.file_name,
        when="midnight",
        backupCount=settings.file_backups,
        encoding="utf-8",
        utc=True,
    )
    handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(*, file_output: bool = True) -> None:
    """
    Route the root logger through the background queue.

    Idempotent. `file_output=False` skips the rotating JSON file.
    """
    global _listener

    if _listener is not None:
        return

    settings = LogSettings.from_config()
    outputs = [_console_handler(settings)]
    if file_output:
        outputs.append(_file_handler(settings))

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(settings.queue_size)
    _listener = QueueListener(log_queue, *outputs, respect_handler_level=True)
    _listener.start()

    queue_handler = DroppingQueueHandler(log_queue)
    # Enrich before the record leaves this thread; the ContextVar is not visible to the listener.
    queue_handler.addFilter(ContextFilter())

    root = logging.getLogger()
    root.setLevel(settings.level)
    root.addHandler(queue_handler)
    _installed.append(queue_handler)

    for noisy in ("asyncio", "redis"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={**Config.get_config_summary(), "file_output": file_output},
    )


def shutdown_logging() -> None:
    """Flush the queue and remove the handlers installed by `setup_logging()`."""
    global _listener

    if _listener is None:
        return

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    _listener.stop()
    for handler in _listener.handlers:
        handler.close()
    _listener = None


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


# ============================================================================
# Log context
# ============================================================================


class LogContext:
    """
    Scoped log context, usable with `with` or `async with`.

    Example:
        >>> with LogContext(user_id="u1", operation="progression.award_xp"):
        ...     logger.info("XP awarded")
    """

    def __init__(
        self,
        user_id: Optional[Any] = None,
        operation: Optional[str] = None,
        component: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            **extra,
            "user_id": str(user_id) if user_id is not None else None,
            "operation": operation,
            "component": component,
            "correlation_id": correlation_id or uuid.uuid4().hex[:8],
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, *exc_info: Any) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, *exc_info: Any) -> None:
        self.__exit__(*exc_info)


def get_log_context() -> Dict[str, Any]:
    """Copy of the current context, without unset fields."""
    return {key: value for key, value in _log_context.get().items() if value is not None}


def set_log_context(user_id: Optional[Any] = None, **fields: Any) -> None:
    """Merge fields into the current context (outside any `LogContext` scope)."""
    current = dict(_log_context.get())
    if user_id is not None:
        current["user_id"] = str(user_id)
    current.update({key: value for key, value in fields.items() if value is not None})
    _log_context.set(current)


def clear_log_context() -> None:
    _log_context.set({})
