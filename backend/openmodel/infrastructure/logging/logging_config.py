"""
Logging configuration for OpenModel.

Features:
- Level, handlers and file layout driven by LoggingSettings
- JSON records for files (and optionally the console), readable lines otherwise
- One rotating file per module under a dated directory, old dates pruned
- Per-task context through log_context and the *_with_context logger methods
"""

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator

from openmodel.core.config import LoggingSettings

_log_context: ContextVar[dict[str, Any]] = ContextVar("openmodel_log_context", default={})
_file_handlers: dict[str, RotatingFileHandler] = {}
_current_level = "INFO"

NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg")


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "context", None) or {}


class JsonFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        context = _record_context(record)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Single-line console output, coloured when attached to a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = False):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        level = f"{record.levelname:8}"
        if self.use_color:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{self.RESET}"

        line = f"{self.formatTime(record, '%H:%M:%S')} {level} {record.name} - {record.getMessage()}"
        context = _record_context(record)
        if context:
            line += " " + " ".join(f"{key}={value}" for key, value in context.items())
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class StaticContextFilter(logging.Filter):
    """Adds fixed keys (e.g. the service name) under every record's context."""

    def __init__(self, **context: Any):
        super().__init__()
        self.context = context

    def filter(self, record: logging.LogRecord) -> bool:
        record.context = {**self.context, **_record_context(record)}
        return True


class OpenModelLogger(logging.Logger):
    """Logger whose *_with_context methods attach the active log_context."""

    def log_with_context(
        self,
        level: int,
        msg: str,
        context: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> None:
        if not self.isEnabledFor(level):
            return
        extra = dict(kwargs.pop("extra", None) or {})
        extra["context"] = {**_log_context.get(), **(context or {})}
        self._log(level, msg, (), extra=extra, **kwargs)

    def debug_with_context(self, msg: str, context: dict[str, Any] | None = None, **kwargs: Any) -> None:
        self.log_with_context(logging.DEBUG, msg, context, **kwargs)

    def info_with_context(self, msg: str, context: dict[str, Any] | None = None, **kwargs: Any) -> None:
        self.log_with_context(logging.INFO, msg, context, **kwargs)

    def warning_with_context(self, msg: str, context: dict[str, Any] | None = None, **kwargs: Any) -> None:
        self.log_with_context(logging.WARNING, msg, context, **kwargs)

    def error_with_context(self, msg: str, context: dict[str, Any] | None = None, **kwargs: Any) -> None:
        self.log_with_context(logging.ERROR, msg, context, **kwargs)


logging.setLoggerClass(OpenModelLogger)


def prune_log_dirs(log_dir: Path, retention_days: int) -> int:
    """Remove dated log directories older than the retention window."""
    if not log_dir.exists():
        return 0

    cutoff = datetime.now() - timedelta(days=retention_days)
    removed = 0
    for item in log_dir.iterdir():
        if not item.is_dir():
            continue
        try:
            day = datetime.strptime(item.name, "%Y-%m-%d")
        except ValueError:
            continue
        if day < cutoff:
            for file in item.iterdir():
                file.unlink()
            item.rmdir()
            removed += 1
    return removed


def get_file_handler(module_name: str, settings: LoggingSettings) -> RotatingFileHandler:
    """Rotating JSON file handler for one module, created once per process."""
    if module_name in _file_handlers:
        return _file_handlers[module_name]

    log_dir = Path(settings.log_dir)
    prune_log_dirs(log_dir, settings.retention_days)
    day_dir = log_dir / datetime.now().strftime("%Y-%m-%d")
    day_dir.mkdir(parents=True, exist_ok=True)

    handler = RotatingFileHandler(
        day_dir / f"{module_name.replace('.', '_')}.log",
        maxBytes=settings.max_file_size_mb * 1024 * 1024,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(JsonFormatter())
    handler.addFilter(StaticContextFilter(service=module_name))
    _file_handlers[module_name] = handler
    return handler


def setup_logging(settings: LoggingSettings | None = None, module_name: str = "openmodel") -> None:
    """
    Configure the root logger from settings.

    Existing root handlers are replaced. Driver and ORM loggers are held
    at WARNING regardless of the configured level.
    """
    global _current_level

    settings = settings or LoggingSettings()
    _current_level = settings.level.upper()
    level = logging.getLevelName(_current_level)
    if not isinstance(level, int):
        level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    if settings.enable_console:
        console = logging.StreamHandler(sys.stdout)
        if settings.json_console:
            console.setFormatter(JsonFormatter())
        else:
            console.setFormatter(ConsoleFormatter(use_color=sys.stdout.isatty()))
        root.addHandler(console)

    if settings.enable_file:
        root.addHandler(get_file_handler(module_name, settings))

    for handler in root.handlers:
        handler.setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> OpenModelLogger:
    return logging.getLogger(name)  # type: ignore[return-value]


def set_log_level(level: str) -> None:
    """Change the root level and every root handler's level at runtime."""
    global _current_level
    _current_level = level.upper()
    numeric = logging.getLevelName(_current_level)
    if not isinstance(numeric, int):
        numeric = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric)
    for handler in root.handlers:
        handler.setLevel(numeric)


def get_log_level() -> str:
    return _current_level


def current_log_context() -> dict[str, Any]:
    return dict(_log_context.get())


@contextmanager
def log_context(**kwargs: Any) -> Iterator[dict[str, Any]]:
    """
    Add keys to the context of every *_with_context record in this task.

    Usage:
        with log_context(operation="create_family", model="Sales"):
            logger.info_with_context("Building family")
    """
    token = _log_context.set({**_log_context.get(), **kwargs})
    try:
        yield _log_context.get()
    finally:
        _log_context.reset(token)


def log_operation(
    logger: OpenModelLogger,
    operation: str,
    args: dict[str, Any] | None = None,
    error: Exception | None = None,
    duration_ms: float | None = None,
) -> None:
    """
    Record one finished facade call.

    Args:
        logger: Logger instance
        operation: Operation name
        args: Arguments worth recording
        error: Exception if the call failed
        duration_ms: Wall time in milliseconds
    """
    context: dict[str, Any] = {"operation": operation}
    if args:
        context["args"] = args
    if duration_ms is not None:
        context["duration_ms"] = round(duration_ms, 2)

    if error is None:
        logger.debug_with_context(f"Operation {operation} completed", context=context)
    else:
        context["error_type"] = type(error).__name__
        logger.error_with_context(f"Operation {operation} failed: {error}", context=context)
