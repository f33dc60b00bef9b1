"""
Infrastructure Logging Module.
"""

from .logging_config import (
    ConsoleFormatter,
    JsonFormatter,
    OpenModelLogger,
    current_log_context,
    get_log_level,
    get_logger,
    log_context,
    log_operation,
    set_log_level,
    setup_logging,
)

__all__ = [
    "ConsoleFormatter",
    "JsonFormatter",
    "OpenModelLogger",
    "current_log_context",
    "get_log_level",
    "get_logger",
    "log_context",
    "log_operation",
    "set_log_level",
    "setup_logging",
]
