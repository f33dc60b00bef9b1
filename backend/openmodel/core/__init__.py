"""
Core configuration and error types.
"""

from .config import (
    DatabaseSettings,
    LoggingSettings,
    ObjectLakeSettings,
    Settings,
    get_settings,
)
from .exceptions import (
    CascadeUnresolvedError,
    ConfigurationError,
    ErrorCategory,
    ErrorSeverity,
    ModelingError,
    NotFoundError,
    TransactionFailedError,
    ValidationFailedError,
    log_error,
    store_errors,
)

__all__ = [
    "DatabaseSettings",
    "LoggingSettings",
    "ObjectLakeSettings",
    "Settings",
    "get_settings",
    "CascadeUnresolvedError",
    "ConfigurationError",
    "ErrorCategory",
    "ErrorSeverity",
    "ModelingError",
    "NotFoundError",
    "TransactionFailedError",
    "ValidationFailedError",
    "log_error",
    "store_errors",
]
