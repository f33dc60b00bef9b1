"""
Exception hierarchy for the modeling core.

- NotFoundError: a referenced entity does not exist (raised before any write)
- ValidationFailedError: invalid input or a violated invariant (raised before any write)
- CascadeUnresolvedError: a best-effort propagation target could not be found;
  raised and caught inside the propagator, logged only
- TransactionFailedError: the store rejected a write; the transaction was
  rolled back and the operation may be retried

Each subclass fixes its category, severity and recoverability as class
attributes; instances only carry the message and a details mapping.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, AsyncIterator

from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def log_level(self) -> int:
        return {
            "low": logging.DEBUG,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL,
        }[self.value]


class ErrorCategory(str, Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    CASCADE = "cascade"
    STORAGE = "storage"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class ModelingError(Exception):
    """Base class; the defaults below apply to anything not more specific."""

    category = ErrorCategory.INTERNAL
    severity = ErrorSeverity.MEDIUM
    recoverable = False

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        *,
        category: ErrorCategory | None = None,
        severity: ErrorSeverity | None = None,
        recoverable: bool | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = dict(details or {})
        if category is not None:
            self.category = category
        if severity is not None:
            self.severity = severity
        if recoverable is not None:
            self.recoverable = recoverable
        self.raised_at = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        """Serializable view used by logs and outer surfaces."""
        return dict(
            error_type=type(self).__name__,
            message=self.message,
            category=self.category.value,
            severity=self.severity.value,
            details=self.details,
            recoverable=self.recoverable,
            timestamp=self.raised_at.isoformat(),
        )


def _with(details: dict[str, Any] | None, **extra: Any) -> dict[str, Any]:
    """Merge extra keys into details, skipping the ones left unset."""
    merged = dict(details or {})
    merged.update({key: value for key, value in extra.items() if value is not None})
    return merged


class NotFoundError(ModelingError):
    """A referenced entity does not exist."""

    category = ErrorCategory.NOT_FOUND
    severity = ErrorSeverity.LOW

    def __init__(self, entity: str, identifier: Any, details: dict[str, Any] | None = None) -> None:
        self.entity = entity
        self.identifier = identifier
        super().__init__(
            f"{entity} not found: {identifier}",
            _with(details, entity=entity, identifier=str(identifier)),
        )


class ValidationFailedError(ModelingError):
    category = ErrorCategory.VALIDATION
    severity = ErrorSeverity.LOW

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.field = field
        super().__init__(
            message,
            _with(details, field=field or None, value=None if value is None else str(value)),
        )


class CascadeUnresolvedError(ModelingError):
    """A propagation step could not locate its target."""

    category = ErrorCategory.CASCADE
    recoverable = True

    def __init__(self, message: str, step: str, details: dict[str, Any] | None = None) -> None:
        self.step = step
        super().__init__(message, _with(details, step=step))


class TransactionFailedError(ModelingError):
    """The store rejected a transaction; it was rolled back."""

    category = ErrorCategory.STORAGE
    severity = ErrorSeverity.HIGH
    recoverable = True

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, _with(details, operation=operation or None))

    @property
    def retryable(self) -> bool:
        return self.recoverable


class ConfigurationError(ModelingError):
    category = ErrorCategory.CONFIGURATION
    severity = ErrorSeverity.HIGH

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, _with(details, config_key=config_key or None))


def log_error(error: ModelingError, target: logging.Logger | None = None) -> None:
    """Log an error at the level matching its severity."""
    (target or logger).log(
        error.severity.log_level,
        "[%s] %s",
        error.category.value,
        error.message,
        extra={"context": error.details},
    )


@asynccontextmanager
async def store_errors(operation: str) -> AsyncIterator[None]:
    """
    Translate store failures into TransactionFailedError.

    Usage:
        async with store_errors("create_family"):
            async with session.begin():
                ...
    """
    try:
        yield
    except SQLAlchemyError as e:
        error = TransactionFailedError(
            f"Transaction failed during {operation}: {e}",
            operation=operation,
            details={"original_type": type(e).__name__},
        )
        log_error(error)
        raise error from e
