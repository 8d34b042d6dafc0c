"""
Guildhall error taxonomy, shared base and infrastructure errors.

Every error the guild services raise is a ``GuildhallError``. It carries a
stable ``error_code``, structured ``details``, an ``ErrorSeverity`` for
logging, ``is_retryable`` and the ``http_status`` the HTTP layer answers
with. Subclasses set those as class attributes.

Two families sit under it:

- ``GuildhallDomainException`` (``guildhall.modules.shared.exceptions``):
  guild rule outcomes such as NotFound or Conflict. They are expected,
  logged at INFO and never retried.
- ``GuildhallInfrastructureException`` (here): database failures, deadlines
  and configuration problems that need technical attention.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class GuildhallError(Exception):
    SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    RETRYABLE: bool = False
    HTTP_STATUS: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}
        self.error_code = error_code or type(self).__name__

    @property
    def severity(self) -> ErrorSeverity:
        return self.SEVERITY

    @property
    def is_retryable(self) -> bool:
        return self.RETRYABLE

    @property
    def http_status(self) -> int:
        return self.HTTP_STATUS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
            "http_status": self.http_status,
        }

    def __str__(self) -> str:
        suffix = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{suffix}"


class GuildhallInfrastructureException(GuildhallError):
    """Failure below the guild rules: database, deadline or configuration."""


class ConfigurationError(GuildhallInfrastructureException):
    """A configuration key is missing or holds an unusable value."""

    SEVERITY = ErrorSeverity.CRITICAL

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            details={"config_key": config_key, "message": message},
            error_code="CONFIG_ERROR",
        )


class DatabaseError(GuildhallInfrastructureException):
    """
    A database operation failed for a reason other than a deadline or a
    unique violation. The original driver error is kept for logging.
    """

    RETRYABLE = True

    def __init__(self, operation: str, original_error: Exception) -> None:
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            f"Database error during {operation}: {original_error}",
            details={
                "operation": operation,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="DATABASE_ERROR",
        )


class DatabaseTimeoutError(GuildhallInfrastructureException):
    """
    A session or transaction exceeded DATABASE_QUERY_TIMEOUT.

    The transaction is always rolled back before this propagates.
    """

    SEVERITY = ErrorSeverity.WARNING
    RETRYABLE = True
    HTTP_STATUS = 408

    def __init__(self, operation: str, timeout_seconds: float) -> None:
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Database operation '{operation}' exceeded {timeout_seconds}s deadline",
            details={"operation": operation, "timeout_seconds": timeout_seconds},
            error_code="DATABASE_TIMEOUT",
        )


def is_transient_error(exc: Exception) -> bool:
    """Retryable infrastructure failure; domain outcomes never are."""
    return isinstance(exc, GuildhallInfrastructureException) and exc.is_retryable


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """Severity of a Guildhall error; anything unforeseen counts as ERROR."""
    if isinstance(exc, GuildhallError):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    return get_error_severity(exc) in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
