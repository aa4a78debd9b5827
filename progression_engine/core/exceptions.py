"""
Infrastructure exceptions for the progression engine.

Purpose
-------
Define the structured exception hierarchy for infrastructure-level concerns:
persistence failures, configuration errors, leaderboard source outages and
other technical issues the host application may want to alert on.

Design Notes
------------
- Every engine exception (infrastructure and domain) derives from
  `ProgressionError`, which carries:
  - `message`: human-readable description
  - `details`: additional structured context (dict)
  - `severity`: `ErrorSeverity` value for logging/alerting
  - `is_retryable`: whether the operation can be retried
  - `error_code`: short, stable identifier for programmatic use
- Infrastructure failures derive from `ProgressionInfrastructureException`;
  rule violations live in `progression_engine.modules.shared.exceptions`.
- Helper functions (`is_transient_error`, `get_error_severity`, `should_alert`)
  centralize common exception handling patterns for both families.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(Enum):
    """Error severity levels for logging and alerting."""

    DEBUG = "debug"  # Expected, not concerning
    INFO = "info"  # Normal operation (e.g., validation failures)
    WARNING = "warning"  # Concerning but handled (e.g., a failed save)
    ERROR = "error"  # Unexpected errors requiring attention
    CRITICAL = "critical"  # Misconfiguration; engine cannot run correctly


class ProgressionError(Exception):
    """
    Structured base for every exception raised by the engine.

    Args:
        message: Human-readable error message
        details: Additional structured data about the error
        severity: Error severity level for logging handlers
        is_retryable: Whether the operation can be retried
        error_code: Optional code for programmatic handling
    """

    DEFAULT_SEVERITY: ErrorSeverity = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE: bool = False

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[ErrorSeverity] = None,
        is_retryable: Optional[bool] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: Dict[str, Any] = details or {}
        self.severity: ErrorSeverity = severity or self.DEFAULT_SEVERITY
        self.is_retryable: bool = (
            is_retryable if is_retryable is not None else self.DEFAULT_RETRYABLE
        )
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "severity": self.severity.value,
            "is_retryable": self.is_retryable,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r}, "
            f"severity={self.severity.value!r}, "
            f"is_retryable={self.is_retryable!r}"
            ")"
        )


class ProgressionInfrastructureException(ProgressionError):
    """
    Base exception for infrastructure-level failures.

    Example:
        >>> raise ProgressionInfrastructureException(
        ...     "Redis unreachable",
        ...     {"url": "redis://localhost:6379/0"}
        ... )
    """


class ConfigurationError(ProgressionInfrastructureException):
    """
    Raised when a required configuration key is invalid or missing.

    Args:
        config_key: The configuration key that has issues
        message: Description of the configuration problem
    """

    DEFAULT_SEVERITY = ErrorSeverity.CRITICAL
    DEFAULT_RETRYABLE = False

    def __init__(self, config_key: str, message: str) -> None:
        self.config_key = config_key
        error_message = f"Configuration error for {config_key}: {message}"
        super().__init__(
            error_message,
            details={
                "config_key": config_key,
                "message": message,
            },
            error_code="CONFIG_ERROR",
        )


class PersistenceError(ProgressionInfrastructureException):
    """
    Raised when a progression snapshot cannot be loaded or saved.

    The engine treats these as recoverable: loads fall back to defaults and
    saves are logged and counted, so the in-memory state stays authoritative.

    Args:
        operation: "load" or "save"
        user_id: Owner of the snapshot
        original_error: The underlying storage exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.WARNING
    DEFAULT_RETRYABLE = True

    def __init__(self, operation: str, user_id: str, original_error: Exception) -> None:
        self.operation = operation
        self.user_id = user_id
        self.original_error = original_error
        message = f"Persistence error during {operation} for user {user_id}: {original_error}"
        super().__init__(
            message,
            details={
                "operation": operation,
                "user_id": user_id,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="PERSISTENCE_ERROR",
        )


class LeaderboardSourceError(ProgressionInfrastructureException):
    """
    Raised when the leaderboard row source fails.

    Args:
        timeframe: Requested leaderboard window
        original_error: The underlying exception
    """

    DEFAULT_SEVERITY = ErrorSeverity.ERROR
    DEFAULT_RETRYABLE = True

    def __init__(self, timeframe: str, original_error: Exception) -> None:
        self.timeframe = timeframe
        self.original_error = original_error
        message = f"Leaderboard source failed for {timeframe}: {original_error}"
        super().__init__(
            message,
            details={
                "timeframe": timeframe,
                "error": str(original_error),
                "error_type": type(original_error).__name__,
            },
            error_code="LEADERBOARD_SOURCE_ERROR",
        )


# Utility functions for exception handling patterns


def is_transient_error(exc: Exception) -> bool:
    """
    Check if an exception represents a transient error that can be retried.

    Args:
        exc: Exception to check

    Returns:
        True if error is retryable, False otherwise.
    """
    if isinstance(exc, ProgressionError):
        return exc.is_retryable
    return False


def get_error_severity(exc: Exception) -> ErrorSeverity:
    """
    Get the severity level of an exception for logging.

    Args:
        exc: Exception to check

    Returns:
        ErrorSeverity level (ERROR for exceptions outside the engine hierarchy).
    """
    if isinstance(exc, ProgressionError):
        return exc.severity
    return ErrorSeverity.ERROR


def should_alert(exc: Exception) -> bool:
    """True if severity is ERROR or CRITICAL."""
    severity = get_error_severity(exc)
    return severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL)
