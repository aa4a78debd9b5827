"""
Domain exceptions for the progression engine.

Purpose
-------
Define the domain-specific exception hierarchy for progression rules.
These are raised by services for invalid input, unknown identifiers and
operations attempted in the wrong lifecycle state. The host application
translates them into user-facing messages.

Design Notes
------------
- All domain exceptions inherit from `ProgressionDomainException`, which shares
  the structured metadata of `progression_engine.core.exceptions.ProgressionError`.
- Domain errors default to INFO severity: they describe caller mistakes,
  not engine faults.
"""

from __future__ import annotations

from typing import Any, Optional

from progression_engine.core.exceptions import ErrorSeverity, ProgressionError


class ProgressionDomainException(ProgressionError):
    """
    Base exception for all progression rule violations.

    Example:
        >>> raise ProgressionDomainException(
        ...     "Badge catalogue mismatch",
        ...     {"badge_id": "streak_3"}
        ... )
    """

    DEFAULT_SEVERITY = ErrorSeverity.INFO
    DEFAULT_RETRYABLE = False


class ValidationError(ProgressionDomainException):
    """
    Raised when caller input fails validation.

    Args:
        field: Name of the field that failed validation
        message: Explanation of why validation failed
    """

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.validation_message = message
        error_message = f"Validation error for {field}: {message}"
        super().__init__(
            error_message,
            details={
                "field": field,
                "validation_message": message,
            },
            error_code=f"VALIDATION_{field.upper()}",
        )


class NotFoundError(ProgressionDomainException):
    """
    Raised when a requested catalogue entry cannot be found.

    Args:
        resource_type: Type of resource (e.g., "Badge", "Level")
        identifier: Optional identifier for the missing resource
    """

    def __init__(self, resource_type: str, identifier: Optional[Any] = None) -> None:
        self.resource_type = resource_type
        self.identifier = identifier

        if identifier is not None:
            message = f"{resource_type} not found: {identifier}"
        else:
            message = f"{resource_type} not found"

        super().__init__(
            message,
            details={
                "resource_type": resource_type,
                "identifier": identifier,
            },
            error_code=f"{resource_type.upper()}_NOT_FOUND",
        )


class InvalidOperationError(ProgressionDomainException):
    """
    Raised when an operation is not allowed in the current state.

    Args:
        action: Name of the attempted operation
        reason: Explanation of why it's not allowed

    Example:
        >>> raise InvalidOperationError("grant_streak_freezes", "count must be positive")
    """

    def __init__(self, action: str, reason: str) -> None:
        self.action = action
        self.reason = reason
        message = f"Invalid operation '{action}': {reason}"
        super().__init__(
            message,
            details={
                "action": action,
                "reason": reason,
            },
            error_code=f"INVALID_{action.upper()}",
        )


class ProgressionNotLoadedError(InvalidOperationError):
    """
    Raised when progression is read or mutated before `load()` succeeded,
    or after `unload()`.

    Args:
        action: Name of the attempted operation
    """

    def __init__(self, action: str) -> None:
        super().__init__(action, "no user progression is loaded")
        self.error_code = "PROGRESSION_NOT_LOADED"


__all__ = [
    "ProgressionDomainException",
    "ValidationError",
    "NotFoundError",
    "InvalidOperationError",
    "ProgressionNotLoadedError",
]
