"""
Configuration error hierarchy for the progression engine.

Purpose
-------
Provides exceptions for ConfigManager operations with clear error
classification.

Exception Hierarchy
-------------------
ConfigError (base)
└── ConfigValidationError (malformed keys or override payloads)
"""


class ConfigError(Exception):
    """
    Base exception for all configuration-related errors.

    Example
    -------
    >>> try:
    ...     ConfigManager.set("", 10)
    ... except ConfigError as e:
    ...     logger.error(f"Config operation failed: {e}")
    """


class ConfigValidationError(ConfigError):
    """
    Raised when a configuration override is rejected.

    This exception is raised when:
    - The dot-notation key is empty or has empty segments
    - The override would replace a section with a scalar value
    """


__all__ = [
    "ConfigError",
    "ConfigValidationError",
]
