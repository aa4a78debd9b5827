"""
Progression Engine Logging Infrastructure

Exports the structured logging setup and the log context helpers.
"""

from progression_engine.core.logging.logger import (
    LogContext,
    LogSettings,
    clear_log_context,
    get_log_context,
    get_logger,
    set_log_context,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "setup_logging",
    "shutdown_logging",
    "get_logger",
    "LogContext",
    "LogSettings",
    "get_log_context",
    "set_log_context",
    "clear_log_context",
]
