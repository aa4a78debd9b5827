"""
Event log-context helpers for the progression EventBus.

Enriches LogContext with the event name and payload keys (never values)
so every log line emitted during dispatch can be traced back to the event.
"""

from __future__ import annotations

from typing import Any

from progression_engine.core.logging.logger import get_logger, set_log_context

logger = get_logger(__name__)


def apply_event_log_context(event_name: str, payload: dict[str, Any]) -> None:
    """
    Apply event fields to the current LogContext.

    Best-effort: a failure here is logged at debug level and never breaks
    event dispatch.
    """
    try:
        set_log_context(
            event_name=event_name,
            event_keys=list(payload.keys()),
        )
    except Exception as exc:
        logger.debug(
            "Failed to apply event log context",
            extra={
                "event_name": event_name,
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
        )
