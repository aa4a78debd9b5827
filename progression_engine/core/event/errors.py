"""
Listener error handling for the progression EventBus.

A failing listener is logged with its event, identifier and priority and
never propagates to the publisher or to sibling listeners.
"""

from __future__ import annotations

from logging import Logger

from progression_engine.core.event.types import EventListener


def handle_listener_error(
    *,
    logger: Logger,
    event_name: str,
    listener: EventListener,
    exc: BaseException,
) -> None:
    """Log a listener failure with full context and stack trace."""
    logger.error(
        "EventBus listener error",
        extra={
            "event_name": event_name,
            "listener_id": listener.identifier,
            "priority": listener.priority.name,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=exc,
    )
