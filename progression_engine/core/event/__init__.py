"""
Event system for the progression engine.

Provides the tiered EventBus used to deliver `progression.*` events to
notifications and host-application listeners.
"""

from .bus import EventBus
from .context import apply_event_log_context
from .types import (
    CallbackType,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
    "apply_event_log_context",
]
