"""
Progression notifications.

Purpose
-------
Turn `progression.*` domain events into user-facing notifications (XP gained,
level up, badge unlocked) and hand them to a host-supplied sink, such as a
toast renderer.

Design Notes
------------
- `ProgressionNotifier` is an EventBus listener; it knows nothing about the
  progression service, only the event payloads.
- Sinks may be sync or async. A failing sink is isolated by the bus and
  logged, and never affects progression state.
- Display durations come from ConfigManager (`notifications.*_duration_ms`).
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional, Protocol

from progression_engine.core.event.types import EventPayload, ListenerPriority
from progression_engine.domain.models.progression import ProgressionEvents

if TYPE_CHECKING:
    from logging import Logger

    from progression_engine.core.config.manager import ConfigManager
    from progression_engine.core.event.bus import EventBus


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    duration_ms: int


class NotificationSink(Protocol):
    """Host-side renderer for notifications (sync or async)."""

    def notify(self, notification: Notification) -> Any:
        ...


class RecordingNotificationSink:
    """Sink that keeps every notification in delivery order."""

    def __init__(self) -> None:
        self.notifications: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    @property
    def titles(self) -> List[str]:
        return [n.title for n in self.notifications]


# ============================================================================
# Builders
# ============================================================================


def xp_gained_notification(payload: EventPayload, duration_ms: int = 2000) -> Notification:
    return Notification(
        title=f"+{payload['amount']} XP",
        description=str(payload.get("reason", "")),
        duration_ms=duration_ms,
    )


def level_up_notification(payload: EventPayload, duration_ms: int = 5000) -> Notification:
    return Notification(
        title="🎉 Level Up!",
        description=f"You're now {payload['level_name']} (Level {payload['new_level']})!",
        duration_ms=duration_ms,
    )


def badge_unlocked_notification(payload: EventPayload, duration_ms: int = 5000) -> Notification:
    return Notification(
        title="🏅 Badge Unlocked!",
        description=f"{payload['icon']} {payload['name']} - {payload['description']}",
        duration_ms=duration_ms,
    )


# ============================================================================
# Notifier
# ============================================================================


class ProgressionNotifier:
    """
    Subscribes to progression events and forwards notifications to a sink.

    Example
    -------
    >>> notifier = ProgressionNotifier(sink, event_bus, ConfigManager, logger)
    >>> notifier.attach()
    """

    _IDENTIFIER_PREFIX = "progression_notifier"

    def __init__(
        self,
        sink: NotificationSink,
        event_bus: EventBus,
        config_manager: type[ConfigManager],
        logger: Logger,
    ) -> None:
        self._sink = sink
        self._events = event_bus
        self._config = config_manager
        self.log = logger
        self._subscriptions: Optional[list[tuple[str, str]]] = None

    @property
    def attached(self) -> bool:
        return self._subscriptions is not None

    def attach(self) -> None:
        """Subscribe to the progression events. Idempotent."""
        if self._subscriptions is not None:
            return

        handlers = (
            (ProgressionEvents.XP_GAINED, self._on_xp_gained),
            (ProgressionEvents.LEVELED_UP, self._on_leveled_up),
            (ProgressionEvents.BADGE_UNLOCKED, self._on_badge_unlocked),
        )
        self._subscriptions = [
            (
                event_name,
                self._events.subscribe(
                    event_name,
                    handler,
                    priority=ListenerPriority.NORMAL,
                    identifier=f"{self._IDENTIFIER_PREFIX}:{id(self)}@{event_name}",
                ),
            )
            for event_name, handler in handlers
        ]
        self.log.debug("Progression notifier attached", extra={"sink": type(self._sink).__name__})

    def detach(self) -> None:
        if self._subscriptions is None:
            return
        for event_name, identifier in self._subscriptions:
            self._events.unsubscribe(event_name, identifier)
        self._subscriptions = None
        self.log.debug("Progression notifier detached")

    def _duration(self, key: str, default: int) -> int:
        return int(self._config.get(f"notifications.{key}", default))

    async def _deliver(self, notification: Notification) -> None:
        result = self._sink.notify(notification)
        if inspect.isawaitable(result):
            await result

    async def _on_xp_gained(self, payload: EventPayload) -> None:
        await self._deliver(
            xp_gained_notification(payload, self._duration("xp_duration_ms", 2000))
        )

    async def _on_leveled_up(self, payload: EventPayload) -> None:
        await self._deliver(
            level_up_notification(payload, self._duration("level_up_duration_ms", 5000))
        )

    async def _on_badge_unlocked(self, payload: EventPayload) -> None:
        await self._deliver(
            badge_unlocked_notification(payload, self._duration("badge_duration_ms", 5000))
        )
