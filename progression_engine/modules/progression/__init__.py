"""
Progression Module
==================

Domain: XP, levels, badges and daily streaks for the authenticated user

Services:
- ProgressionService: Load, mutate and read the user's progression
- ProgressionNotifier: Forward progression events to a notification sink

Repositories:
- InMemoryProgressionRepository, RedisProgressionRepository
"""

from .notifications import (
    Notification,
    NotificationSink,
    ProgressionNotifier,
    RecordingNotificationSink,
)
from .repository import (
    InMemoryProgressionRepository,
    ProgressionRepository,
    RedisProgressionRepository,
)
from .service import ProgressionService

__all__ = [
    "ProgressionService",
    "ProgressionNotifier",
    "Notification",
    "NotificationSink",
    "RecordingNotificationSink",
    "ProgressionRepository",
    "InMemoryProgressionRepository",
    "RedisProgressionRepository",
]
