"""
Domain models package.

Rich domain models that encapsulate the progression rules. Services load
them from repositories, call their business methods, and publish the domain
events they record.

Base Classes
------------
- Entity: Objects with identity
- AggregateRoot: Consistency boundaries
- DomainEvent: State change notifications
"""

from .base import (
    AggregateRoot,
    DomainEvent,
    DomainValidationError,
    Entity,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
)
from .progression import (
    BadgeCategory,
    BadgeDefinition,
    BadgeRarity,
    BadgeView,
    LevelDefinition,
    ProgressionEvents,
    ProgressionState,
    StreakOutcome,
    StreakRecord,
    StreakUpdate,
    UserIdentity,
    XPAward,
    XPTransaction,
)

__all__ = [
    # Base classes
    "Entity",
    "AggregateRoot",
    "DomainEvent",
    "DomainValidationError",
    # Validators
    "validate_positive",
    "validate_non_negative",
    "validate_not_empty",
    # Progression
    "ProgressionState",
    "ProgressionEvents",
    "LevelDefinition",
    "BadgeDefinition",
    "BadgeCategory",
    "BadgeRarity",
    "BadgeView",
    "XPTransaction",
    "XPAward",
    "StreakRecord",
    "StreakOutcome",
    "StreakUpdate",
    "UserIdentity",
]
