"""
Base domain model classes for the progression engine.

Purpose
-------
Provide the building blocks for rich domain models that encapsulate
progression rules, validation and state transitions.

Responsibilities
----------------
- Define the base Entity class with identity and equality semantics
- Define the base AggregateRoot class for consistency boundaries
- Track domain events for event-driven side effects
- Provide small invariant validators

Non-Responsibilities
--------------------
- Persistence (handled by repositories)
- Side-effect dispatch (handled by services via the event bus)

Design Patterns
---------------
- **Entity**: Objects with identity that persist over time
- **Aggregate Root**: Consistency boundary for domain operations
- **Domain Events**: Recorded on the aggregate, published by the service
  after the change is committed

Usage Example
-------------
>>> class Counter(AggregateRoot):
...     def __init__(self, counter_id: str) -> None:
...         super().__init__(counter_id)
...         self.value = 0
...
...     def bump(self) -> None:
...         self.value += 1
...         self.add_domain_event("counter.bumped", {"value": self.value})
"""

from __future__ import annotations

from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================================
# DOMAIN EVENTS
# ============================================================================


@dataclass
class DomainEvent:
    """
    A state change that other parts of the system may react to.

    Attributes
    ----------
    event_name : str
        Event name (e.g., "progression.leveled_up")
    payload : Dict[str, Any]
        JSON-serializable event data
    occurred_at : datetime
        When the event occurred (UTC)
    """

    event_name: str
    payload: Dict[str, Any]
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# ============================================================================
# ENTITY
# ============================================================================


class Entity(ABC):
    """
    Base class for entities with identity.

    Two entities with the same ID are the same entity, even if their
    attributes differ.
    """

    def __init__(self, entity_id: str) -> None:
        self._id = entity_id
        self._domain_events: List[DomainEvent] = []

    @property
    def id(self) -> str:
        """Get entity ID (immutable)."""
        return self._id

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return False
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.id))

    def add_domain_event(self, event_name: str, payload: Dict[str, Any]) -> None:
        """
        Record a domain event to be published after the change is committed.

        Examples
        --------
        >>> self.add_domain_event("progression.leveled_up", {
        ...     "user_id": self.id,
        ...     "new_level": 2,
        ... })
        """
        self._domain_events.append(DomainEvent(event_name=event_name, payload=payload))

    def clear_domain_events(self) -> List[DomainEvent]:
        """Clear and return all domain events recorded since the last clear."""
        events = self._domain_events.copy()
        self._domain_events.clear()
        return events

    def get_pending_events(self) -> List[DomainEvent]:
        """Return pending domain events without clearing them."""
        return self._domain_events.copy()


# ============================================================================
# AGGREGATE ROOT
# ============================================================================


class AggregateRoot(Entity):
    """
    Base class for aggregate roots.

    The aggregate root is the only entry point for changes to the cluster of
    objects it owns. It exposes business methods that keep the cluster's
    invariants and never hands out its mutable internals.
    """


# ============================================================================
# DOMAIN MODEL VALIDATION
# ============================================================================


class DomainValidationError(Exception):
    """
    Raised when a domain invariant is violated.

    Parameters
    ----------
    message : str
        Human-readable error message
    field : Optional[str]
        Field name that failed validation (if applicable)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


def validate_positive(value: int, field_name: str) -> None:
    """Raise DomainValidationError unless `value` > 0."""
    if value <= 0:
        raise DomainValidationError(
            f"{field_name} must be positive, got {value}",
            field=field_name,
        )


def validate_non_negative(value: int, field_name: str) -> None:
    """Raise DomainValidationError if `value` < 0."""
    if value < 0:
        raise DomainValidationError(
            f"{field_name} must be non-negative, got {value}",
            field=field_name,
        )


def validate_not_empty(value: Optional[str], field_name: str) -> None:
    """Raise DomainValidationError for None, empty or whitespace-only strings."""
    if not value or not value.strip():
        raise DomainValidationError(
            f"{field_name} cannot be empty",
            field=field_name,
        )
