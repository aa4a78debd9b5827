"""
Progression Domain Model.

Purpose
-------
Rich domain model for a single user's progression: XP and the level derived
from it, unlocked badges, the daily login streak and its freezes, and the
recent XP transaction log.

Responsibilities
----------------
- Enforce the progression rules (XP accumulation, badge idempotency,
  streak transitions)
- Keep derived values (level, level progress) as pure functions of XP
- Record domain events for every committed change
- Convert to and from the flat, JSON-serializable snapshot format

Non-Responsibilities
--------------------
- Persistence (handled by repositories)
- Event dispatch and notifications (handled by services)
- Reward tables and the badge catalogue (handled by module constants)

Usage Example
-------------
>>> state = ProgressionState("user-1", LEVELS)
>>> award = state.award_xp(120, "Completed lesson", now=now)
>>> award.leveled_up
True
>>> [e.event_name for e in state.clear_domain_events()]
['progression.xp_gained', 'progression.leveled_up']
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence

from progression_engine.core.logging.logger import get_logger
from progression_engine.domain.models.base import (
    AggregateRoot,
    DomainValidationError,
    validate_non_negative,
    validate_not_empty,
    validate_positive,
)
from progression_engine.modules.shared import formulas

logger = get_logger(__name__)


class ProgressionEvents:
    """Domain event names recorded by `ProgressionState`."""

    XP_GAINED = "progression.xp_gained"
    LEVELED_UP = "progression.leveled_up"
    BADGE_UNLOCKED = "progression.badge_unlocked"


class BadgeCategory(str, Enum):
    ACHIEVEMENT = "achievement"
    MILESTONE = "milestone"
    SKILL = "skill"
    SOCIAL = "social"
    SPECIAL = "special"


class BadgeRarity(str, Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class StreakOutcome(str, Enum):
    """How a streak check-in changed the streak."""

    SAME_DAY = "same_day"
    CONTINUED = "continued"
    FREEZE_CONSUMED = "freeze_consumed"
    RESET = "reset"


# ============================================================================
# CATALOGUE VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class LevelDefinition:
    """
    One row of the level table.

    Attributes
    ----------
    level : int
        Level number, starting at 1
    name : str
        Display name (e.g., "Apprentice")
    min_xp : int
        Inclusive lower XP bound
    max_xp : Optional[int]
        Exclusive upper XP bound; None for the unbounded terminal level
    perks : tuple[str, ...]
        Human-readable perks unlocked at this level
    color : str
        Presentation token for the level badge
    """

    level: int
    name: str
    min_xp: int
    max_xp: Optional[int]
    perks: tuple[str, ...] = ()
    color: str = ""

    def __post_init__(self) -> None:
        validate_positive(self.level, "level")
        validate_not_empty(self.name, "name")
        validate_non_negative(self.min_xp, "min_xp")
        if self.max_xp is not None and self.max_xp <= self.min_xp:
            raise DomainValidationError(
                f"max_xp must exceed min_xp for level {self.level}",
                field="max_xp",
            )

    @property
    def is_terminal(self) -> bool:
        return self.max_xp is None


@dataclass(frozen=True)
class BadgeDefinition:
    """A badge that can be unlocked once per user."""

    id: str
    name: str
    description: str
    icon: str
    category: BadgeCategory
    rarity: BadgeRarity
    xp_reward: int

    def __post_init__(self) -> None:
        validate_not_empty(self.id, "id")
        validate_not_empty(self.name, "name")
        validate_non_negative(self.xp_reward, "xp_reward")


# ============================================================================
# STATE VALUE OBJECTS
# ============================================================================


@dataclass(frozen=True)
class XPTransaction:
    """
    One entry of the recent XP log (display only).

    The running XP total is authoritative; the log is bounded and may not
    sum to it.
    """

    id: str
    amount: int
    reason: str
    category: str
    timestamp: datetime

    @classmethod
    def create(cls, amount: int, reason: str, category: str, *, now: datetime) -> "XPTransaction":
        return cls(
            id=f"xp_{uuid.uuid4().hex[:12]}",
            amount=amount,
            reason=reason,
            category=category,
            timestamp=now.astimezone(timezone.utc),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": self.amount,
            "reason": self.reason,
            "category": self.category,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "XPTransaction":
        return cls(
            id=str(data["id"]),
            amount=int(data["amount"]),
            reason=str(data.get("reason", "")),
            category=str(data.get("category", "general")),
            timestamp=datetime.fromisoformat(data["timestamp"]),
        )


@dataclass(frozen=True)
class StreakRecord:
    """
    Daily login streak.

    Invariants: all counters are non-negative and `longest_streak` is never
    below `current_streak`.
    """

    current_streak: int = 0
    longest_streak: int = 0
    last_active_date: Optional[date] = None
    streak_freezes: int = 0

    def __post_init__(self) -> None:
        validate_non_negative(self.current_streak, "current_streak")
        validate_non_negative(self.longest_streak, "longest_streak")
        validate_non_negative(self.streak_freezes, "streak_freezes")
        if self.longest_streak < self.current_streak:
            raise DomainValidationError(
                "longest_streak cannot be below current_streak",
                field="longest_streak",
            )

    def advance(self, today: date) -> tuple["StreakRecord", StreakOutcome]:
        """
        Apply a check-in on `today`.

        Returns
        -------
        tuple[StreakRecord, StreakOutcome]
            The new record (self for a same-day check-in) and what happened.

        Rules
        -----
        - same day: unchanged
        - yesterday: streak + 1
        - older with a freeze available: one freeze consumed, streak kept
        - anything else, including a first check-in or a last date in the
          future: streak restarts at 1
        """
        last = self.last_active_date
        if last == today:
            return self, StreakOutcome.SAME_DAY

        freezes = self.streak_freezes
        if last is not None and last == today - timedelta(days=1):
            current, outcome = self.current_streak + 1, StreakOutcome.CONTINUED
        elif last is not None and last < today and freezes > 0:
            current, outcome = self.current_streak, StreakOutcome.FREEZE_CONSUMED
            freezes -= 1
        else:
            current, outcome = 1, StreakOutcome.RESET

        record = StreakRecord(
            current_streak=current,
            longest_streak=max(self.longest_streak, current),
            last_active_date=today,
            streak_freezes=freezes,
        )
        return record, outcome

    def with_freezes(self, count: int) -> "StreakRecord":
        validate_positive(count, "count")
        return replace(self, streak_freezes=self.streak_freezes + count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "last_active_date": (
                self.last_active_date.isoformat() if self.last_active_date else None
            ),
            "streak_freezes": self.streak_freezes,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "StreakRecord":
        last = data.get("last_active_date")
        return cls(
            current_streak=int(data.get("current_streak", 0)),
            longest_streak=int(data.get("longest_streak", 0)),
            last_active_date=date.fromisoformat(last) if last else None,
            streak_freezes=int(data.get("streak_freezes", 0)),
        )


@dataclass(frozen=True)
class UserIdentity:
    """
    The authenticated caller, as supplied by the host application.

    `user_id` keys persistence; the rest only feeds `display_name`.
    """

    user_id: str
    username: Optional[str] = None
    email: Optional[str] = None

    def __post_init__(self) -> None:
        validate_not_empty(self.user_id, "user_id")

    @property
    def display_name(self) -> str:
        """Username, else the e-mail local part, else "You"."""
        if self.username:
            return self.username
        if self.email:
            local_part = self.email.split("@", 1)[0]
            if local_part:
                return local_part
        return "You"


# ============================================================================
# OPERATION RESULTS
# ============================================================================


@dataclass(frozen=True)
class XPAward:
    """Outcome of a single XP application."""

    old_xp: int
    new_xp: int
    old_level: int
    new_level: int
    transaction: XPTransaction

    @property
    def amount(self) -> int:
        return self.transaction.amount

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


@dataclass(frozen=True)
class StreakUpdate:
    """Outcome of a streak check-in, including any bonus and badges it caused."""

    previous: StreakRecord
    current: StreakRecord
    outcome: StreakOutcome
    bonus: Optional[XPAward] = None
    unlocked_badge_ids: tuple[str, ...] = field(default_factory=tuple)

    @property
    def changed(self) -> bool:
        return self.outcome is not StreakOutcome.SAME_DAY

    @property
    def increased(self) -> bool:
        return self.current.current_streak > self.previous.current_streak


@dataclass(frozen=True)
class BadgeView:
    """A catalogue badge together with the user's unlock status."""

    definition: BadgeDefinition
    unlocked: bool
    unlocked_at: Optional[datetime] = None


# ============================================================================
# PROGRESSION AGGREGATE ROOT
# ============================================================================


class ProgressionState(AggregateRoot):
    """
    Per-user progression aggregate.

    Business Rules
    --------------
    - Level and level progress are derived from XP on every read
    - Every XP application is logged as a transaction (newest first,
      bounded) and accumulates into the weekly and monthly totals
    - A badge is unlocked at most once; unlocking grants its XP reward
    - Streak transitions follow `StreakRecord.advance`

    Domain Events
    -------------
    - progression.xp_gained: after `award_xp`
    - progression.badge_unlocked: after a first-time `unlock_badge`
    - progression.leveled_up: whenever an XP application raises the level,
      recorded after the event that caused it
    """

    def __init__(
        self,
        user_id: str,
        levels: Sequence[LevelDefinition],
        *,
        xp: int = 0,
        unlocked_badges: Optional[Mapping[str, Optional[datetime]]] = None,
        streak: Optional[StreakRecord] = None,
        recent_transactions: Sequence[XPTransaction] = (),
        weekly_xp: int = 0,
        monthly_xp: int = 0,
        transaction_limit: int = 50,
    ) -> None:
        validate_not_empty(user_id, "user_id")
        validate_positive(transaction_limit, "transaction_limit")
        if not levels:
            raise DomainValidationError("levels cannot be empty", field="levels")
        super().__init__(user_id)

        self._levels = tuple(levels)
        self._xp = xp
        # Insertion order is unlock order.
        self._unlocked_badges: Dict[str, Optional[datetime]] = dict(unlocked_badges or {})
        self._streak = streak or StreakRecord()
        self._transaction_limit = transaction_limit
        self._transactions = list(recent_transactions)[:transaction_limit]
        self._weekly_xp = weekly_xp
        self._monthly_xp = monthly_xp

    # ========================================================================
    # PROPERTIES
    # ========================================================================

    @property
    def user_id(self) -> str:
        return self.id

    @property
    def levels(self) -> tuple[LevelDefinition, ...]:
        return self._levels

    @property
    def xp(self) -> int:
        return self._xp

    @property
    def level_definition(self) -> LevelDefinition:
        return formulas.level_for_xp(self._xp, self._levels)

    @property
    def level(self) -> int:
        return self.level_definition.level

    @property
    def level_progress(self) -> int:
        return formulas.level_progress(self._xp, self.level_definition)

    @property
    def unlocked_badge_ids(self) -> tuple[str, ...]:
        return tuple(self._unlocked_badges)

    @property
    def badge_count(self) -> int:
        return len(self._unlocked_badges)

    def is_badge_unlocked(self, badge_id: str) -> bool:
        return badge_id in self._unlocked_badges

    def badge_unlocked_at(self, badge_id: str) -> Optional[datetime]:
        return self._unlocked_badges.get(badge_id)

    @property
    def streak(self) -> StreakRecord:
        return self._streak

    @property
    def recent_transactions(self) -> tuple[XPTransaction, ...]:
        return tuple(self._transactions)

    @property
    def weekly_xp(self) -> int:
        return self._weekly_xp

    @property
    def monthly_xp(self) -> int:
        return self._monthly_xp

    # ========================================================================
    # BUSINESS LOGIC - XP
    # ========================================================================

    def _apply_xp(self, amount: int, reason: str, category: str, now: datetime) -> XPAward:
        old_xp, old_level = self._xp, self.level
        transaction = XPTransaction.create(amount, reason, category, now=now)

        self._xp += amount
        self._transactions.insert(0, transaction)
        del self._transactions[self._transaction_limit:]
        self._weekly_xp += amount
        self._monthly_xp += amount

        return XPAward(
            old_xp=old_xp,
            new_xp=self._xp,
            old_level=old_level,
            new_level=self.level,
            transaction=transaction,
        )

    def _record_level_up(self, award: XPAward) -> None:
        if not award.leveled_up:
            return
        self.add_domain_event(
            ProgressionEvents.LEVELED_UP,
            {
                "user_id": self.id,
                "old_level": award.old_level,
                "new_level": award.new_level,
                "level_name": self.level_definition.name,
                "xp": award.new_xp,
            },
        )

    def award_xp(
        self,
        amount: int,
        reason: str,
        category: str = "general",
        *,
        now: datetime,
    ) -> XPAward:
        """
        Add `amount` XP and log the transaction.

        Negative amounts are applied as-is; the caller is trusted.

        Raises
        ------
        DomainValidationError
            If `amount` is not an integer.
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise DomainValidationError(
                f"amount must be an integer, got {type(amount).__name__}",
                field="amount",
            )
        if amount < 0:
            logger.warning(
                "Negative XP award applied",
                extra={"user_id": self.id, "amount": amount, "reason": reason},
            )

        award = self._apply_xp(amount, reason, category, now)
        self.add_domain_event(
            ProgressionEvents.XP_GAINED,
            {
                "user_id": self.id,
                "amount": amount,
                "reason": reason,
                "category": category,
                "new_xp": award.new_xp,
                "transaction_id": award.transaction.id,
            },
        )
        self._record_level_up(award)
        return award

    # ========================================================================
    # BUSINESS LOGIC - BADGES
    # ========================================================================

    def unlock_badge(self, badge: BadgeDefinition, *, now: datetime) -> bool:
        """
        Unlock `badge` and grant its XP reward.

        The reward goes through the regular XP path (transaction with
        category "badge", weekly/monthly totals, level-up detection) but
        records no xp_gained event; the badge event announces it.

        Returns
        -------
        bool
            False if the badge was already unlocked (nothing changes).
        """
        if badge.id in self._unlocked_badges:
            return False

        award = self._apply_xp(badge.xp_reward, f"Badge unlocked: {badge.name}", "badge", now)
        unlocked_at = now.astimezone(timezone.utc)
        self._unlocked_badges[badge.id] = unlocked_at

        self.add_domain_event(
            ProgressionEvents.BADGE_UNLOCKED,
            {
                "user_id": self.id,
                "badge_id": badge.id,
                "name": badge.name,
                "icon": badge.icon,
                "description": badge.description,
                "xp_reward": badge.xp_reward,
                "unlocked_at": unlocked_at.isoformat(),
            },
        )
        self._record_level_up(award)
        return True

    # ========================================================================
    # BUSINESS LOGIC - STREAK
    # ========================================================================

    def update_streak(self, today: date) -> tuple[StreakRecord, StreakOutcome]:
        """
        Check in for `today`.

        Returns the previous record and the outcome; the new record is
        available as `streak`.
        """
        previous = self._streak
        self._streak, outcome = previous.advance(today)
        return previous, outcome

    def grant_streak_freezes(self, count: int) -> StreakRecord:
        self._streak = self._streak.with_freezes(count)
        return self._streak

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def to_snapshot(self) -> Dict[str, Any]:
        """Flat, JSON-serializable view of the full state."""
        return {
            "user_id": self.id,
            "xp": self._xp,
            "level": self.level,
            "level_progress": self.level_progress,
            "unlocked_badge_ids": list(self._unlocked_badges),
            "badge_unlocked_at": {
                badge_id: unlocked_at.isoformat() if unlocked_at else None
                for badge_id, unlocked_at in self._unlocked_badges.items()
            },
            "streak": self._streak.to_dict(),
            "recent_transactions": [tx.to_dict() for tx in self._transactions],
            "weekly_xp": self._weekly_xp,
            "monthly_xp": self._monthly_xp,
        }

    @classmethod
    def from_snapshot(
        cls,
        snapshot: Mapping[str, Any],
        levels: Sequence[LevelDefinition],
        *,
        transaction_limit: int = 50,
    ) -> "ProgressionState":
        """
        Rebuild state from `to_snapshot()` output.

        Missing keys take their defaults; `level` and `level_progress` are
        re-derived from `xp`. Unknown badge ids are kept.

        Raises
        ------
        DomainValidationError, KeyError, TypeError, ValueError
            If the snapshot is structurally corrupt.
        """
        stamps = snapshot.get("badge_unlocked_at") or {}
        unlocked: Dict[str, Optional[datetime]] = {}
        for badge_id in snapshot.get("unlocked_badge_ids") or []:
            raw = stamps.get(badge_id)
            unlocked[str(badge_id)] = datetime.fromisoformat(raw) if raw else None

        return cls(
            str(snapshot["user_id"]),
            levels,
            xp=int(snapshot.get("xp", 0)),
            unlocked_badges=unlocked,
            streak=StreakRecord.from_dict(snapshot.get("streak") or {}),
            recent_transactions=[
                XPTransaction.from_dict(tx) for tx in snapshot.get("recent_transactions") or []
            ],
            weekly_xp=int(snapshot.get("weekly_xp", 0)),
            monthly_xp=int(snapshot.get("monthly_xp", 0)),
            transaction_limit=transaction_limit,
        )
