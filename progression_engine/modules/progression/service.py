"""
Progression Service
===================

Purpose
-------
The per-user progression store: owns the live `ProgressionState` for the
authenticated user and is the only entry point for changing it (XP awards,
badge unlocks, streak check-ins, freeze grants) and for reading it.

Domain
------
- XP awards, direct and by named action (`XP_REWARDS`, config-overridable)
- Badge unlocks with their XP rewards, at most once per badge
- Daily streak check-ins, streak bonus XP and streak badges
- Level, progress and next-level reads derived from XP

Side Effects
------------
Mutations are synchronous and apply to the live aggregate. Each
state-changing call then enqueues one snapshot save followed by the domain
events it recorded. A single drain task on the running loop processes that
outbox in order, so saves land in mutation order and a level-up notification
always follows the XP notification that caused it. Callers never await the
drain; `flush()` does.

Persistence failures are logged and counted, never raised, and never roll
back in-memory state. The next successful save carries everything.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Deque, Dict, List, Optional, Sequence, Union

from progression_engine.core.exceptions import PersistenceError
from progression_engine.core.logging.logger import LogContext
from progression_engine.core.validation.input_validator import InputValidator
from progression_engine.domain.models.base import DomainEvent, DomainValidationError
from progression_engine.domain.models.progression import (
    BadgeDefinition,
    BadgeView,
    LevelDefinition,
    ProgressionState,
    StreakOutcome,
    StreakRecord,
    StreakUpdate,
    UserIdentity,
    XPAward,
    XPTransaction,
)
from progression_engine.modules.progression.constants import (
    BADGES,
    LEVELS,
    STREAK_BADGES,
    XP_REWARDS,
)
from progression_engine.modules.shared import formulas
from progression_engine.modules.shared.base_service import BaseService
from progression_engine.modules.shared.exceptions import (
    NotFoundError,
    ProgressionNotLoadedError,
)

if TYPE_CHECKING:
    from logging import Logger

    from progression_engine.core.config.manager import ConfigManager
    from progression_engine.core.event.bus import EventBus
    from progression_engine.modules.progression.repository import ProgressionRepository


Clock = Callable[[], datetime]


def _local_now() -> datetime:
    return datetime.now().astimezone()


@dataclass(frozen=True)
class _PendingSave:
    user_id: str
    snapshot: Dict[str, Any]


_OutboxItem = Union[_PendingSave, DomainEvent]


class ProgressionService(BaseService):
    """
    Single-user progression store.

    Dependencies
    ------------
    - ConfigManager: reward overrides, transaction log limit
    - EventBus: delivery of `progression.*` events
    - Logger: structured logging
    - ProgressionRepository: snapshot persistence
    - clock: returns the current local time; "today" for streaks is its date

    Public Methods
    --------------
    - load() / unload() / flush() / close()
    - award_xp() / award_for_action()
    - unlock_badge()
    - update_streak() / grant_streak_freezes()
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        repository: ProgressionRepository,
        *,
        clock: Optional[Clock] = None,
        levels: Sequence[LevelDefinition] = LEVELS,
        badges: Sequence[BadgeDefinition] = BADGES,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        formulas.validate_level_table(levels)

        self._repository = repository
        self._clock: Clock = clock or _local_now
        self._levels = tuple(levels)
        self._badges = tuple(badges)
        self._badges_by_id = {badge.id: badge for badge in self._badges}

        self._state: Optional[ProgressionState] = None
        self._identity: Optional[UserIdentity] = None

        self._outbox: Deque[_OutboxItem] = deque()
        self._drain_task: Optional[asyncio.Task[None]] = None
        self.save_failures = 0

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    async def load(self, identity: UserIdentity) -> ProgressionState:
        """
        Restore the user's progression, or start from defaults.

        A failed or corrupt load is logged and falls back to defaults.
        Pending side effects of a previously loaded user are flushed first.
        """
        await self.flush()
        limit = self._transaction_limit()

        with LogContext(user_id=identity.user_id, operation="progression.load"):
            snapshot: Optional[Dict[str, Any]] = None
            try:
                snapshot = await self._repository.load(identity.user_id)
            except PersistenceError as exc:
                self.log.warning(
                    "Progression load failed; starting from defaults",
                    extra={
                        "user_id": identity.user_id,
                        "error_code": exc.error_code,
                        "error": exc.message,
                        "is_retryable": exc.is_retryable,
                    },
                    exc_info=exc,
                )

            state: Optional[ProgressionState] = None
            if snapshot is not None:
                state = self._restore(identity, snapshot, limit)

            restored = state is not None
            if state is None:
                state = ProgressionState(identity.user_id, self._levels, transaction_limit=limit)

            self._state = state
            self._identity = identity
            self.log_operation(
                "load",
                user_id=identity.user_id,
                restored=restored,
                xp=state.xp,
                level=state.level,
            )
            return state

    def _restore(
        self,
        identity: UserIdentity,
        snapshot: Dict[str, Any],
        limit: int,
    ) -> Optional[ProgressionState]:
        try:
            state = ProgressionState.from_snapshot(
                snapshot, self._levels, transaction_limit=limit
            )
        except (DomainValidationError, KeyError, TypeError, ValueError, AttributeError) as exc:
            self.log.warning(
                "Corrupt progression snapshot; starting from defaults",
                extra={
                    "user_id": identity.user_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return None

        if state.user_id != identity.user_id:
            self.log.warning(
                "Progression snapshot belongs to another user; starting from defaults",
                extra={"user_id": identity.user_id, "snapshot_user_id": state.user_id},
            )
            return None
        return state

    def unload(self) -> None:
        """Forget the in-memory state (logout). Stored data is kept."""
        if self._state is not None:
            self.log_operation("unload", user_id=self._state.user_id)
        self._state = None
        self._identity = None

    async def flush(self) -> None:
        """Wait until every queued save and event has been processed."""
        while self._outbox or self._drain_running():
            self._schedule_drain()
            if self._drain_task is not None:
                await self._drain_task
        await self._events.drain()

    async def close(self) -> None:
        await self.flush()
        self.unload()

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def award_xp(self, amount: int, reason: str, category: str = "general") -> XPAward:
        """
        Add XP to the loaded user.

        Raises:
            ProgressionNotLoadedError: If no user is loaded
            DomainValidationError: If `amount` is not an integer
        """
        state = self._require_state("award_xp")

        with LogContext(user_id=state.user_id, operation="progression.award_xp"):
            award = state.award_xp(amount, reason, category, now=self._clock())
            self._commit(state)
            self.log.info(
                f"XP awarded: {amount:+d} XP",
                extra={
                    "user_id": state.user_id,
                    "reason": reason,
                    "category": category,
                    "old_xp": award.old_xp,
                    "new_xp": award.new_xp,
                    "old_level": award.old_level,
                    "new_level": award.new_level,
                },
            )
        return award

    def award_for_action(self, action: str) -> XPAward:
        """
        Award the configured XP for a named product action.

        Raises:
            ValidationError: If `action` is not a known action
        """
        self._require_state("award_for_action")
        action = InputValidator.validate_choice(action, "action", list(XP_REWARDS))
        amount = self._reward_for(action)
        reason = action.replace("_", " ").capitalize()
        return self.award_xp(amount, reason, category=action.lower())

    def unlock_badge(self, badge_id: str) -> bool:
        """
        Unlock a catalogue badge for the loaded user.

        Returns:
            True if the badge is unlocked after the call, including when it
            already was (no XP, event or save in that case). False if the id
            is not in the catalogue.
        """
        state = self._require_state("unlock_badge")

        with LogContext(user_id=state.user_id, operation="progression.unlock_badge"):
            if badge_id not in self._badges_by_id:
                self.log.debug("Unknown badge id ignored", extra={"badge_id": badge_id})
                return False
            if state.is_badge_unlocked(badge_id):
                return True
            self._unlock(state, badge_id, self._clock())
            self._commit(state)
            self.log.info(
                "Badge unlocked",
                extra={"user_id": state.user_id, "badge_id": badge_id, "xp": state.xp},
            )
        return True

    def update_streak(self) -> StreakUpdate:
        """
        Daily check-in.

        A growing streak earns `DAILY_LOGIN + STREAK_BONUS * streak` XP and
        every streak badge whose threshold has been reached. The whole
        check-in is saved once. A same-day check-in changes and saves nothing.
        """
        state = self._require_state("update_streak")
        now = self._clock()
        # Config is read before the streak moves so a bad override changes nothing.
        daily_login = self._reward_for("DAILY_LOGIN")
        per_day = self._reward_for("STREAK_BONUS")

        with LogContext(user_id=state.user_id, operation="progression.update_streak"):
            previous, outcome = state.update_streak(now.date())
            if outcome is StreakOutcome.SAME_DAY:
                return StreakUpdate(previous=previous, current=previous, outcome=outcome)

            current = state.streak
            bonus: Optional[XPAward] = None
            unlocked: List[str] = []

            if current.current_streak > previous.current_streak:
                days = current.current_streak
                amount = formulas.streak_bonus_xp(days, daily_login=daily_login, per_day=per_day)
                bonus = state.award_xp(amount, f"{days}-day streak bonus!", "streak", now=now)
                for threshold, badge_id in sorted(STREAK_BADGES.items()):
                    if days >= threshold and self._unlock(state, badge_id, now):
                        unlocked.append(badge_id)

            self._commit(state)
            self.log.info(
                "Streak updated",
                extra={
                    "user_id": state.user_id,
                    "outcome": outcome.value,
                    "current_streak": current.current_streak,
                    "longest_streak": current.longest_streak,
                    "streak_freezes": current.streak_freezes,
                    "bonus_xp": bonus.amount if bonus else 0,
                    "unlocked_badges": unlocked,
                },
            )

        return StreakUpdate(
            previous=previous,
            current=current,
            outcome=outcome,
            bonus=bonus,
            unlocked_badge_ids=tuple(unlocked),
        )

    def grant_streak_freezes(self, count: int) -> StreakRecord:
        """
        Add streak freezes (acquired outside the engine, e.g. purchased).

        Raises:
            ValidationError: If `count` is not a positive integer
        """
        state = self._require_state("grant_streak_freezes")
        count = InputValidator.validate_positive_integer(count, "count")

        with LogContext(user_id=state.user_id, operation="progression.grant_streak_freezes"):
            record = state.grant_streak_freezes(count)
            self._commit(state)
            self.log_operation(
                "grant_streak_freezes",
                user_id=state.user_id,
                granted=count,
                streak_freezes=record.streak_freezes,
            )
        return record

    def _unlock(self, state: ProgressionState, badge_id: str, now: datetime) -> bool:
        badge = self._badges_by_id.get(badge_id)
        if badge is None:
            self.log.debug("Unknown badge id ignored", extra={"badge_id": badge_id})
            return False
        return state.unlock_badge(badge, now=now)

    # ========================================================================
    # OUTBOX
    # ========================================================================

    def _commit(self, state: ProgressionState) -> None:
        self._outbox.append(_PendingSave(state.user_id, state.to_snapshot()))
        self._outbox.extend(state.clear_domain_events())
        self._schedule_drain()

    def _drain_running(self) -> bool:
        return self._drain_task is not None and not self._drain_task.done()

    def _schedule_drain(self) -> None:
        if self._drain_running():
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.log.debug(
                "No running event loop; progression side effects deferred",
                extra={"pending": len(self._outbox)},
            )
            return
        self._drain_task = loop.create_task(self._drain(), name="progression-outbox-drain")

    async def _drain(self) -> None:
        while self._outbox:
            item = self._outbox.popleft()
            if isinstance(item, _PendingSave):
                await self._persist(item)
            else:
                await self._publish(item)

    async def _persist(self, item: _PendingSave) -> None:
        try:
            await self._repository.save(item.user_id, item.snapshot)
        except Exception as exc:
            # The drain must outlive a broken backend; state stays in memory.
            self.save_failures += 1
            self.log.warning(
                "Progression save failed; in-memory state kept",
                extra={
                    "user_id": item.user_id,
                    "save_failures": self.save_failures,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=exc,
            )

    async def _publish(self, event: DomainEvent) -> None:
        try:
            await self.emit_event(event.event_name, event.payload)
        except Exception as exc:
            self.log_error("publish", exc, event_name=event.event_name)

    @property
    def pending_side_effects(self) -> int:
        return len(self._outbox)

    # ========================================================================
    # CONFIG HELPERS
    # ========================================================================

    def _reward_for(self, action: str) -> int:
        return self.get_config_int(f"progression.xp_rewards.{action}", XP_REWARDS[action])

    def _transaction_limit(self) -> int:
        return self.get_config_int("progression.recent_transactions_limit", 50)

    # ========================================================================
    # READ SURFACE
    # ========================================================================

    def _require_state(self, action: str) -> ProgressionState:
        if self._state is None:
            raise ProgressionNotLoadedError(action)
        return self._state

    @property
    def is_loaded(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> ProgressionState:
        return self._require_state("state")

    @property
    def identity(self) -> UserIdentity:
        if self._state is None or self._identity is None:
            raise ProgressionNotLoadedError("identity")
        return self._identity

    @property
    def user_id(self) -> str:
        return self._require_state("user_id").user_id

    @property
    def xp(self) -> int:
        return self._require_state("xp").xp

    @property
    def level(self) -> int:
        return self._require_state("level").level

    @property
    def level_progress(self) -> int:
        return self._require_state("level_progress").level_progress

    @property
    def current_level(self) -> LevelDefinition:
        return self._require_state("current_level").level_definition

    @property
    def next_level(self) -> Optional[LevelDefinition]:
        return formulas.next_level(self.current_level, self._levels)

    @property
    def xp_to_next_level(self) -> int:
        state = self._require_state("xp_to_next_level")
        return formulas.xp_to_next_level(state.xp, state.level_definition, self._levels)

    def get_next_level_xp(self) -> int:
        return self.xp_to_next_level

    def get_level_info(self, level_number: int) -> LevelDefinition:
        """Definition of `level_number`; unknown numbers resolve to level 1."""
        return formulas.level_info(level_number, self._levels)

    @property
    def badges(self) -> List[BadgeView]:
        """Every catalogue badge with the user's unlock status."""
        state = self._require_state("badges")
        return [
            BadgeView(
                definition=badge,
                unlocked=state.is_badge_unlocked(badge.id),
                unlocked_at=state.badge_unlocked_at(badge.id),
            )
            for badge in self._badges
        ]

    def get_badge(self, badge_id: str) -> BadgeView:
        """
        Raises:
            NotFoundError: If `badge_id` is not in the catalogue
        """
        state = self._require_state("get_badge")
        badge = self._badges_by_id.get(badge_id)
        if badge is None:
            raise NotFoundError("Badge", badge_id)
        return BadgeView(
            definition=badge,
            unlocked=state.is_badge_unlocked(badge_id),
            unlocked_at=state.badge_unlocked_at(badge_id),
        )

    @property
    def unlocked_badge_ids(self) -> tuple[str, ...]:
        return self._require_state("unlocked_badge_ids").unlocked_badge_ids

    @property
    def streak(self) -> StreakRecord:
        return self._require_state("streak").streak

    @property
    def recent_transactions(self) -> tuple[XPTransaction, ...]:
        return self._require_state("recent_transactions").recent_transactions

    @property
    def weekly_xp(self) -> int:
        return self._require_state("weekly_xp").weekly_xp

    @property
    def monthly_xp(self) -> int:
        return self._require_state("monthly_xp").monthly_xp
