"""
Unit Tests for the Progression Domain Model
===========================================

Purpose
-------
Test the progression rules in `ProgressionState` and its value objects
without any service, bus or repository.

Test Coverage
-------------
- Level and badge definition validation
- XP awards, transaction log bounds and accumulators
- Badge unlock idempotency and reward accounting
- Streak transitions (same day, continued, freeze, reset)
- Domain event order
- Snapshot round-trip

Testing Strategy
----------------
- Unit tests (fast, no I/O)
- AAA pattern (Arrange, Act, Assert)
- Test one behavior per test
"""

import json
from datetime import date, datetime, timedelta, timezone

import pytest

from progression_engine.domain.models import (
    BadgeCategory,
    BadgeDefinition,
    BadgeRarity,
    LevelDefinition,
    ProgressionEvents,
    ProgressionState,
    StreakOutcome,
    StreakRecord,
    UserIdentity,
    XPTransaction,
)
from progression_engine.domain.models.base import DomainValidationError
from progression_engine.modules.progression.constants import BADGES_BY_ID, LEVELS
from tests.conftest import event_names, get_domain_event_payload

NOW = datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc)
TODAY = NOW.date()


def make_state(**kwargs) -> ProgressionState:
    return ProgressionState("user-1", LEVELS, **kwargs)


# ============================================================================
# VALUE OBJECT TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestDefinitions:
    """Test LevelDefinition and BadgeDefinition validation."""

    def test_level_requires_max_above_min(self):
        """A bounded level must end above where it starts."""
        # Arrange & Act & Assert
        with pytest.raises(DomainValidationError) as exc_info:
            LevelDefinition(2, "Broken", 100, 100)

        assert exc_info.value.field == "max_xp"

    def test_unbounded_level_is_terminal(self):
        """Only a level without max_xp is terminal."""
        assert LEVELS[-1].is_terminal
        assert not LEVELS[0].is_terminal

    def test_badge_rejects_negative_reward(self):
        """Badge XP rewards cannot be negative."""
        with pytest.raises(DomainValidationError):
            BadgeDefinition(
                "bad", "Bad", "Never valid", "x",
                BadgeCategory.SPECIAL, BadgeRarity.COMMON, -1,
            )


@pytest.mark.unit
@pytest.mark.domain
class TestUserIdentity:
    """Test UserIdentity display name resolution."""

    def test_username_wins(self):
        identity = UserIdentity("u1", username="ada", email="lovelace@example.com")

        assert identity.display_name == "ada"

    def test_falls_back_to_email_local_part(self):
        identity = UserIdentity("u1", email="lovelace@example.com")

        assert identity.display_name == "lovelace"

    def test_falls_back_to_you(self):
        identity = UserIdentity("u1")

        assert identity.display_name == "You"

    def test_requires_user_id(self):
        with pytest.raises(DomainValidationError):
            UserIdentity("")


# ============================================================================
# STREAK TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestStreakRecord:
    """Test StreakRecord.advance transitions."""

    def test_first_check_in_starts_streak(self):
        """A user with no history starts at 1."""
        # Act
        record, outcome = StreakRecord().advance(TODAY)

        # Assert
        assert outcome is StreakOutcome.RESET
        assert record.current_streak == 1
        assert record.longest_streak == 1
        assert record.last_active_date == TODAY

    def test_same_day_is_no_op(self):
        """A second check-in on the same day returns the same record."""
        # Arrange
        original = StreakRecord(4, 6, TODAY, 1)

        # Act
        record, outcome = original.advance(TODAY)

        # Assert
        assert outcome is StreakOutcome.SAME_DAY
        assert record is original

    def test_yesterday_continues_streak(self):
        # Arrange
        original = StreakRecord(4, 4, TODAY - timedelta(days=1), 0)

        # Act
        record, outcome = original.advance(TODAY)

        # Assert
        assert outcome is StreakOutcome.CONTINUED
        assert record.current_streak == 5
        assert record.longest_streak == 5

    def test_gap_with_freeze_consumes_one(self):
        """Three days away with a freeze keeps the streak and spends the freeze."""
        # Arrange
        original = StreakRecord(5, 9, TODAY - timedelta(days=3), 1)

        # Act
        record, outcome = original.advance(TODAY)

        # Assert
        assert outcome is StreakOutcome.FREEZE_CONSUMED
        assert record.current_streak == 5
        assert record.streak_freezes == 0
        assert record.last_active_date == TODAY

    def test_gap_without_freeze_resets(self):
        # Arrange
        original = StreakRecord(5, 9, TODAY - timedelta(days=3), 0)

        # Act
        record, outcome = original.advance(TODAY)

        # Assert
        assert outcome is StreakOutcome.RESET
        assert record.current_streak == 1
        assert record.longest_streak == 9

    def test_future_last_date_resets_without_spending_freeze(self):
        """A last-active date after today is treated as a break."""
        # Arrange
        original = StreakRecord(5, 5, TODAY + timedelta(days=2), 2)

        # Act
        record, outcome = original.advance(TODAY)

        # Assert
        assert outcome is StreakOutcome.RESET
        assert record.current_streak == 1
        assert record.streak_freezes == 2

    def test_longest_never_decreases(self):
        """Walk through continue, freeze, reset and continue again."""
        # Arrange
        record = StreakRecord()
        day = TODAY
        longest_seen = 0

        # Act
        for gap in (1, 1, 1, 4, 1, 5, 1, 1, 1, 1):
            day = day + timedelta(days=gap)
            record, _ = record.advance(day)

            # Assert
            assert record.longest_streak >= longest_seen
            assert record.longest_streak >= record.current_streak
            longest_seen = record.longest_streak

        assert longest_seen == 5

    def test_longest_below_current_rejected(self):
        with pytest.raises(DomainValidationError):
            StreakRecord(current_streak=3, longest_streak=2)

    def test_with_freezes_requires_positive_count(self):
        with pytest.raises(DomainValidationError):
            StreakRecord().with_freezes(0)


# ============================================================================
# XP TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestAwardXP:
    """Test ProgressionState.award_xp."""

    def test_award_updates_totals_and_log(self):
        """XP, weekly/monthly totals and the transaction log move together."""
        # Arrange
        state = make_state()

        # Act
        award = state.award_xp(40, "Completed lesson", "lesson", now=NOW)

        # Assert
        assert state.xp == 40
        assert state.weekly_xp == 40
        assert state.monthly_xp == 40
        assert award.old_xp == 0 and award.new_xp == 40
        assert not award.leveled_up

        transaction = state.recent_transactions[0]
        assert transaction.amount == 40
        assert transaction.reason == "Completed lesson"
        assert transaction.category == "lesson"
        assert transaction.id.startswith("xp_")
        assert transaction.timestamp == NOW

    def test_level_and_progress_follow_xp(self):
        # Arrange
        state = make_state()

        # Act
        state.award_xp(450, "Bulk", now=NOW)

        # Assert
        assert state.level == 3
        assert state.level_definition.name == "Practitioner"
        assert state.level_progress == 50

    def test_three_awards_emit_exactly_one_level_up(self):
        """With level 2 at 150 XP, only the second of three 100 XP awards levels up."""
        # Arrange
        levels = (
            LevelDefinition(1, "Novice", 0, 150),
            LevelDefinition(2, "Apprentice", 150, 1000),
            LevelDefinition(3, "Sage", 1000, None),
        )
        state = ProgressionState("user-1", levels)
        level_ups_per_call = []

        # Act
        for _ in range(3):
            state.award_xp(100, "test", now=NOW)
            level_ups_per_call.append([
                e for e in state.clear_domain_events()
                if e.event_name == ProgressionEvents.LEVELED_UP
            ])

        # Assert
        assert state.xp == 300
        assert [len(calls) for calls in level_ups_per_call] == [0, 1, 0]
        assert level_ups_per_call[1][0].payload["new_level"] == 2
        assert level_ups_per_call[1][0].payload["level_name"] == "Apprentice"

    def test_xp_event_precedes_level_up(self):
        # Arrange
        state = make_state(xp=90)

        # Act
        state.award_xp(20, "Push over", now=NOW)

        # Assert
        assert event_names(state) == [
            ProgressionEvents.XP_GAINED,
            ProgressionEvents.LEVELED_UP,
        ]
        payload = get_domain_event_payload(state, ProgressionEvents.XP_GAINED)
        assert payload["amount"] == 20
        assert payload["new_xp"] == 110

    def test_transaction_log_is_bounded_newest_first(self):
        # Arrange
        state = make_state(transaction_limit=3)

        # Act
        for amount in range(1, 6):
            state.award_xp(amount, f"award {amount}", now=NOW)

        # Assert
        assert [t.amount for t in state.recent_transactions] == [5, 4, 3]
        assert state.xp == 15

    def test_negative_award_is_applied(self):
        """Penalties lower XP; level follows, never below level 1."""
        # Arrange
        state = make_state(xp=120)

        # Act
        state.award_xp(-50, "Penalty", now=NOW)

        # Assert
        assert state.xp == 70
        assert state.level == 1
        assert state.weekly_xp == -50

    def test_non_integer_amount_rejected(self):
        # Arrange
        state = make_state()

        # Act & Assert
        with pytest.raises(DomainValidationError) as exc_info:
            state.award_xp(1.5, "Half", now=NOW)

        assert exc_info.value.field == "amount"
        assert state.xp == 0
        assert event_names(state) == []


# ============================================================================
# BADGE TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestUnlockBadge:
    """Test ProgressionState.unlock_badge."""

    def test_unlock_grants_reward_once(self):
        """A second unlock changes neither the set nor the XP."""
        # Arrange
        state = make_state()
        badge = BADGES_BY_ID["first_prompt"]

        # Act
        first = state.unlock_badge(badge, now=NOW)
        second = state.unlock_badge(badge, now=NOW)

        # Assert
        assert first is True
        assert second is False
        assert state.badge_count == 1
        assert state.xp == badge.xp_reward
        assert len(state.recent_transactions) == 1

    def test_unlock_logs_badge_transaction(self):
        # Arrange
        state = make_state()

        # Act
        state.unlock_badge(BADGES_BY_ID["first_prompt"], now=NOW)

        # Assert
        transaction = state.recent_transactions[0]
        assert transaction.reason == "Badge unlocked: First Steps"
        assert transaction.category == "badge"
        assert state.badge_unlocked_at("first_prompt") == NOW

    def test_badge_reward_can_level_up(self):
        """The level-up is recorded after the badge event."""
        # Arrange
        state = make_state(xp=60)

        # Act
        state.unlock_badge(BADGES_BY_ID["first_prompt"], now=NOW)

        # Assert
        assert state.level == 2
        assert event_names(state) == [
            ProgressionEvents.BADGE_UNLOCKED,
            ProgressionEvents.LEVELED_UP,
        ]

    def test_unlock_order_is_kept(self):
        # Arrange
        state = make_state()

        # Act
        for badge_id in ("streak_3", "first_save", "first_prompt"):
            state.unlock_badge(BADGES_BY_ID[badge_id], now=NOW)

        # Assert
        assert state.unlocked_badge_ids == ("streak_3", "first_save", "first_prompt")


# ============================================================================
# SNAPSHOT TESTS
# ============================================================================


@pytest.mark.unit
@pytest.mark.domain
class TestSnapshots:
    """Test to_snapshot / from_snapshot."""

    def test_round_trip_through_json(self):
        """A JSON-encoded snapshot restores to an identical snapshot."""
        # Arrange
        state = make_state()
        for i in range(60):
            state.award_xp(7, f"award {i}", "general", now=NOW + timedelta(minutes=i))
        state.unlock_badge(BADGES_BY_ID["first_export"], now=NOW)
        state.update_streak(TODAY)
        state.grant_streak_freezes(2)
        before = state.to_snapshot()

        # Act
        restored = ProgressionState.from_snapshot(json.loads(json.dumps(before)), LEVELS)

        # Assert
        assert restored.to_snapshot() == before
        assert len(restored.recent_transactions) == 50
        assert restored.streak == state.streak

    def test_missing_keys_take_defaults(self):
        # Act
        state = ProgressionState.from_snapshot({"user_id": "user-1", "xp": 150}, LEVELS)

        # Assert
        assert state.level == 2
        assert state.unlocked_badge_ids == ()
        assert state.streak == StreakRecord()
        assert state.weekly_xp == 0

    def test_derived_fields_are_recomputed(self):
        """Stored level/progress values are ignored in favour of xp."""
        # Act
        state = ProgressionState.from_snapshot(
            {"user_id": "user-1", "xp": 450, "level": 9, "level_progress": 3},
            LEVELS,
        )

        # Assert
        assert state.level == 3
        assert state.level_progress == 50

    def test_corrupt_streak_rejected(self):
        with pytest.raises(DomainValidationError):
            ProgressionState.from_snapshot(
                {"user_id": "user-1", "streak": {"current_streak": -3}},
                LEVELS,
            )

    def test_transaction_from_dict(self):
        # Arrange
        data = {
            "id": "xp_abc",
            "amount": 5,
            "reason": "Saved",
            "category": "save_prompt",
            "timestamp": NOW.isoformat(),
        }

        # Act
        transaction = XPTransaction.from_dict(data)

        # Assert
        assert transaction.to_dict() == data
        assert transaction.timestamp.date() == date(2026, 3, 10)
