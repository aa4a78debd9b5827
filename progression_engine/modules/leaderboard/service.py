"""
Leaderboard Service
===================

Purpose
-------
Builds the ranked, timeframe-scoped leaderboard shown to the user: rows come
from an external source, the caller's own row comes from the live
progression store.

Domain
------
- Validate the requested timeframe
- Fetch rows from a `LeaderboardSource`
- Replace the caller's (possibly stale) row with live values
- Stable-sort by XP, assign ranks and truncate to the configured size

The merge never mutates progression state. Source failures are surfaced as
`LeaderboardSourceError` without retry or fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Union,
)

from progression_engine.core.exceptions import LeaderboardSourceError
from progression_engine.core.validation.input_validator import InputValidator
from progression_engine.modules.shared.base_service import BaseService
from progression_engine.modules.shared.exceptions import ValidationError

if TYPE_CHECKING:
    from logging import Logger

    from progression_engine.core.config.manager import ConfigManager
    from progression_engine.core.event.bus import EventBus
    from progression_engine.modules.progression.service import ProgressionService


class LeaderboardTimeframe(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ALL_TIME = "allTime"

    @classmethod
    def parse(cls, value: Union[str, "LeaderboardTimeframe"]) -> "LeaderboardTimeframe":
        """
        Resolve a timeframe name (case-insensitive).

        Raises:
            ValidationError: If `value` is not a known timeframe
        """
        if isinstance(value, cls):
            return value
        choice = InputValidator.validate_choice(
            value, "timeframe", [member.value for member in cls]
        )
        return cls(choice)


@dataclass(frozen=True)
class LeaderboardEntry:
    """One leaderboard row. `rank` is 0 until the row has been ranked."""

    user_id: str
    username: str
    xp: int
    level: int
    badge_count: int
    rank: int = 0

    @classmethod
    def from_mapping(cls, row: Mapping[str, Any]) -> "LeaderboardEntry":
        """
        Accepts both camelCase and snake_case source rows.

        Raises:
            ValidationError: If the row carries no user id
        """
        user_id = row.get("userId", row.get("user_id"))
        if user_id is None or str(user_id) == "":
            raise ValidationError("user_id", "leaderboard row has no user id")
        badge_count = row.get("badgeCount", row.get("badge_count", row.get("badges", 0)))
        return cls(
            user_id=str(user_id),
            username=str(row.get("username", "")),
            xp=int(row.get("xp", 0)),
            level=int(row.get("level", 1)),
            badge_count=int(badge_count or 0),
            rank=int(row.get("rank", 0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rank": self.rank,
            "user_id": self.user_id,
            "username": self.username,
            "xp": self.xp,
            "level": self.level,
            "badge_count": self.badge_count,
        }


SourceRow = Union[Mapping[str, Any], LeaderboardEntry]


class LeaderboardSource(Protocol):
    """External provider of leaderboard rows for a timeframe."""

    async def fetch(self, timeframe: LeaderboardTimeframe) -> Sequence[SourceRow]:
        ...


class StaticLeaderboardSource:
    """
    Serves fixed rows.

    Pass a mapping of timeframe to rows, or a single sequence used for every
    timeframe. Unknown timeframes yield no rows.
    """

    def __init__(
        self,
        rows: Union[Mapping[Any, Sequence[SourceRow]], Sequence[SourceRow]],
    ) -> None:
        self._by_timeframe: Optional[Dict[LeaderboardTimeframe, List[SourceRow]]] = None
        self._rows: List[SourceRow] = []
        if isinstance(rows, Mapping):
            self._by_timeframe = {
                LeaderboardTimeframe.parse(key): list(value) for key, value in rows.items()
            }
        else:
            self._rows = list(rows)
        self.fetch_count = 0

    async def fetch(self, timeframe: LeaderboardTimeframe) -> Sequence[SourceRow]:
        self.fetch_count += 1
        if self._by_timeframe is None:
            return list(self._rows)
        return list(self._by_timeframe.get(timeframe, []))


# ============================================================================
# LeaderboardService
# ============================================================================


class LeaderboardService(BaseService):
    """
    Merges source rows with the caller's live progression and ranks them.

    Public Methods
    --------------
    - get_leaderboard() -> Ranked rows for a timeframe
    - rank_entries() -> Pure stable sort / rank / truncate
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
        source: LeaderboardSource,
        progression: Optional[ProgressionService] = None,
    ) -> None:
        super().__init__(config_manager, event_bus, logger)
        self._source = source
        self._progression = progression

    # ========================================================================
    # PUBLIC API
    # ========================================================================

    async def get_leaderboard(
        self, timeframe: Union[str, LeaderboardTimeframe]
    ) -> List[LeaderboardEntry]:
        """
        Ranked leaderboard for `timeframe`.

        Args:
            timeframe: "daily", "weekly", "monthly" or "allTime"

        Returns:
            At most `leaderboard.size` entries, rank 1 first

        Raises:
            ValidationError: If `timeframe` is not recognised
            LeaderboardSourceError: If the source fails

        Example:
            >>> board = await service.get_leaderboard("weekly")
            >>> board[0].rank
            1
        """
        resolved = LeaderboardTimeframe.parse(timeframe)
        size = self.get_config_int("leaderboard.size", 10)

        try:
            rows = await self._source.fetch(resolved)
        except Exception as exc:
            self.log_error("get_leaderboard", exc, timeframe=resolved.value)
            raise LeaderboardSourceError(resolved.value, exc) from exc

        entries = self._to_entries(rows, resolved)
        own = self._own_entry()
        if own is not None:
            entries = [entry for entry in entries if entry.user_id != own.user_id]
            entries.append(own)

        ranked = self.rank_entries(entries, size)
        self.log_operation(
            "get_leaderboard",
            timeframe=resolved.value,
            source_rows=len(rows),
            returned=len(ranked),
            includes_caller=own is not None,
        )
        return ranked

    @staticmethod
    def rank_entries(entries: Iterable[LeaderboardEntry], size: int) -> List[LeaderboardEntry]:
        """Stable sort by XP (descending), rank from 1, keep the top `size`."""
        ordered = sorted(entries, key=lambda entry: entry.xp, reverse=True)
        return [replace(entry, rank=index + 1) for index, entry in enumerate(ordered[:size])]

    # ========================================================================
    # PRIVATE HELPERS
    # ========================================================================

    def _to_entries(
        self, rows: Sequence[SourceRow], timeframe: LeaderboardTimeframe
    ) -> List[LeaderboardEntry]:
        entries: List[LeaderboardEntry] = []
        for row in rows:
            if isinstance(row, LeaderboardEntry):
                entries.append(row)
                continue
            try:
                entries.append(LeaderboardEntry.from_mapping(row))
            except ValidationError as exc:
                self.log.warning(
                    "Skipping leaderboard row without a user id",
                    extra={"timeframe": timeframe.value, "error": exc.validation_message},
                )
        return entries

    def _own_entry(self) -> Optional[LeaderboardEntry]:
        progression = self._progression
        if progression is None or not progression.is_loaded:
            return None
        state = progression.state
        return LeaderboardEntry(
            user_id=state.user_id,
            username=progression.identity.display_name,
            xp=state.xp,
            level=state.level,
            badge_count=state.badge_count,
        )
