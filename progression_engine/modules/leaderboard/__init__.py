"""
Leaderboard Module
==================

Domain: Timeframe-scoped rankings merged with the caller's live progression

Services:
- LeaderboardService: Fetch, merge, rank and truncate leaderboard rows
"""

from .service import (
    LeaderboardEntry,
    LeaderboardService,
    LeaderboardSource,
    LeaderboardTimeframe,
    StaticLeaderboardSource,
)

__all__ = [
    "LeaderboardService",
    "LeaderboardEntry",
    "LeaderboardSource",
    "LeaderboardTimeframe",
    "StaticLeaderboardSource",
]
