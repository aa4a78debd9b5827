"""
Progression Engine

In-process async library that tracks a user's XP, derives a level, unlocks
badges, maintains a daily login streak with consumable freezes, and merges
the caller's live values into an externally sourced leaderboard.
"""

__version__ = "1.0.0"
