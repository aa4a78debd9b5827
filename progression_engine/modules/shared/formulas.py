"""
Progression formulas.

Purpose
-------
Pure calculation functions for progression mechanics: level resolution,
in-level progress, next-level lookups and the daily streak bonus.

Design Notes
------------
- Pure functions only (no side effects, no config access); the level table
  and reward values are passed in explicitly.
- Rounding follows the product's client, which rounds half-up
  (`Math.round`), so `round()` (banker's rounding) is not used.

Usage
-----
    from progression_engine.modules.shared.formulas import level_for_xp

    level = level_for_xp(450, LEVELS)
    pct = level_progress(450, level)
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Optional, Sequence

if TYPE_CHECKING:
    from progression_engine.domain.models.progression import LevelDefinition


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def level_for_xp(xp: int, levels: Sequence["LevelDefinition"]) -> "LevelDefinition":
    """
    Resolve the level a total XP value belongs to.

    Scans from the highest level down and returns the first whose `min_xp`
    is reached. Never resolves below the first level, so negative XP maps
    to level 1.

    Example:
        >>> level_for_xp(450, LEVELS).level
        3
        >>> level_for_xp(-20, LEVELS).level
        1
    """
    for level in reversed(levels):
        if xp >= level.min_xp:
            return level
    return levels[0]


def level_progress(xp: int, level: "LevelDefinition") -> int:
    """
    Percentage progress (0-100) through `level`.

    The terminal level always reports 100.

    Example:
        >>> level_progress(450, LEVELS[2])  # Practitioner, 300-600
        50
        >>> level_progress(1_000_000, LEVELS[-1])
        100
    """
    if level.max_xp is None:
        return 100
    span = level.max_xp - level.min_xp
    pct = _round_half_up(100 * (xp - level.min_xp) / span)
    return max(0, min(100, pct))


def level_info(level_number: int, levels: Sequence["LevelDefinition"]) -> "LevelDefinition":
    """Definition for `level_number`, falling back to the first level."""
    for level in levels:
        if level.level == level_number:
            return level
    return levels[0]


def next_level(
    level: "LevelDefinition",
    levels: Sequence["LevelDefinition"],
) -> Optional["LevelDefinition"]:
    """The level after `level`, or None at the terminal level."""
    for candidate in levels:
        if candidate.level == level.level + 1:
            return candidate
    return None


def xp_to_next_level(
    xp: int,
    level: "LevelDefinition",
    levels: Sequence["LevelDefinition"],
) -> int:
    """XP still needed to reach the next level (0 at the terminal level)."""
    upcoming = next_level(level, levels)
    if upcoming is None:
        return 0
    return upcoming.min_xp - xp


def streak_bonus_xp(streak: int, daily_login: int, per_day: int) -> int:
    """
    XP granted when a daily streak grows.

    Example:
        >>> streak_bonus_xp(3, daily_login=10, per_day=5)
        25
    """
    return daily_login + per_day * streak


def validate_level_table(levels: Sequence["LevelDefinition"]) -> None:
    """
    Check the level table invariants.

    - non-empty, numbered 1..n in order
    - first level starts at 0 XP
    - contiguous: each level starts where the previous one ends
    - only the last level is unbounded

    Raises:
        ValueError: If any invariant is violated.
    """
    if not levels:
        raise ValueError("Level table cannot be empty")
    if levels[0].min_xp != 0:
        raise ValueError(f"First level must start at 0 XP, got {levels[0].min_xp}")

    for index, level in enumerate(levels):
        if level.level != index + 1:
            raise ValueError(f"Level numbers must run 1..n, got {level.level} at position {index}")

        is_last = index == len(levels) - 1
        if level.max_xp is None and not is_last:
            raise ValueError(f"Only the last level may be unbounded, level {level.level} is")
        if is_last and level.max_xp is not None:
            raise ValueError(f"The last level must be unbounded, got max_xp={level.max_xp}")

        if index > 0 and level.min_xp != levels[index - 1].max_xp:
            raise ValueError(
                f"Level {level.level} must start at {levels[index - 1].max_xp}, "
                f"got {level.min_xp}"
            )
