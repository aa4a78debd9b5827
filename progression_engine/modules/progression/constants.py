"""
Progression catalogue constants.

Purpose
-------
The fixed product catalogue: the level table, the badge catalogue, the
per-action XP rewards and the streak badge thresholds.

Design Notes
------------
- Values are annotated with typing.Final to signal immutability
- XP_REWARDS holds the built-in values; `ProgressionService` lets
  ConfigManager (`progression.xp_rewards.<ACTION>`) override them at runtime
- The level table is validated at import, so a broken edit fails fast
"""

from __future__ import annotations

from typing import Final, Mapping

from progression_engine.domain.models.progression import (
    BadgeCategory,
    BadgeDefinition,
    BadgeRarity,
    LevelDefinition,
)
from progression_engine.modules.shared.formulas import validate_level_table

# ============================================================================
# LEVEL TABLE
# ============================================================================

LEVELS: Final[tuple[LevelDefinition, ...]] = (
    LevelDefinition(1, "Novice", 0, 100, ("Access to basic features",), "from-gray-400 to-gray-500"),
    LevelDefinition(2, "Apprentice", 100, 300, ("Unlock 5 extra templates",), "from-green-400 to-green-500"),
    LevelDefinition(3, "Practitioner", 300, 600, ("Custom prompt saving",), "from-blue-400 to-blue-500"),
    LevelDefinition(4, "Specialist", 600, 1000, ("Priority support access",), "from-purple-400 to-purple-500"),
    LevelDefinition(5, "Expert", 1000, 1500, ("Early access to new features",), "from-pink-400 to-pink-500"),
    LevelDefinition(6, "Master", 1500, 2200, ("Exclusive badge", "10% token bonus"), "from-orange-400 to-orange-500"),
    LevelDefinition(7, "Grandmaster", 2200, 3000, ("Marketplace seller access",), "from-red-400 to-red-500"),
    LevelDefinition(8, "Sage", 3000, 4000, ("Featured creator status",), "from-cyan-400 to-cyan-500"),
    LevelDefinition(9, "Legend", 4000, 5500, ("Custom profile badge",), "from-yellow-400 to-yellow-500"),
    LevelDefinition(
        10,
        "Prompt God",
        5500,
        None,
        ("All perks unlocked", "Exclusive community"),
        "from-amber-400 via-yellow-500 to-orange-500",
    ),
)

validate_level_table(LEVELS)

# ============================================================================
# BADGE CATALOGUE
# ============================================================================

_A = BadgeCategory.ACHIEVEMENT
_M = BadgeCategory.MILESTONE
_SK = BadgeCategory.SKILL
_SO = BadgeCategory.SOCIAL
_SP = BadgeCategory.SPECIAL

_C = BadgeRarity.COMMON
_R = BadgeRarity.RARE
_E = BadgeRarity.EPIC
_L = BadgeRarity.LEGENDARY

BADGES: Final[tuple[BadgeDefinition, ...]] = (
    # Achievement
    BadgeDefinition("first_prompt", "First Steps", "Generate your first prompt", "🎯", _A, _C, 50),
    BadgeDefinition("prompt_10", "Getting Started", "Generate 10 prompts", "📝", _A, _C, 100),
    BadgeDefinition("prompt_50", "Prompt Enthusiast", "Generate 50 prompts", "✨", _A, _R, 250),
    BadgeDefinition("prompt_100", "Prompt Master", "Generate 100 prompts", "🏆", _A, _E, 500),
    BadgeDefinition("prompt_500", "Prompt Legend", "Generate 500 prompts", "👑", _A, _L, 1000),
    # Milestone
    BadgeDefinition("first_save", "Collector", "Save your first prompt", "💾", _M, _C, 25),
    BadgeDefinition("first_template", "Template User", "Use your first template", "📋", _M, _C, 25),
    BadgeDefinition("first_export", "Exporter", "Export your first prompt as PDF", "📄", _M, _C, 50),
    BadgeDefinition("upgrade_plan", "Investor", "Upgrade your subscription", "💎", _M, _R, 200),
    # Skill
    BadgeDefinition("all_categories", "Explorer", "Generate prompts in all categories", "🧭", _SK, _E, 300),
    BadgeDefinition("refine_master", "Perfectionist", "Refine 20 prompts", "🔧", _SK, _R, 150),
    BadgeDefinition("quick_learner", "Quick Learner", "Complete 5 Academy lessons", "📚", _SK, _C, 100),
    BadgeDefinition("scholar", "Scholar", "Complete a full Academy course", "🎓", _SK, _R, 300),
    BadgeDefinition("professor", "Professor", "Complete 5 Academy courses", "👨‍🏫", _SK, _E, 750),
    # Social
    BadgeDefinition("team_player", "Team Player", "Join or create a team", "👥", _SO, _C, 75),
    BadgeDefinition("collaborator", "Collaborator", "Share 5 prompts with team", "🤝", _SO, _R, 150),
    BadgeDefinition("reviewer", "Reviewer", "Rate 10 lessons or prompts", "⭐", _SO, _C, 50),
    BadgeDefinition("influencer", "Influencer", "Get 50 likes on your prompts", "💫", _SO, _E, 400),
    # Streak
    BadgeDefinition("streak_3", "On Fire", "3-day login streak", "🔥", _A, _C, 50),
    BadgeDefinition("streak_7", "Week Warrior", "7-day login streak", "⚡", _A, _R, 150),
    BadgeDefinition("streak_30", "Monthly Master", "30-day login streak", "🌟", _A, _E, 500),
    BadgeDefinition("streak_100", "Centurion", "100-day login streak", "💯", _A, _L, 1500),
    # Special
    BadgeDefinition("early_adopter", "Early Adopter", "Joined during beta", "🚀", _SP, _L, 500),
    BadgeDefinition("builder_iq", "App Builder", "Create your first app with BuilderIQ", "🏗️", _SP, _R, 200),
    BadgeDefinition("voice_pioneer", "Voice Pioneer", "Use voice commands 10 times", "🎤", _SP, _R, 150),
    BadgeDefinition("night_owl", "Night Owl", "Generate prompts after midnight", "🦉", _SP, _C, 25),
    BadgeDefinition("early_bird", "Early Bird", "Generate prompts before 6 AM", "🐦", _SP, _C, 25),
)

BADGES_BY_ID: Final[Mapping[str, BadgeDefinition]] = {badge.id: badge for badge in BADGES}

# ============================================================================
# XP REWARDS
# ============================================================================

XP_REWARDS: Final[Mapping[str, int]] = {
    "GENERATE_PROMPT": 10,
    "SAVE_PROMPT": 5,
    "USE_TEMPLATE": 5,
    "REFINE_PROMPT": 8,
    "EXPORT_PDF": 5,
    "COMPLETE_LESSON": 15,
    "COMPLETE_QUIZ": 20,
    "COMPLETE_COURSE": 100,
    "RATE_CONTENT": 3,
    "DAILY_LOGIN": 10,
    "STREAK_BONUS": 5,  # per day of streak
    "FIRST_OF_DAY": 15,
    "SHARE_PROMPT": 10,
    "BUILDERIQ_CREATE": 25,
    "VOICE_COMMAND": 2,
}

# ============================================================================
# STREAK BADGES
# ============================================================================

# Streak length -> badge unlocked once the streak reaches it.
STREAK_BADGES: Final[Mapping[int, str]] = {
    3: "streak_3",
    7: "streak_7",
    30: "streak_30",
    100: "streak_100",
}
