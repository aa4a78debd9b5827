"""
Unit tests for ConfigManager.

Tests packaged YAML defaults, runtime overrides, reset and key validation.
"""

import pytest

from progression_engine.core.config.errors import ConfigValidationError
from progression_engine.core.config.manager import ConfigManager


@pytest.mark.unit
class TestDefaults:
    """Packaged YAML defaults."""

    def test_reads_packaged_values(self):
        assert ConfigManager.get("progression.recent_transactions_limit") == 50
        assert ConfigManager.get("progression.xp_rewards.COMPLETE_QUIZ") == 20
        assert ConfigManager.get("notifications.level_up_duration_ms") == 5000
        assert ConfigManager.get("leaderboard.size") == 10

    def test_missing_key_returns_default(self):
        assert ConfigManager.get("progression.unknown.key", "fallback") == "fallback"

    def test_sections_are_copies(self):
        """Mutating a returned section never leaks back."""
        # Arrange
        rewards = ConfigManager.get("progression.xp_rewards")

        # Act
        rewards["DAILY_LOGIN"] = 999

        # Assert
        assert ConfigManager.get("progression.xp_rewards.DAILY_LOGIN") == 10

    def test_top_level_keys(self):
        keys = ConfigManager.get_all_keys()

        assert {"core", "progression", "notifications", "leaderboard"} <= set(keys)

    def test_custom_config_dir(self, tmp_path):
        # Arrange
        (tmp_path / "a.yaml").write_text("leaderboard:\n  size: 3\n", encoding="utf-8")
        (tmp_path / "b.yaml").write_text("leaderboard:\n  size: 4\n", encoding="utf-8")

        # Act
        ConfigManager.initialize(tmp_path)

        # Assert
        assert ConfigManager.get("leaderboard.size", 10) == 4
        assert ConfigManager.get("progression.recent_transactions_limit", 50) == 50

    def test_broken_yaml_is_skipped(self, tmp_path):
        # Arrange
        (tmp_path / "bad.yaml").write_text("leaderboard: [unclosed\n", encoding="utf-8")
        (tmp_path / "good.yaml").write_text("leaderboard:\n  size: 7\n", encoding="utf-8")

        # Act
        ConfigManager.initialize(tmp_path)

        # Assert
        assert ConfigManager.get("leaderboard.size") == 7


@pytest.mark.unit
class TestOverrides:
    """Runtime overrides via set()."""

    def test_set_overrides_default(self):
        # Act
        ConfigManager.set("leaderboard.size", 25)

        # Assert
        assert ConfigManager.get("leaderboard.size") == 25

    def test_dict_override_merges_into_section(self):
        # Act
        ConfigManager.set("progression.xp_rewards", {"DAILY_LOGIN": 12})

        # Assert
        assert ConfigManager.get("progression.xp_rewards.DAILY_LOGIN") == 12
        assert ConfigManager.get("progression.xp_rewards.STREAK_BONUS") == 5

    def test_reset_drops_overrides(self):
        # Arrange
        ConfigManager.set("leaderboard.size", 25)

        # Act
        ConfigManager.reset()

        # Assert
        assert ConfigManager.get("leaderboard.size") == 10

    @pytest.mark.parametrize("key", ["", "leaderboard.", ".size", "a..b"])
    def test_malformed_key_rejected(self, key):
        with pytest.raises(ConfigValidationError):
            ConfigManager.set(key, 1)

    def test_section_cannot_become_scalar(self):
        with pytest.raises(ConfigValidationError):
            ConfigManager.set("progression.xp_rewards", 5)

    def test_metrics_count_sets(self):
        # Arrange
        before = ConfigManager.get_metrics()["sets"]

        # Act
        ConfigManager.set("leaderboard.size", 11)

        # Assert
        assert ConfigManager.get_metrics()["sets"] == before + 1
