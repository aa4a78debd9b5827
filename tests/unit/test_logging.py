"""
Unit tests for the logging helpers.
"""

import json
import logging
import queue

import pytest

from progression_engine.core.config.config import Config
from progression_engine.core.logging import (
    LogContext,
    LogSettings,
    clear_log_context,
    get_log_context,
    set_log_context,
    setup_logging,
    shutdown_logging,
)
from progression_engine.core.logging.logger import (
    ContextFilter,
    DroppingQueueHandler,
    JSONFormatter,
)


def make_record(**extra):
    record = logging.LogRecord(
        name="progression_engine.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="XP awarded",
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestLogContext:
    @pytest.fixture(autouse=True)
    def fresh_context(self):
        clear_log_context()
        yield
        clear_log_context()

    def test_context_is_scoped(self):
        # Act
        with LogContext(user_id="user-1", operation="progression.award_xp"):
            inside = get_log_context()
        outside = get_log_context()

        # Assert
        assert inside["user_id"] == "user-1"
        assert inside["operation"] == "progression.award_xp"
        assert inside["correlation_id"]
        assert "user_id" not in outside

    def test_set_and_clear(self):
        # Act
        set_log_context(user_id=7, component="leaderboard")
        current = get_log_context()
        clear_log_context()

        # Assert
        assert current == {"user_id": "7", "component": "leaderboard"}
        assert get_log_context() == {}


@pytest.mark.unit
class TestFormatting:
    def test_filter_copies_context_onto_record(self):
        # Arrange
        record = make_record()

        # Act
        with LogContext(user_id="user-1", operation="progression.load"):
            ContextFilter().filter(record)

        # Assert
        assert record.user_id == "user-1"
        assert record.operation == "progression.load"

    def test_json_formatter_separates_extra(self):
        # Arrange
        record = make_record(user_id="user-1", amount=25)

        # Act
        data = json.loads(JSONFormatter().format(record))

        # Assert
        assert data["message"] == "XP awarded"
        assert data["level"] == "INFO"
        assert data["user_id"] == "user-1"
        assert data["extra"]["amount"] == 25

    def test_explicit_extra_wins_over_context(self):
        # Arrange
        record = make_record(operation="progression.flush")

        # Act
        with LogContext(user_id="user-1", operation="progression.load"):
            ContextFilter().filter(record)

        # Assert
        assert record.operation == "progression.flush"
        assert record.component == "test"

    def test_full_queue_drops_instead_of_blocking(self):
        # Arrange
        handler = DroppingQueueHandler(queue.Queue(maxsize=1))
        dropped_before = DroppingQueueHandler.dropped

        # Act
        handler.handle(make_record())
        handler.handle(make_record())

        # Assert
        assert DroppingQueueHandler.dropped == dropped_before + 1


@pytest.mark.unit
class TestSetup:
    @pytest.fixture(autouse=True)
    def restore_root(self, monkeypatch, tmp_path):
        monkeypatch.setattr(Config, "LOGS_DIR", tmp_path)
        root = logging.getLogger()
        level = root.level
        yield
        shutdown_logging()
        root.setLevel(level)

    def test_settings_follow_config(self, monkeypatch):
        # Arrange
        monkeypatch.setattr(Config, "LOG_LEVEL", "warning")
        monkeypatch.setattr(Config, "LOG_JSON", True)

        # Act
        settings = LogSettings.from_config()

        # Assert
        assert settings.level == logging.WARNING
        assert settings.json_console
        assert not settings.colors

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setattr(Config, "LOG_LEVEL", "LOUD")

        assert LogSettings.from_config().level == logging.INFO

    def test_setup_is_idempotent_and_reversible(self):
        # Arrange
        root = logging.getLogger()
        before = list(root.handlers)

        # Act
        setup_logging(file_output=False)
        setup_logging(file_output=False)
        installed = [h for h in root.handlers if isinstance(h, DroppingQueueHandler)]
        shutdown_logging()

        # Assert
        assert len(installed) == 1
        assert root.handlers == before

    def test_file_output_is_json(self, tmp_path):
        # Arrange
        setup_logging(file_output=True)

        # Act
        with LogContext(user_id="user-1", operation="progression.award_xp"):
            logging.getLogger("progression_engine.test").warning(
                "XP awarded", extra={"amount": 25}
            )
        shutdown_logging()

        # Assert
        lines = (tmp_path / "progression.json.log").read_text(encoding="utf-8").splitlines()
        records = [json.loads(line) for line in lines]
        award = next(r for r in records if r["message"] == "XP awarded")
        assert award["user_id"] == "user-1"
        assert award["operation"] == "progression.award_xp"
        assert award["extra"]["amount"] == 25
        assert any(r["message"] == "Logging initialized" for r in records)
