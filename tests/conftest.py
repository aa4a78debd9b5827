"""
Pytest Configuration and Fixtures for the Progression Engine Tests
==================================================================

Purpose
-------
Centralized fixtures for the test suite: configuration reset, a controllable
clock, in-memory persistence, a real event bus with a recording notification
sink, and ready-to-use services.

Architecture Notes
------------------
- Unit tests run fully in-process (no Redis, no network)
- ConfigManager is class-level state, so every test starts from the packaged
  defaults
- Service fixtures flush pending side effects on teardown
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

import pytest
import pytest_asyncio

from progression_engine.core.config.manager import ConfigManager
from progression_engine.core.event.bus import EventBus
from progression_engine.domain.models.progression import UserIdentity
from progression_engine.modules.progression.notifications import (
    ProgressionNotifier,
    RecordingNotificationSink,
)
from progression_engine.modules.progression.repository import InMemoryProgressionRepository
from progression_engine.modules.progression.service import ProgressionService

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================


def pytest_configure(config):
    """Configure pytest environment."""
    os.environ.setdefault("ENVIRONMENT", "testing")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")


@pytest.fixture(autouse=True)
def reset_config() -> Generator[None, None, None]:
    """Every test starts from the packaged YAML defaults."""
    ConfigManager.reset()
    yield
    ConfigManager.reset()


# ============================================================================
# CLOCK
# ============================================================================


class FakeClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, *, days: int = 0, hours: int = 0) -> datetime:
        self.current = self.current + timedelta(days=days, hours=hours)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 10, 9, 30, tzinfo=timezone.utc))


# ============================================================================
# INFRASTRUCTURE FIXTURES
# ============================================================================


@pytest.fixture
def test_logger() -> logging.Logger:
    return logging.getLogger("tests.progression")


@pytest.fixture
def repository() -> InMemoryProgressionRepository:
    return InMemoryProgressionRepository()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus(config_manager=ConfigManager)


@pytest.fixture
def mock_event_bus(mocker):
    """
    Mock EventBus for unit tests.

    Scope: function
    Uses: Unit tests that only check what gets published
    """
    mock_bus = mocker.MagicMock()
    mock_bus.publish = mocker.AsyncMock(return_value=[])
    mock_bus.drain = mocker.AsyncMock()
    mock_bus.subscribe = mocker.MagicMock()
    return mock_bus


@pytest.fixture
def sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def notifier(sink, event_bus, test_logger) -> Generator[ProgressionNotifier, None, None]:
    notifier = ProgressionNotifier(sink, event_bus, ConfigManager, test_logger)
    notifier.attach()
    yield notifier
    notifier.detach()


# ============================================================================
# DOMAIN FIXTURES
# ============================================================================


@pytest.fixture
def identity() -> UserIdentity:
    return UserIdentity(user_id="user-1", username="ada", email="ada@example.com")


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def progression_service(
    repository, event_bus, notifier, clock, test_logger
) -> ProgressionService:
    """Unloaded service wired to the in-memory repository and a real bus."""
    return ProgressionService(
        ConfigManager,
        event_bus,
        test_logger,
        repository,
        clock=clock,
    )


@pytest_asyncio.fixture
async def loaded_service(
    progression_service: ProgressionService,
    identity: UserIdentity,
) -> AsyncGenerator[ProgressionService, None]:
    """Service with `identity` loaded from an empty repository."""
    await progression_service.load(identity)
    yield progression_service
    await progression_service.flush()


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================


def event_names(domain_model) -> list[str]:
    """
    Names of the domain events a model has recorded but not yet released.

    Usage:
        state.award_xp(100, "test", now=now)
        assert event_names(state) == ["progression.xp_gained", "progression.leveled_up"]
    """
    return [event.event_name for event in domain_model.get_pending_events()]


def get_domain_event_payload(domain_model, event_name: str) -> dict | None:
    """
    Payload of the first recorded event named `event_name`.

    Usage:
        state.award_xp(100, "test", now=now)
        payload = get_domain_event_payload(state, "progression.leveled_up")
        assert payload["new_level"] == 2
    """
    for event in domain_model.get_pending_events():
        if event.event_name == event_name:
            return event.payload
    return None
