"""
Unit tests for the progression repositories.

Tests the in-memory store and the Redis-backed store (against a mocked Redis
client), including error wrapping.
"""

import pytest

from progression_engine.core.config.manager import ConfigManager
from progression_engine.core.exceptions import PersistenceError
from progression_engine.core.redis.service import RedisService
from progression_engine.modules.progression.repository import (
    InMemoryProgressionRepository,
    RedisProgressionRepository,
)


@pytest.fixture
def redis_client(mocker):
    """Mocked redis.asyncio client installed on RedisService."""
    client = mocker.MagicMock()
    client.get = mocker.AsyncMock(return_value=None)
    client.set = mocker.AsyncMock(return_value=True)
    mocker.patch.object(RedisService, "_client", client)
    return client


@pytest.mark.unit
@pytest.mark.asyncio
class TestInMemoryRepository:
    async def test_missing_user_loads_none(self):
        repository = InMemoryProgressionRepository()

        assert await repository.load("nobody") is None
        assert repository.load_count == 1

    async def test_saved_snapshot_is_detached(self):
        """Later changes to the caller's dict never reach the store."""
        # Arrange
        repository = InMemoryProgressionRepository()
        snapshot = {"user_id": "u1", "xp": 10, "unlocked_badge_ids": []}

        # Act
        await repository.save("u1", snapshot)
        snapshot["unlocked_badge_ids"].append("first_save")

        # Assert
        assert await repository.load("u1") == {"user_id": "u1", "xp": 10, "unlocked_badge_ids": []}
        assert repository.save_count == 1

    async def test_non_object_document_raises(self):
        # Arrange
        repository = InMemoryProgressionRepository()
        repository.put_raw("u1", "[1, 2]")

        # Act & Assert
        with pytest.raises(PersistenceError) as exc_info:
            await repository.load("u1")

        assert exc_info.value.operation == "load"

    async def test_unserializable_snapshot_raises(self):
        repository = InMemoryProgressionRepository()

        with pytest.raises(PersistenceError):
            await repository.save("u1", {"user_id": "u1", "when": object()})

        assert repository.save_count == 0


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisRepository:
    async def test_key_uses_configured_prefix(self):
        # Arrange
        ConfigManager.set("progression.storage.key_prefix", "pe:")

        # Act
        repository = RedisProgressionRepository(RedisService, ConfigManager)

        # Assert
        assert repository.key_for("u1") == "pe:u1"

    async def test_save_writes_compact_json(self, redis_client):
        # Arrange
        repository = RedisProgressionRepository(RedisService, ConfigManager)

        # Act
        await repository.save("u1", {"user_id": "u1", "xp": 5})

        # Assert
        redis_client.set.assert_awaited_once_with(
            "gamification_u1", '{"user_id":"u1","xp":5}', ex=None
        )

    async def test_ttl_applied_when_configured(self, redis_client):
        # Arrange
        ConfigManager.set("progression.storage.ttl_seconds", 3600)
        repository = RedisProgressionRepository(RedisService, ConfigManager)

        # Act
        await repository.save("u1", {"user_id": "u1"})

        # Assert
        assert redis_client.set.await_args.kwargs["ex"] == 3600

    async def test_load_decodes_document(self, redis_client):
        # Arrange
        redis_client.get.return_value = '{"user_id":"u1","xp":42}'
        repository = RedisProgressionRepository(RedisService, ConfigManager)

        # Act
        snapshot = await repository.load("u1")

        # Assert
        assert snapshot == {"user_id": "u1", "xp": 42}
        redis_client.get.assert_awaited_once_with("gamification_u1")

    async def test_load_missing_key(self, redis_client):
        repository = RedisProgressionRepository(RedisService, ConfigManager)

        assert await repository.load("u1") is None

    async def test_connection_failure_wrapped(self, redis_client):
        # Arrange
        redis_client.set.side_effect = ConnectionError("refused")
        repository = RedisProgressionRepository(RedisService, ConfigManager)

        # Act & Assert
        with pytest.raises(PersistenceError) as exc_info:
            await repository.save("u1", {"user_id": "u1"})

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert exc_info.value.is_retryable

    async def test_bad_json_wrapped(self, redis_client):
        # Arrange
        redis_client.get.return_value = "{oops"
        repository = RedisProgressionRepository(RedisService, ConfigManager)

        # Act & Assert
        with pytest.raises(PersistenceError):
            await repository.load("u1")

    async def test_uninitialized_service_wrapped(self, mocker):
        # Arrange
        mocker.patch.object(RedisService, "_client", None)
        repository = RedisProgressionRepository(RedisService, ConfigManager)

        # Act & Assert
        with pytest.raises(PersistenceError):
            await repository.load("u1")


@pytest.mark.unit
@pytest.mark.asyncio
class TestRedisServiceLifecycle:
    @pytest.fixture
    def from_url(self, mocker):
        mocker.patch.object(RedisService, "_client", None)
        client = mocker.MagicMock()
        client.ping = mocker.AsyncMock(return_value=True)
        client.aclose = mocker.AsyncMock()
        factory = mocker.patch(
            "progression_engine.core.redis.service.AsyncRedis.from_url", return_value=client
        )
        return factory

    async def test_initialize_connects_once(self, from_url):
        # Arrange
        ConfigManager.set("core.redis.url", "redis://cache:6379/2")

        # Act
        await RedisService.initialize()
        await RedisService.initialize()

        # Assert
        from_url.assert_called_once()
        assert from_url.call_args.args[0] == "redis://cache:6379/2"
        assert RedisService.client() is from_url.return_value

    async def test_failed_ping_leaves_service_uninitialized(self, from_url):
        # Arrange
        from_url.return_value.ping.side_effect = ConnectionError("refused")

        # Act & Assert
        with pytest.raises(RuntimeError):
            await RedisService.initialize()

        from_url.return_value.aclose.assert_awaited_once()
        with pytest.raises(RuntimeError):
            RedisService.client()

    async def test_shutdown_closes_client(self, from_url):
        # Arrange
        await RedisService.initialize()

        # Act
        await RedisService.shutdown()
        await RedisService.shutdown()

        # Assert
        from_url.return_value.aclose.assert_awaited_once()
        with pytest.raises(RuntimeError):
            RedisService.client()
