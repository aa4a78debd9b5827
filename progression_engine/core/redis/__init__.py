"""Redis infrastructure for progression persistence."""

from progression_engine.core.redis.service import RedisService

__all__ = ["RedisService"]
