"""
RedisService: async Redis access for progression persistence.

Purpose
-------
Provide a small, observable Redis abstraction with:
- Singleton async client with connection pooling
- KV and whole-document JSON operations with structured logging

Responsibilities
----------------
- Initialize and manage a singleton Redis connection pool
- Expose simple KV and JSON operations (get/set/get_json/set_json)
- Log every failure with key and latency before re-raising

Non-Responsibilities
--------------------
- Progression rules (see `modules.progression.repository`)
- Retry or circuit breaking; callers decide how to degrade

Configuration Keys
------------------
- core.redis.url                       : str (falls back to Config.REDIS_URL)
- core.redis.password                  : str (falls back to Config.REDIS_PASSWORD)
- core.redis.socket_timeout_seconds    : int (falls back to Config.REDIS_SOCKET_TIMEOUT)
- core.redis.max_connections           : int (falls back to Config.REDIS_MAX_CONNECTIONS)
- core.redis.default_ttl_seconds       : int (default 0, no expiry)
"""

from __future__ import annotations

import asyncio
import json
import time
from typing import Any, Optional

from redis.asyncio.client import Redis as AsyncRedis  # type: ignore[misc]
from redis.exceptions import RedisError

from progression_engine.core.config.config import Config
from progression_engine.core.config.manager import ConfigManager
from progression_engine.core.logging.logger import get_logger

logger = get_logger(__name__)

# ConfigManager key -> static Config attribute used when the key is unset.
_CONFIG_FALLBACKS: dict[str, str] = {
    "core.redis.url": "REDIS_URL",
    "core.redis.password": "REDIS_PASSWORD",
    "core.redis.socket_timeout_seconds": "REDIS_SOCKET_TIMEOUT",
    "core.redis.max_connections": "REDIS_MAX_CONNECTIONS",
}


class RedisService:
    """Async Redis infrastructure service (class-level singleton)."""

    _client: Optional[AsyncRedis] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ═══════════════════════════════════════════════════════════════════════
    # LIFECYCLE MANAGEMENT
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def initialize(cls) -> None:
        """
        Create the singleton client and verify it with PING.

        Idempotent. Safe to call multiple times.

        Raises
        ------
        RuntimeError
            If the connection cannot be established.
        """
        if cls._client is not None:
            logger.debug("RedisService already initialized, skipping")
            return

        async with cls._init_lock:
            if cls._client is not None:
                return

            url = cls._get_config_str("core.redis.url", "redis://localhost:6379/0")
            password = cls._get_config_str("core.redis.password", "") or None
            socket_timeout = cls._get_config_int("core.redis.socket_timeout_seconds", 5)
            max_connections = cls._get_config_int("core.redis.max_connections", 50)
            url_scheme = url.split("://")[0] if "://" in url else "unknown"

            start_time = time.monotonic()
            client: Optional[AsyncRedis] = None
            try:
                client = AsyncRedis.from_url(
                    url,
                    password=password,
                    socket_timeout=socket_timeout,
                    encoding="utf-8",
                    decode_responses=True,
                    max_connections=max_connections,
                    health_check_interval=30,
                )
                await client.ping()  # type: ignore[misc]
            except Exception as exc:
                if client is not None:
                    await client.aclose()
                logger.critical(
                    "Failed to initialize RedisService",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "url_scheme": url_scheme,
                    },
                    exc_info=True,
                )
                raise RuntimeError(f"Failed to initialize RedisService: {exc}") from exc

            cls._client = client
            logger.info(
                "RedisService initialized successfully",
                extra={
                    "url_scheme": url_scheme,
                    "socket_timeout_seconds": socket_timeout,
                    "max_connections": max_connections,
                    "initialization_time_ms": round((time.monotonic() - start_time) * 1000, 2),
                },
            )

    @classmethod
    async def shutdown(cls) -> None:
        """Close the client. Safe to call even if not initialized."""
        client = cls._client
        cls._client = None

        if client is None:
            logger.debug("RedisService not initialized, nothing to shutdown")
            return

        try:
            await client.aclose()
            logger.info("RedisService shutdown complete")
        except RedisError as exc:
            logger.error(
                "Error during RedisService shutdown",
                extra={"error": str(exc), "error_type": type(exc).__name__},
                exc_info=True,
            )

    # ═══════════════════════════════════════════════════════════════════════
    # CLIENT ACCESS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def client(cls) -> AsyncRedis:
        """
        Return the singleton Redis client.

        Raises
        ------
        RuntimeError
            If RedisService has not been initialized.
        """
        if cls._client is None:
            raise RuntimeError(
                "RedisService not initialized. "
                "Call `await RedisService.initialize()` first."
            )
        return cls._client

    # ═══════════════════════════════════════════════════════════════════════
    # KEY-VALUE OPERATIONS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    def _log_failure(cls, operation: str, key: str, start_time: float, exc: Exception) -> None:
        logger.error(
            f"Redis {operation} operation failed",
            extra={
                "key": key,
                "latency_ms": round((time.monotonic() - start_time) * 1000, 2),
                "error": str(exc),
                "error_type": type(exc).__name__,
            },
            exc_info=True,
        )

    @classmethod
    async def get(cls, key: str) -> Optional[str]:
        """Return the string stored at `key`, or None."""
        start_time = time.monotonic()
        try:
            result = await cls.client().get(key)
        except Exception as exc:
            cls._log_failure("GET", key, start_time, exc)
            raise

        logger.debug("Redis GET operation", extra={"key": key, "found": result is not None})
        return result

    @classmethod
    async def set(
        cls,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """
        Store `value` at `key`.

        Parameters
        ----------
        ttl_seconds : Optional[int]
            Time-to-live in seconds. None uses `core.redis.default_ttl_seconds`;
            0 stores the key without expiry.
        """
        if ttl_seconds is None:
            ttl_seconds = cls._get_config_int("core.redis.default_ttl_seconds", 0)

        start_time = time.monotonic()
        try:
            result = await cls.client().set(key, value, ex=ttl_seconds or None)
        except Exception as exc:
            cls._log_failure("SET", key, start_time, exc)
            raise

        logger.debug(
            "Redis SET operation",
            extra={"key": key, "ttl_seconds": ttl_seconds, "success": bool(result)},
        )
        return bool(result)

    # ═══════════════════════════════════════════════════════════════════════
    # JSON DOCUMENTS
    # ═══════════════════════════════════════════════════════════════════════

    @classmethod
    async def get_json(cls, key: str) -> Optional[Any]:
        """
        Load and deserialize the JSON document stored at `key`.

        Raises
        ------
        ValueError
            If the stored value is not valid JSON.
        """
        raw = await cls.get(key)
        if raw is None:
            return None

        try:
            return json.loads(raw)
        except ValueError as exc:
            logger.error(
                "Failed to decode JSON value from Redis",
                extra={"key": key, "error": str(exc), "error_type": type(exc).__name__},
            )
            raise

    @classmethod
    async def set_json(
        cls,
        key: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
    ) -> bool:
        """Serialize `value` as compact JSON and store it at `key`."""
        try:
            payload = json.dumps(
                value,
                separators=(",", ":"),
                ensure_ascii=False,
            )
        except (TypeError, ValueError) as exc:
            logger.error(
                "Failed to serialize value as JSON",
                extra={
                    "key": key,
                    "value_type": type(value).__name__,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise

        return await cls.set(key, payload, ttl_seconds=ttl_seconds)

    # ═══════════════════════════════════════════════════════════════════════
    # CONFIGURATION HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    @staticmethod
    def _resolve(key: str) -> Any:
        val = ConfigManager.get(key)
        if val is not None:
            return val
        attr_name = _CONFIG_FALLBACKS.get(key)
        return getattr(Config, attr_name, None) if attr_name else None

    @classmethod
    def _get_config_str(cls, key: str, default: str) -> str:
        val = cls._resolve(key)
        return val if isinstance(val, str) else default

    @classmethod
    def _get_config_int(cls, key: str, default: int) -> int:
        val = cls._resolve(key)
        if isinstance(val, int) and not isinstance(val, bool):
            return val
        return default
