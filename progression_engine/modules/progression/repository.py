"""
Progression persistence.

Purpose
-------
Store and retrieve per-user progression snapshots (the flat dicts produced by
`ProgressionState.to_snapshot()`), keyed by user id.

Design Notes
------------
- Repositories are pure data access: no progression rules, no event
  dispatch, and no retries.
- Storage failures are raised as `PersistenceError` (chained to the cause);
  `ProgressionService` decides how to degrade.
- Backends:
  - `InMemoryProgressionRepository`: process-local, JSON-encodes each snapshot
    so stored values never alias live state. Used for tests and single-process
    hosts.
  - `RedisProgressionRepository`: JSON documents under
    `"{key_prefix}{user_id}"` via `RedisService`.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from progression_engine.core.exceptions import PersistenceError
from progression_engine.core.logging.logger import get_logger

if TYPE_CHECKING:
    from progression_engine.core.config.manager import ConfigManager
    from progression_engine.core.redis.service import RedisService

logger = get_logger(__name__)

Snapshot = Dict[str, Any]


class ProgressionRepository(Protocol):
    """Storage contract for progression snapshots."""

    async def load(self, user_id: str) -> Optional[Snapshot]:
        """Return the stored snapshot, or None if the user has none."""
        ...

    async def save(self, user_id: str, snapshot: Snapshot) -> None:
        """Replace the stored snapshot (last writer wins)."""
        ...


class InMemoryProgressionRepository:
    """Process-local snapshot store."""

    def __init__(self) -> None:
        self._documents: Dict[str, str] = {}
        self.load_count = 0
        self.save_count = 0

    async def load(self, user_id: str) -> Optional[Snapshot]:
        self.load_count += 1
        raw = self._documents.get(user_id)
        if raw is None:
            return None
        try:
            document = json.loads(raw)
        except ValueError as exc:
            raise PersistenceError("load", user_id, exc) from exc

        if not isinstance(document, dict):
            raise PersistenceError(
                "load",
                user_id,
                TypeError(f"expected a JSON object, got {type(document).__name__}"),
            )
        return document

    async def save(self, user_id: str, snapshot: Snapshot) -> None:
        try:
            raw = json.dumps(snapshot, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise PersistenceError("save", user_id, exc) from exc

        self._documents[user_id] = raw
        self.save_count += 1
        logger.debug(
            "Progression snapshot stored in memory",
            extra={"user_id": user_id, "bytes": len(raw)},
        )

    def stored(self, user_id: str) -> Optional[Snapshot]:
        """Decoded copy of what is currently stored for `user_id`."""
        raw = self._documents.get(user_id)
        return json.loads(raw) if raw is not None else None

    def put_raw(self, user_id: str, raw: str) -> None:
        """Store an arbitrary document for `user_id`, bypassing encoding."""
        self._documents[user_id] = raw


class RedisProgressionRepository:
    """
    Redis-backed snapshot store.

    Args:
        redis: `RedisService` (or a stand-in with `get_json`/`set_json`)
        config_manager: Source of `progression.storage.key_prefix` and
            `progression.storage.ttl_seconds`
    """

    def __init__(
        self,
        redis: type[RedisService],
        config_manager: type[ConfigManager],
    ) -> None:
        self._redis = redis
        self._key_prefix = str(config_manager.get("progression.storage.key_prefix", "gamification_"))
        self._ttl_seconds = int(config_manager.get("progression.storage.ttl_seconds", 0))

    def key_for(self, user_id: str) -> str:
        return f"{self._key_prefix}{user_id}"

    async def load(self, user_id: str) -> Optional[Snapshot]:
        try:
            document = await self._redis.get_json(self.key_for(user_id))
        except Exception as exc:
            raise PersistenceError("load", user_id, exc) from exc

        if document is not None and not isinstance(document, dict):
            raise PersistenceError(
                "load",
                user_id,
                TypeError(f"expected a JSON object, got {type(document).__name__}"),
            )
        return document

    async def save(self, user_id: str, snapshot: Snapshot) -> None:
        try:
            await self._redis.set_json(
                self.key_for(user_id),
                snapshot,
                ttl_seconds=self._ttl_seconds,
            )
        except Exception as exc:
            raise PersistenceError("save", user_id, exc) from exc
