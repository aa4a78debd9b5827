"""
Base Service Foundation

Purpose
-------
Provides the foundational class for the engine's services. Services
orchestrate domain models, enforce input rules, and publish domain events.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access with a `required` switch
- Event emission helpers

What this class does NOT do:
- Persist state (repositories do)
- Contain progression rules (domain models do)

Usage
-----
    class LeaderboardService(BaseService):
        def __init__(self, config_manager, event_bus, logger, source):
            super().__init__(config_manager, event_bus, logger)
            self._source = source
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Optional

from progression_engine.core.exceptions import ConfigurationError

if TYPE_CHECKING:
    from logging import Logger

    from progression_engine.core.config.manager import ConfigManager
    from progression_engine.core.event.bus import EventBus


class BaseService:
    """
    Base class for all engine services.

    Args:
        config_manager: Dynamic configuration (the `ConfigManager` class or a
            stand-in exposing `get(key, default)`)
        event_bus: Event bus for side-effect dispatch
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: type[ConfigManager],
        event_bus: EventBus,
        logger: Logger,
    ) -> None:
        self._config = config_manager
        self._events = event_bus
        self.log = logger

    def get_config(
        self, key: str, default: Optional[Any] = None, required: bool = False
    ) -> Any:
        """
        Retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and the key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def get_config_int(self, key: str, default: int) -> int:
        """Integer config value; a non-integer setting is rejected."""
        value = self.get_config(key, default)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(key, f"Expected an integer, got {value!r}")
        return value

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Publish an event, merging optional context into the payload."""
        await self._events.publish(event_type, {**data, **(context or {})})

    def log_operation(self, operation: str, **context: Any) -> None:
        self.log.info(
            f"Service operation: {operation}",
            extra={"operation": operation, **context},
        )

    def log_error(
        self,
        operation: str,
        error: Exception,
        **context: Any,
    ) -> None:
        self.log.error(
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                **context,
            },
        )
