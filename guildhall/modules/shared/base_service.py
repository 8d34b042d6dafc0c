"""
Base Service Foundation

Purpose
-------
Provides the foundational class for all Guildhall domain services.
Services implement business logic, open transactions through DatabaseService,
enforce guild rules and emit domain events.

Design Notes
------------
This base class provides:
- Structured logging with operation context
- Safe config access patterns
- Event emission helpers (publishing never fails the caller)

What this class does NOT do:
- Manage database transactions (that's DatabaseService's job)
- Contain guild-specific logic

Usage
-----
    class GuildRankService(BaseService):
        def __init__(self, config_manager, event_bus, logger):
            super().__init__(config_manager, event_bus, logger)

        async def list_ranks(self, session, guild_id):
            # Service logic here, using self.log, self.get_config, self.emit_event
            ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Type

from guildhall.core.exceptions import (
    ConfigurationError,
    is_transient_error,
    should_alert,
)

if TYPE_CHECKING:
    from logging import Logger

    from guildhall.core.config.manager import ConfigManager
    from guildhall.core.event.bus import EventBus


class BaseService:
    """
    Base class for all domain services.

    Args:
        config_manager: Configuration manager (class or instance exposing ``get``)
        event_bus: Event bus for cross-module communication
        logger: Structured logger instance
    """

    def __init__(
        self,
        config_manager: Type[ConfigManager],
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
        Safely retrieve a configuration value.

        Raises:
            ConfigurationError: If required=True and key is missing
        """
        value = self._config.get(key, default)
        if required and value is None:
            raise ConfigurationError(
                key, f"Required configuration key '{key}' is missing"
            )
        return value

    def get_int_config(self, key: str, default: int) -> int:
        value = self.get_config(key, default)
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(key, f"Expected an integer, got {value!r}") from exc

    async def emit_event(
        self,
        event_type: str,
        data: Dict[str, Any],
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit a domain event. Call only after the owning transaction committed.

        Listener failures are isolated by the EventBus.
        """
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
        """
        Log a service failure.

        Domain errors are expected outcomes and logged at INFO. Infrastructure
        errors that should alert are logged at ERROR with a traceback; the
        rest (timeouts) at WARNING.
        """
        from guildhall.modules.shared.exceptions import GuildhallDomainException

        if isinstance(error, GuildhallDomainException):
            level = logging.INFO
        elif should_alert(error):
            level = logging.ERROR
        else:
            level = logging.WARNING

        self.log.log(
            level,
            f"Service error during {operation}: {error}",
            extra={
                "operation": operation,
                "error_type": type(error).__name__,
                "error_message": str(error),
                "retryable": is_transient_error(error),
                **context,
            },
            exc_info=level == logging.ERROR,
        )
