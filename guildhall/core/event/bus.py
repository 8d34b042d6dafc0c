"""
Guildhall EventBus: async pub/sub for post-commit domain events.

Purpose
-------
Decouple guild mutations from their side effects (notifications, audit
trails, caches). Services publish after their transaction commits; anything
interested subscribes by exact name or wildcard.

Responsibilities
----------------
- Register/unregister event listeners with priorities
- Publish events to all matching listeners (exact + wildcard)
- Execute listeners:
  * CRITICAL / HIGH: sequential, in priority order
  * NORMAL: concurrent (gather)
  * every listener is bounded by the listener timeout
- Error isolation: one failing listener never blocks others and never
  fails the publishing operation

Design Decisions
----------------
- **Instance-based**: multiple EventBus instances are allowed (tests create
  their own)
- **Wildcard support**: ``guild.*`` and ``*`` patterns
- **Config-driven timeouts**: listener timeout loaded from ConfigManager
"""

from __future__ import annotations

import asyncio
import inspect
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from guildhall.core.config.manager import ConfigManager
from guildhall.core.logging.logger import get_logger

logger = get_logger(__name__)

EventPayload = Dict[str, Any]
CallbackType = Callable[[EventPayload], Union[Any, Awaitable[Any]]]


class ListenerPriority(Enum):
    """Execution tier. Lower value runs first."""

    CRITICAL = 0
    HIGH = 1
    NORMAL = 2


@dataclass(slots=True, frozen=True)
class EventListener:
    """Immutable listener registration."""

    event_name: str
    callback: CallbackType
    priority: ListenerPriority
    identifier: str
    once: bool = False

    @classmethod
    def from_callback(
        cls,
        event_name: str,
        callback: CallbackType,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> "EventListener":
        if identifier is None:
            name = getattr(callback, "__qualname__", None) or repr(callback)
            identifier = f"{name}:{uuid.uuid4().hex[:8]}"
        return cls(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )


def matches(event_name: str, pattern: str) -> bool:
    """
    Check an event name against an exact name or a ``*`` wildcard pattern.

    >>> matches("guild.created", "guild.*")
    True
    >>> matches("guild.created", "*.created")
    True
    >>> matches("guild.created", "player.*")
    False
    """
    if pattern == "*":
        return True
    if "*" not in pattern:
        return event_name == pattern

    parts = pattern.split("*")
    if not event_name.startswith(parts[0]):
        return False
    if parts[-1] and not event_name.endswith(parts[-1]):
        return False

    position = len(parts[0])
    for middle in parts[1:-1]:
        if not middle:
            continue
        found = event_name.find(middle, position)
        if found == -1:
            return False
        position = found + len(middle)

    return len(event_name) - len(parts[-1]) >= position


class EventBus:
    """
    In-process EventBus.

    Examples
    --------
    >>> bus = EventBus()
    >>> bus.subscribe("guild.created", on_guild_created)
    >>> await bus.publish("guild.created", {"guild_id": 1, "name": "Ravens"})
    """

    def __init__(self, *, listener_timeout_seconds: Optional[float] = None) -> None:
        self._listeners: Dict[str, List[EventListener]] = {}
        self._publish_count: int = 0
        self._error_count: int = 0

        if listener_timeout_seconds is None:
            listener_timeout_seconds = float(
                ConfigManager.get("core.event.listener_timeout_seconds", 5.0)
            )
        self._listener_timeout = listener_timeout_seconds

    # ------------------------------------------------------------------ #
    # Subscription API
    # ------------------------------------------------------------------ #

    @staticmethod
    def _validate_callback_signature(callback: CallbackType) -> None:
        """Reject callbacks that do not accept exactly one payload argument."""
        try:
            sig = inspect.signature(callback)
        except (TypeError, ValueError):
            return

        params = list(sig.parameters.values())
        if len(params) != 1:
            callback_name = getattr(callback, "__qualname__", repr(callback))
            raise ValueError(
                f"Event listener must accept exactly 1 parameter (EventPayload), "
                f"got {len(params)} parameters for '{callback_name}'"
            )

    def subscribe(
        self,
        event_name: str,
        callback: CallbackType,
        *,
        priority: ListenerPriority = ListenerPriority.NORMAL,
        identifier: Optional[str] = None,
        once: bool = False,
    ) -> str:
        """
        Subscribe a callback to an event name or wildcard pattern.

        Returns:
            The listener identifier, for unsubscribe().

        Raises:
            ValueError: If the callback signature is invalid.
        """
        self._validate_callback_signature(callback)

        listener = EventListener.from_callback(
            event_name=event_name,
            callback=callback,
            priority=priority,
            identifier=identifier,
            once=once,
        )
        self._listeners.setdefault(event_name, []).append(listener)

        logger.debug(
            "EventBus: subscribed listener",
            extra={
                "event_name": event_name,
                "listener_id": listener.identifier,
                "priority": listener.priority.name,
            },
        )
        return listener.identifier

    def unsubscribe(self, event_name: str, identifier: str) -> bool:
        listeners = self._listeners.get(event_name, [])
        remaining = [lst for lst in listeners if lst.identifier != identifier]
        removed = len(remaining) != len(listeners)

        if remaining:
            self._listeners[event_name] = remaining
        else:
            self._listeners.pop(event_name, None)

        if removed:
            logger.debug(
                "EventBus: unsubscribed listener",
                extra={"event_name": event_name, "listener_id": identifier},
            )
        return removed

    def clear(self) -> None:
        total = sum(len(v) for v in self._listeners.values())
        self._listeners.clear()
        logger.info(
            "EventBus: cleared all listeners",
            extra={"previous_listener_count": total},
        )

    def _extract_listeners(self, event_name: str) -> List[EventListener]:
        """Collect matching listeners, pruning once=True registrations."""
        selected: List[EventListener] = []
        for pattern in list(self._listeners):
            if not matches(event_name, pattern):
                continue
            for listener in self._listeners[pattern]:
                selected.append(listener)
            once_ids = {lst.identifier for lst in self._listeners[pattern] if lst.once}
            for once_id in once_ids:
                self.unsubscribe(pattern, once_id)

        selected.sort(key=lambda lst: lst.priority.value)
        return selected

    # ------------------------------------------------------------------ #
    # Publish API
    # ------------------------------------------------------------------ #

    async def publish(self, event_name: str, data: EventPayload) -> List[Any]:
        """
        Publish an event to every matching listener.

        Returns:
            Listener results in execution order; failed listeners yield None.
        """
        self._publish_count += 1

        listeners = self._extract_listeners(event_name)
        logger.debug(
            "EventBus: publishing event",
            extra={
                "event_name": event_name,
                "payload_keys": list(data.keys()),
                "listener_count": len(listeners),
            },
        )
        if not listeners:
            return []

        results: List[Any] = []

        ordered = [lst for lst in listeners if lst.priority != ListenerPriority.NORMAL]
        for listener in ordered:
            results.append(
                await self._run_listener(listener, event_name, data)
            )

        concurrent = [lst for lst in listeners if lst.priority == ListenerPriority.NORMAL]
        if concurrent:
            results.extend(
                await asyncio.gather(
                    *(self._run_listener(lst, event_name, data) for lst in concurrent)
                )
            )

        return results

    async def _run_listener(
        self,
        listener: EventListener,
        event_name: str,
        payload: EventPayload,
    ) -> Any:
        """Run one listener under the timeout; failures and timeouts yield None."""
        try:
            if inspect.iscoroutinefunction(listener.callback):
                call = listener.callback(payload)
            else:
                loop = asyncio.get_running_loop()
                call = loop.run_in_executor(None, listener.callback, payload)

            return await asyncio.wait_for(call, timeout=self._listener_timeout)

        except Exception as exc:
            self._error_count += 1
            logger.error(
                "EventBus: listener failed",
                extra={
                    "event_name": event_name,
                    "listener_id": listener.identifier,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            return None

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    def get_listener_count(self, event_name: Optional[str] = None) -> int:
        if event_name is None:
            return sum(len(v) for v in self._listeners.values())
        return len(self._listeners.get(event_name, []))

    def get_stats(self) -> Dict[str, int]:
        return {
            "listeners": self.get_listener_count(),
            "published": self._publish_count,
            "listener_errors": self._error_count,
        }
