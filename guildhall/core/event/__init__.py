"""
Event system for Guildhall.

Provides the in-process EventBus used to publish guild domain events after
their transaction commits.
"""

from .bus import (
    CallbackType,
    EventBus,
    EventListener,
    EventPayload,
    ListenerPriority,
)

__all__ = [
    "EventBus",
    "EventPayload",
    "ListenerPriority",
    "EventListener",
    "CallbackType",
]
