"""
Typed event bus for decoupled communication.

Uses Enums for event types to prevent magic strings. The save system
announces its whole lifecycle through this bus, so UI and game code can
react to saves and loads without knowing about the persistence layer.

Usage:
    event_bus.subscribe(SaveEvent.AFTER_SAVE, on_saved)
    event_bus.publish(SaveEvent.AFTER_SAVE, slot_id=3, slot=slot_ref)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable
from weakref import WeakMethod, ref

logger = logging.getLogger(__name__)


class EngineEvent(Enum):
    """Built-in runtime events."""
    GAME_START = auto()
    GAME_QUIT = auto()

    # Scene
    SCENE_CHANGE_REQUESTED = auto()
    SCENE_READY = auto()
    SUB_SCENE_ADDED = auto()
    SUB_SCENE_REMOVED = auto()


class SaveEvent(Enum):
    """Save/load lifecycle notifications."""
    BEFORE_SAVE = auto()
    AFTER_SAVE = auto()
    SAVE_FAILED = auto()
    BEFORE_LOAD = auto()
    AFTER_LOAD = auto()
    LOAD_FAILED = auto()
    BEFORE_IMPORT = auto()
    AFTER_IMPORT = auto()
    IMPORT_FAILED = auto()
    AUTO_SAVE_TRIGGERED = auto()
    PLAYER_SWITCHED = auto()


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Dictionary of event-specific data
        consumed: Whether the event has been handled
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
        """Mark event as consumed (stops propagation)."""
        self.consumed = True

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]


EventHandler = Callable[[Event], None]


@dataclass(eq=False)
class _Subscription:
    priority: int
    handler: Any
    one_shot: bool

    def resolve(self) -> EventHandler | None:
        if isinstance(self.handler, (ref, WeakMethod)):
            return self.handler()
        return self.handler


class EventBus:
    """
    Central event bus for publish/subscribe messaging.

    Features:
    - Typed events (Enum-based)
    - Priority ordering (highest first)
    - Weak references (auto-cleanup when handlers are deleted)
    - One-shot handlers
    - Event consumption (stops propagation)
    - Re-entrant publishing is queued until the current dispatch ends
    """

    def __init__(self):
        self._handlers: dict[Enum, list[_Subscription]] = {}
        self._event_queue: list[Event] = []
        self._is_publishing = False

    def subscribe(
        self,
        event_type: Enum,
        handler: EventHandler,
        priority: int = 0,
        one_shot: bool = False,
        weak: bool = True,
    ) -> None:
        """
        Subscribe to an event type.

        Args:
            event_type: The event type to listen for
            handler: Callback function(event: Event)
            priority: Higher priority handlers are called first (default 0)
            one_shot: If True, handler is removed after first call
            weak: If True, use weak reference (handler auto-removed if deleted)
        """
        if weak:
            handler_ref = WeakMethod(handler) if hasattr(handler, '__self__') else ref(handler)
        else:
            handler_ref = handler

        subscriptions = self._handlers.setdefault(event_type, [])
        entry = _Subscription(priority, handler_ref, one_shot)

        # Stable insert: equal priorities keep subscription order
        index = len(subscriptions)
        for i, existing in enumerate(subscriptions):
            if priority > existing.priority:
                index = i
                break
        subscriptions.insert(index, entry)

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        if event_type not in self._handlers:
            return
        self._handlers[event_type] = [
            s for s in self._handlers[event_type] if s.resolve() != handler
        ]

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """
        Publish an event.

        Returns:
            The Event object (check .consumed to see if it was handled)
        """
        event = Event(type=event_type, data=data)
        self.publish_event(event)
        return event

    def publish_event(self, event: Event) -> None:
        if self._is_publishing:
            self._event_queue.append(event)
        else:
            self._dispatch(event)

    def clear(self, event_type: Enum | None = None) -> None:
        """Clear handlers for one event type, or all of them."""
        if event_type is None:
            self._handlers.clear()
        else:
            self._handlers.pop(event_type, None)

    def has_subscribers(self, event_type: Enum) -> bool:
        return any(s.resolve() is not None for s in self._handlers.get(event_type, []))

    def _dispatch(self, event: Event) -> None:
        subscriptions = self._handlers.get(event.type)
        if subscriptions:
            self._is_publishing = True
            finished: list[_Subscription] = []
            try:
                for subscription in list(subscriptions):
                    handler = subscription.resolve()
                    if handler is None:
                        finished.append(subscription)
                        continue

                    try:
                        handler(event)
                    except Exception:
                        logger.exception("Error in event handler for %s", event.type)

                    if subscription.one_shot:
                        finished.append(subscription)
                    if event.consumed:
                        break
            finally:
                for subscription in finished:
                    if subscription in subscriptions:
                        subscriptions.remove(subscription)
                self._is_publishing = False

        while self._event_queue and not self._is_publishing:
            self._dispatch(self._event_queue.pop(0))
