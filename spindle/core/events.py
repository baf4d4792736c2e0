"""
Typed event bus for handing dialogue output to the rest of a game.

Event types are Enum members so subscribers never match on magic strings.

Usage:
    bus = EventBus()
    bus.subscribe(DialogueEvent.LINE, on_line)
    bus.publish(DialogueEvent.LINE, text="Hello there.")
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable
from weakref import WeakMethod, ref

logger = logging.getLogger(__name__)


class DialogueEvent(Enum):
    """Events published by a DialogueRunner."""
    CONVERSATION_STARTED = auto()
    LINE = auto()
    CHOICES = auto()
    CHOICE_SELECTED = auto()
    COMMAND = auto()
    CONVERSATION_ENDED = auto()


@dataclass
class Event:
    """
    Event data container.

    Attributes:
        type: The event type (Enum member)
        data: Keyword data given to publish()
        consumed: Set by a handler to stop lower-priority handlers
    """
    type: Enum
    data: dict[str, Any] = field(default_factory=dict)
    consumed: bool = False

    def consume(self) -> None:
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


class EventBus:
    """
    Publish/subscribe hub.

    Handlers run in descending priority order. Events published from inside
    a handler are queued and delivered after the current dispatch finishes.
    """

    def __init__(self):
        self._subscriptions: dict[Enum, list[_Subscription]] = {}
        self._queue: list[Event] = []
        self._dispatching = False

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
            handler: Callback taking the Event
            priority: Higher priority handlers are called first
            one_shot: Drop the handler after its first call
            weak: Hold the handler weakly so it disappears with its owner
        """
        if weak:
            target = WeakMethod(handler) if hasattr(handler, '__func__') else ref(handler)
        else:
            target = handler

        subscriptions = self._subscriptions.setdefault(event_type, [])
        position = len(subscriptions)
        for i, existing in enumerate(subscriptions):
            if priority > existing.priority:
                position = i
                break
        subscriptions.insert(position, _Subscription(priority, target, one_shot))

    def unsubscribe(self, event_type: Enum, handler: EventHandler) -> None:
        subscriptions = self._subscriptions.get(event_type)
        if not subscriptions:
            return
        self._subscriptions[event_type] = [
            s for s in subscriptions if self._resolve(s.handler) != handler
        ]

    def publish(self, event_type: Enum, **data: Any) -> Event:
        """Publish an event and return it (check .consumed afterwards)."""
        event = Event(type=event_type, data=data)
        if self._dispatching:
            self._queue.append(event)
        else:
            self._dispatch(event)
        return event

    def clear(self, event_type: Enum | None = None) -> None:
        if event_type is None:
            self._subscriptions.clear()
        else:
            self._subscriptions.pop(event_type, None)

    def _dispatch(self, event: Event) -> None:
        self._dispatching = True
        try:
            subscriptions = self._subscriptions.get(event.type, [])
            finished: list[_Subscription] = []

            for subscription in list(subscriptions):
                handler = self._resolve(subscription.handler)
                if handler is None:
                    finished.append(subscription)
                    continue

                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Error in event handler for {event.type}")

                if subscription.one_shot:
                    finished.append(subscription)
                if event.consumed:
                    break

            for subscription in finished:
                if subscription in subscriptions:
                    subscriptions.remove(subscription)
        finally:
            self._dispatching = False

        while self._queue:
            self._dispatch(self._queue.pop(0))

    @staticmethod
    def _resolve(target: Any) -> EventHandler | None:
        if isinstance(target, (ref, WeakMethod)):
            return target()
        return target
