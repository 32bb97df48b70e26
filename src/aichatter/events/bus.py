"""Event bus used by stores to fan change notifications out to subscribers.

Usage:
    bus = EventBus()

    async def on_insert(event):
        print(event.data["record"])

    bus.subscribe("message.inserted", on_insert)
    await bus.publish("message.inserted", {"record": message})
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)

MESSAGE_INSERTED = "message.inserted"


@dataclass
class Event:
    """Event data container."""

    name: str
    data: dict[str, Any]
    source: str | None = None


class EventBus:
    """Simple publish/subscribe hub.

    Handler failures are logged and do not stop delivery to other handlers.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable]] = {}

    def subscribe(self, event_name: str, handler: Callable) -> None:
        """Subscribe to an event.

        Args:
            event_name: Event to listen for (e.g., "message.inserted")
            handler: Sync or async function called with the Event
        """
        self._subscribers.setdefault(event_name, []).append(handler)
        LOGGER.debug("Subscribed to event: %s", event_name)

    def unsubscribe(self, event_name: str, handler: Callable) -> None:
        """Unsubscribe from an event; unknown handlers are ignored."""
        if event_name in self._subscribers:
            try:
                self._subscribers[event_name].remove(handler)
                LOGGER.debug("Unsubscribed from event: %s", event_name)
            except ValueError:
                pass

    def subscriber_count(self, event_name: str) -> int:
        return len(self._subscribers.get(event_name, []))

    async def publish(
        self, event_name: str, data: dict[str, Any], source: str | None = None
    ) -> None:
        """Publish an event to all subscribers.

        Args:
            event_name: Event name
            data: Event data
            source: Optional source identifier
        """
        event = Event(name=event_name, data=data, source=source)
        # Copy so handlers may unsubscribe while being notified.
        handlers = list(self._subscribers.get(event_name, []))

        if not handlers:
            LOGGER.debug("No subscribers for event: %s", event_name)
            return

        for handler in handlers:
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                LOGGER.error("Event handler failed for %s: %s", event_name, e)

    def clear(self, event_name: str | None = None) -> None:
        """Clear subscribers for one event, or all of them."""
        if event_name:
            self._subscribers.pop(event_name, None)
        else:
            self._subscribers.clear()
