"""
In-memory event bus.

Workflows publish events when something happened (an order changed status);
subscribers such as the notification dispatcher react to them. Publishers
don't know who is listening.

Design decisions:
- Type-based subscriptions (subscribe to event types, not topics)
- Events are delivered to all subscribers in registration order
- A handler that raises is logged and skipped; it never fails the publisher
  or the other handlers
- `enqueue` defers delivery: events wait on a pending queue until `drain` is
  called, which the HTTP layer schedules as a background task so the
  triggering request is never slowed down by its side effects
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional
from uuid import uuid4

logger = logging.getLogger("event_bus")


@dataclass
class Event:
    """
    An immutable record of something that happened.

    Attributes:
        event_id: Unique identifier for this event instance
        event_type: String name of the event type (used for routing)
        timestamp: When the event occurred
        source: Which service published the event
        payload: The event-specific data
    """
    event_type: str
    payload: dict[str, Any]
    source: str
    event_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=datetime.utcnow)

    def __str__(self) -> str:
        return f"Event({self.event_type}, id={self.event_id[:8]}, source={self.source})"


# Type alias for event handler functions
EventHandler = Callable[[Event], None]


class EventBus:
    """
    Simple in-memory event bus implementing pub/sub.

    Example usage:
        bus = EventBus()
        bus.subscribe("OrderStatusChanged", handle_order_event)

        # Deliver now
        bus.publish(event)

        # Or deliver later
        bus.enqueue(event)
        bus.drain()
    """

    def __init__(self):
        # Map of event_type -> list of handlers
        self._subscribers: dict[str, list[EventHandler]] = defaultdict(list)
        self._pending: list[Event] = []
        self._lock = threading.Lock()

    def subscribe(self, event_type: str, handler: EventHandler) -> None:
        """
        Subscribe to events of a specific type.

        Note: The same handler can be subscribed multiple times (will be called multiple times).
        """
        self._subscribers[event_type].append(handler)
        logger.debug(f"Subscribed handler to '{event_type}' events")

    def unsubscribe(self, event_type: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns:
            True if the handler was found and removed, False otherwise
        """
        try:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed handler from '{event_type}' events")
            return True
        except ValueError:
            return False

    def publish(self, event: Event) -> int:
        """
        Deliver an event to all subscribers now.

        Returns:
            Number of handlers that received the event
        """
        logger.info(f"Publishing: {event}")

        handlers = list(self._subscribers.get(event.event_type, []))
        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler raised exception for {event}: {e}")

        if not handlers:
            logger.warning(f"No handlers for event type '{event.event_type}'")

        return len(handlers)

    def enqueue(self, event: Event) -> None:
        """Queue an event for delivery by the next `drain`."""
        with self._lock:
            self._pending.append(event)
        logger.debug(f"Queued: {event}")

    def drain(self, match: Optional[Callable[[Event], bool]] = None) -> int:
        """
        Publish pending events, oldest first.

        With `match`, only the events it accepts are delivered; the rest stay
        queued for a later drain.

        Returns:
            Number of events delivered
        """
        with self._lock:
            if match is None:
                pending, self._pending = self._pending, []
            else:
                pending = [event for event in self._pending if match(event)]
                self._pending = [event for event in self._pending if not match(event)]
        for event in pending:
            self.publish(event)
        return len(pending)

    def get_pending(self) -> list[Event]:
        with self._lock:
            return self._pending.copy()

    def get_subscriber_count(self, event_type: str) -> int:
        """Get the number of subscribers for an event type."""
        return len(self._subscribers.get(event_type, []))


# Module-level singleton for convenience
_default_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the default event bus singleton."""
    global _default_bus
    if _default_bus is None:
        _default_bus = EventBus()
    return _default_bus


def reset_event_bus() -> EventBus:
    """Reset the default event bus (useful for testing)."""
    global _default_bus
    _default_bus = EventBus()
    return _default_bus
