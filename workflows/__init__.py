"""
Marketplace workflows.

- Ordering publishes OrderStatusChanged when an order moves through its lifecycle
- The notification dispatcher subscribes and pushes the update to the owner
- Push-token leases are issued, renewed and swept independently of both
"""

from workflows.event_bus import Event, EventBus, get_event_bus, reset_event_bus
from workflows.notification_dispatcher import NotificationDispatcher
from workflows.services.ordering import OrderingService
from workflows.services.push_tokens import PushTokenService

__all__ = [
    "Event",
    "EventBus",
    "get_event_bus",
    "reset_event_bus",
    "NotificationDispatcher",
    "OrderingService",
    "PushTokenService",
]
