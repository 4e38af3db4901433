"""
Domain events published by the marketplace workflows.

Events are named in past tense and carry everything a subscriber needs, so
handlers only go back to the store for data that may have changed since.
"""

from typing import Optional

from workflows.event_bus import Event


class EventTypes:
    """Constants for event type names."""
    ORDER_STATUS_CHANGED = "OrderStatusChanged"


def order_status_changed(
    order_id: str,
    user_id: str,
    previous_status: str,
    new_status: str,
    message: Optional[str] = None,
    source: str = "ordering-service",
) -> Event:
    """
    Create an OrderStatusChanged event.

    Published after an order status change has been committed. `message` is the
    customer-facing text for the new status.
    """
    return Event(
        event_type=EventTypes.ORDER_STATUS_CHANGED,
        source=source,
        payload={
            "order_id": order_id,
            "user_id": user_id,
            "previous_status": previous_status,
            "new_status": new_status,
            "message": message,
        },
    )
