"""
Push notification templates.

Each trigger has one title/body pair with {variable} placeholders. The same
rendered text is stored as the Notification record and sent as the push
message, so what a user sees in the notification list matches the push.

Order status changes additionally use a per-status message, which becomes the
body of the order-update notification.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from shared.models import OrderStatus


class NotificationTrigger(str, Enum):
    """Business events that produce a notification."""
    ARTWORK_PROMOTION = "artwork_promotion"
    ARTMAT_PROMOTION = "artmat_promotion"
    ORDER_UPDATE = "order_update"


@dataclass
class PushTemplate:
    """A title/body pair for one trigger."""
    trigger: NotificationTrigger
    title: str
    body: str

    def render(self, **kwargs) -> tuple[str, str]:
        """
        Render the template with provided variables.

        Returns:
            Tuple of (title, body)
        """
        return self.title.format(**kwargs), self.body.format(**kwargs)


# =============================================================================
# Template Definitions
# =============================================================================

TEMPLATES: dict[NotificationTrigger, PushTemplate] = {
    NotificationTrigger.ARTWORK_PROMOTION: PushTemplate(
        trigger=NotificationTrigger.ARTWORK_PROMOTION,
        title="New Artwork: {title}",
        body='Discover "{title}" by {artist}, now available for ₱{price}',
    ),
    NotificationTrigger.ARTMAT_PROMOTION: PushTemplate(
        trigger=NotificationTrigger.ARTMAT_PROMOTION,
        title="New Art Material: {name}",
        body="Check out our new {name} - {description_excerpt}...",
    ),
    NotificationTrigger.ORDER_UPDATE: PushTemplate(
        trigger=NotificationTrigger.ORDER_UPDATE,
        title="Order Update: #{order_id}",
        body="{message}",
    ),
}


ORDER_STATUS_MESSAGES: dict[OrderStatus, str] = {
    OrderStatus.PROCESSING: (
        "Your order #{short_id} is now being processed. We'll update you when it ships!"
    ),
    OrderStatus.SHIPPED: (
        "Great news! Your order #{short_id} has shipped and is on its way to you."
    ),
    OrderStatus.DELIVERED: (
        "Your order #{short_id} has been delivered. Enjoy your art supplies!"
    ),
    OrderStatus.CANCELLED: (
        "Your order #{short_id} has been cancelled. Please contact support for more information."
    ),
}

DEFAULT_ORDER_MESSAGE = "Your order #{order_id} has been updated to: {status}"

# Sent by the token cleanup sweep to prove a device is still registered
TOKEN_PROBE_BODY = "Token validation check"
TOKEN_PROBE_DATA = {"type": "silent_validation"}


# =============================================================================
# Template Access Functions
# =============================================================================

def get_template(trigger: NotificationTrigger) -> Optional[PushTemplate]:
    """Get a template by trigger."""
    return TEMPLATES.get(trigger)


def render_notification(trigger: NotificationTrigger, **context) -> tuple[str, str]:
    """
    Render the title and body for a trigger.

    Raises:
        ValueError: If no template exists for the trigger
    """
    template = get_template(trigger)
    if not template:
        raise ValueError(f"No template found for trigger: {trigger}")
    return template.render(**context)


def order_status_message(order_id: str, status: str) -> str:
    """Customer-facing message for an order moving into `status`."""
    short_id = order_id[-6:]
    try:
        template = ORDER_STATUS_MESSAGES[OrderStatus(status)]
    except ValueError:
        return DEFAULT_ORDER_MESSAGE.format(order_id=short_id, status=status)
    return template.format(short_id=short_id)


def format_price(value: float) -> str:
    """Whole amounts without decimals, everything else to the cent."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}"
