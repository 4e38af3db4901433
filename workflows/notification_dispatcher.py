"""
Notification dispatcher.

Turns a trigger (new artwork, new art material, order status change) into one
stored Notification record plus push messages to the right devices:
- promotions go to every user holding a push token
- order updates go only to the order's owner, if they hold a token

Design decisions:
- The Notification record is written before any push is attempted, so the
  in-app notification list is complete even when the gateway is down
- Delivery is best effort: gateway failures and error tickets are logged and
  counted, never raised to the caller
- Order updates arrive as OrderStatusChanged events; the ordering service
  never calls the dispatcher directly
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from shared.data_store import DataStore, get_data_store
from shared.errors import GatewayError, NotFoundError
from shared.models import (
    CATALOG_MODELS,
    ArtMaterial,
    Artwork,
    CatalogItem,
    Notification,
    NotificationType,
    ProductType,
    User,
)
from shared.push_gateway import PushGateway, PushMessage, MockPushGateway, mask_token
from shared.templates import (
    DEFAULT_ORDER_MESSAGE,
    NotificationTrigger,
    format_price,
    render_notification,
)
from workflows.event_bus import Event, EventBus, get_event_bus
from workflows.events import EventTypes

logger = logging.getLogger("notification_dispatcher")


PROMOTION_TRIGGERS = {
    ProductType.ARTWORK: (NotificationTrigger.ARTWORK_PROMOTION, NotificationType.ARTWORK),
    ProductType.ARTMAT: (NotificationTrigger.ARTMAT_PROMOTION, NotificationType.ARTMAT),
}

DESCRIPTION_EXCERPT_LENGTH = 50


@dataclass
class DispatchResult:
    """What happened when a notification was dispatched."""
    notification: Notification
    recipient_count: int = 0
    delivered: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)


class NotificationDispatcher:
    """
    Composes, records and fans out notifications.

    Example:
        dispatcher = NotificationDispatcher(event_bus, data_store, gateway)
        dispatcher.start()  # react to OrderStatusChanged events

        dispatcher.promote(ProductType.ARTWORK, "art-001")
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        data_store: Optional[DataStore] = None,
        gateway: Optional[PushGateway] = None,
    ):
        self.event_bus = event_bus or get_event_bus()
        self.data_store = data_store or get_data_store()
        self.gateway = gateway or MockPushGateway()
        self._started = False

    def start(self) -> None:
        """Subscribe to order events."""
        if self._started:
            logger.warning("NotificationDispatcher already started")
            return
        self.event_bus.subscribe(
            EventTypes.ORDER_STATUS_CHANGED,
            self._handle_order_status_changed,
        )
        self._started = True
        logger.info("NotificationDispatcher started - subscribed to order events")

    def stop(self) -> None:
        if not self._started:
            return
        self.event_bus.unsubscribe(
            EventTypes.ORDER_STATUS_CHANGED,
            self._handle_order_status_changed,
        )
        self._started = False
        logger.info("NotificationDispatcher stopped")

    # =========================================================================
    # Event Handlers
    # =========================================================================

    def _handle_order_status_changed(self, event: Event) -> None:
        payload = event.payload
        order_id = payload["order_id"]
        logger.info(f"Handling OrderStatusChanged: order={order_id}, status={payload['new_status']}")
        try:
            self.notify_order_update(
                order_id,
                status=payload["new_status"],
                message=payload.get("message"),
            )
        except Exception as e:
            # A failed notification must never surface as a failed status update
            logger.error(f"Error sending order update notification for {order_id}: {e}")

    # =========================================================================
    # Triggers
    # =========================================================================

    def promote(self, product_type: ProductType, item_id: str) -> DispatchResult:
        """
        Announce a catalog item to every user holding a push token.

        Raises:
            NotFoundError: If the item does not exist
        """
        product_type = ProductType(product_type)
        item = self.data_store.get_catalog_item(product_type, item_id)
        if item is None:
            raise NotFoundError(f"{CATALOG_MODELS[product_type].label} not found")

        trigger, notification_type = PROMOTION_TRIGGERS[product_type]
        title, body = render_notification(trigger, **self._promotion_context(item))
        data = {"type": notification_type.value, "id": item.id}

        notification = self._record(title, body, notification_type, data)
        recipients = self.data_store.get_users_with_push_token()

        logger.info(f"Promoting {product_type.value} to {len(recipients)} users: {item.display_name}")
        return self._deliver(notification, recipients, title, body, data)

    def promote_artwork(self, artwork_id: str) -> DispatchResult:
        return self.promote(ProductType.ARTWORK, artwork_id)

    def promote_artmat(self, artmat_id: str) -> DispatchResult:
        return self.promote(ProductType.ARTMAT, artmat_id)

    def notify_order_update(
        self,
        order_id: str,
        status: Optional[str] = None,
        message: Optional[str] = None,
    ) -> DispatchResult:
        """
        Tell an order's owner that their order changed.

        Raises:
            NotFoundError: If the order does not exist
        """
        order = self.data_store.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found")

        status = status or order.order_status
        body = message or DEFAULT_ORDER_MESSAGE.format(order_id=order.id, status=status)
        title, body = render_notification(
            NotificationTrigger.ORDER_UPDATE,
            order_id=order.id,
            message=body,
        )
        data = {"type": NotificationType.ORDER.value, "id": order.id}
        notification = self._record(title, body, NotificationType.ORDER, data)

        owner = self.data_store.get_user(order.user)
        if owner is None or not owner.push_token:
            logger.info(f"Order update for {order.id} saved but push not sent (no valid recipient)")
            return DispatchResult(notification=notification)

        logger.info(f"Sending order update notification to user {owner.id}")
        return self._deliver(notification, [owner], title, body, data)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _promotion_context(self, item: CatalogItem) -> dict[str, Any]:
        if isinstance(item, Artwork):
            return {
                "title": item.title,
                "artist": item.artist,
                "price": format_price(item.price),
            }
        if isinstance(item, ArtMaterial):
            return {
                "name": item.name,
                "description_excerpt": item.description[:DESCRIPTION_EXCERPT_LENGTH],
            }
        raise TypeError(f"Unsupported catalog item: {type(item).__name__}")

    def _record(
        self,
        title: str,
        message: str,
        notification_type: NotificationType,
        data: dict[str, Any],
    ) -> Notification:
        notification = Notification(
            title=title,
            message=message,
            data=data,
            notification_type=notification_type,
        )
        self.data_store.add_notification(notification)
        return notification

    def _deliver(
        self,
        notification: Notification,
        recipients: list[User],
        title: str,
        body: str,
        data: dict[str, Any],
    ) -> DispatchResult:
        """Send one message per recipient in gateway-sized batches. Never raises."""
        result = DispatchResult(notification=notification, recipient_count=len(recipients))
        messages = [
            PushMessage(to=user.push_token, title=title, body=body, data=data)
            for user in recipients
            if user.push_token
        ]

        for chunk in self.gateway.chunk_messages(messages):
            try:
                tickets = self.gateway.send_chunk(chunk)
            except GatewayError as e:
                logger.error(f"Push batch of {len(chunk)} failed: {e.message}")
                result.failed += len(chunk)
                result.errors.append(e.message)
                continue

            for ticket in tickets:
                if ticket.ok:
                    result.delivered += 1
                else:
                    result.failed += 1
                    result.errors.append(f"{mask_token(ticket.to)}: {ticket.message}")

        logger.info(
            f"Notification {notification.id} dispatched: "
            f"{result.delivered} delivered, {result.failed} failed"
        )
        return result
