"""
Ordering service: order creation and the order lifecycle.

Responsibilities:
- create orders from prebuilt lines or from cart contents (pricing included)
- move orders through Processing -> Shipped -> Delivered, or to Cancelled
- reconcile catalog availability when an order is confirmed
- publish OrderStatusChanged so the notification dispatcher can tell the user

Consistency model:
- The order and the catalog items it touches are separate documents. Stock
  checks for every line run before any catalog write, so an insufficient
  stock failure leaves everything untouched.
- Catalog writes happen before the order write. If the order write fails, the
  catalog writes are restored from the values read during planning.
- Nothing locks catalog items between planning and writing; two orders
  confirmed at the same moment can both pass the stock check.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from math import ceil
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from shared.data_store import DataStore, get_data_store
from shared.errors import ForbiddenError, NotFoundError, OrderStateError, ValidationError
from shared.models import (
    PAYMENT_PAID,
    CartItem,
    Order,
    OrderLine,
    OrderStatus,
    PaymentInfo,
    ProductType,
    ShippingInfo,
    User,
)
from shared.templates import order_status_message
from workflows.event_bus import EventBus, get_event_bus
from workflows.events import order_status_changed

logger = logging.getLogger("ordering_service")


TAX_RATE = 0.10
FREE_SHIPPING_THRESHOLD = 100
FLAT_SHIPPING_FEE = 15

# Forward order of the lifecycle; Cancelled sits outside it
STATUS_RANK = {
    OrderStatus.PROCESSING: 0,
    OrderStatus.SHIPPED: 1,
    OrderStatus.DELIVERED: 2,
}

LineInput = Union[OrderLine, dict[str, Any]]


@dataclass
class PriceBreakdown:
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float


@dataclass
class CatalogWrite:
    """One planned reconciliation write and the values it replaces."""
    product_type: ProductType
    product_id: str
    updates: dict[str, Any]
    previous: dict[str, Any]


def calculate_prices(lines: list[OrderLine]) -> PriceBreakdown:
    """
    Price a list of order lines.

    Tax is 10% of the items total; shipping is free strictly above 100 and a
    flat 15 otherwise.
    """
    items_price = round(sum(line.line_total for line in lines), 2)
    tax_price = round(items_price * TAX_RATE, 2)
    shipping_price = 0 if items_price > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_FEE
    total_price = round(items_price + tax_price + shipping_price, 2)
    return PriceBreakdown(
        items_price=items_price,
        tax_price=tax_price,
        shipping_price=shipping_price,
        total_price=total_price,
    )


class OrderingService:
    """
    Order workflow engine.

    Example:
        service = OrderingService(event_bus, data_store)
        order = service.create_order_from_cart(user_id, cart_items, shipping_info)
        service.update_order(order.id, status="Shipped")
        event_bus.drain()  # the dispatcher notifies the user
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        data_store: Optional[DataStore] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.event_bus = event_bus or get_event_bus()
        self.data_store = data_store or get_data_store()
        self.clock = clock

    # =========================================================================
    # Creation
    # =========================================================================

    def create_order(
        self,
        user_id: str,
        order_items: list[LineInput],
        shipping_info: Union[ShippingInfo, dict[str, Any]],
        payment_info: Union[PaymentInfo, dict[str, Any], None] = None,
        items_price: float = 0.0,
        tax_price: float = 0.0,
        shipping_price: float = 0.0,
        total_price: float = 0.0,
    ) -> Order:
        """
        Store an order exactly as submitted.

        No stock changes here; those happen when the order is confirmed.

        Raises:
            ValidationError: If required fields are missing or malformed
        """
        try:
            order = Order(
                user=user_id,
                order_items=order_items,
                shipping_info=shipping_info,
                payment_info=payment_info or PaymentInfo(),
                items_price=items_price,
                tax_price=tax_price,
                shipping_price=shipping_price,
                total_price=total_price,
                paid_at=self.clock(),
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        self.data_store.save_order(order)
        logger.info(f"Order {order.id} created for user {user_id}: total {order.total_price}")
        return order

    def create_order_from_cart(
        self,
        user_id: str,
        cart_items: list[Union[CartItem, dict[str, Any]]],
        shipping_info: Union[ShippingInfo, dict[str, Any]],
        payment_info: Union[PaymentInfo, dict[str, Any], None] = None,
    ) -> Order:
        """
        Build and store an order from cart contents.

        Unit prices and display fields are read from the catalog now; the
        read is not locked against concurrent catalog edits.

        Raises:
            ValidationError: If the cart is empty or a line is malformed
            NotFoundError: If a referenced catalog item does not exist
        """
        if not cart_items:
            raise ValidationError("No items in cart")

        try:
            parsed = [
                item if isinstance(item, CartItem) else CartItem(**item)
                for item in cart_items
            ]
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        lines = []
        for cart_item in parsed:
            product = self.data_store.get_catalog_item(cart_item.product_type, cart_item.product)
            if product is None:
                raise NotFoundError(f"No {cart_item.product_type} found with ID {cart_item.product}")
            lines.append(product.snapshot(cart_item.quantity))

        prices = calculate_prices(lines)
        return self.create_order(
            user_id,
            lines,
            shipping_info,
            payment_info,
            items_price=prices.items_price,
            tax_price=prices.tax_price,
            shipping_price=prices.shipping_price,
            total_price=prices.total_price,
        )

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def update_order(
        self,
        order_id: str,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        actor: Optional[User] = None,
    ) -> Order:
        """
        Change an order's payment status and/or lifecycle status.

        A status change to anything but Cancelled reconciles stock for every
        line first; if that fails nothing is written. After a committed status
        change an OrderStatusChanged event is queued on the event bus.

        Args:
            order_id: The order to update
            status: Requested lifecycle status
            payment_status: Requested payment status ("paid" sets paidAt)
            actor: The requesting user; non-admins may only cancel their own order

        Raises:
            NotFoundError: If the order or a referenced catalog item is missing
            OrderStateError: If the order is delivered or the transition is not allowed
            InsufficientStockError: If a material line exceeds current stock
            ForbiddenError: If a non-admin asks for anything but cancelling their order
        """
        order = self.data_store.get_order(order_id)
        if order is None:
            raise NotFoundError("No order found with this ID")

        if order.is_delivered():
            raise OrderStateError("You have already delivered this order")

        new_status = self._parse_status(status)
        if actor is not None and not actor.is_admin():
            self._check_owner_request(order, actor, new_status, payment_status)

        now = self.clock()

        if payment_status:
            order.payment_info.status = payment_status
            order.paid_at = now if payment_status == PAYMENT_PAID else None

        previous_status = order.order_status
        status_changed = new_status is not None and new_status != previous_status
        writes: list[CatalogWrite] = []

        if status_changed:
            self._check_transition(previous_status, new_status)
            if new_status != OrderStatus.CANCELLED:
                writes = self._plan_reconciliation(order)
                self._apply(writes)

            order.order_status = new_status
            if new_status == OrderStatus.DELIVERED:
                order.delivered_at = now
                order.payment_info.status = PAYMENT_PAID
                order.paid_at = now

        try:
            self.data_store.save_order(order)
        except Exception:
            logger.error(f"Saving order {order.id} failed, restoring {len(writes)} catalog writes")
            self._restore(writes)
            raise

        if status_changed:
            logger.info(f"Order {order.id}: {previous_status} -> {new_status}")
            self.event_bus.enqueue(order_status_changed(
                order_id=order.id,
                user_id=order.user,
                previous_status=previous_status,
                new_status=new_status,
                message=order_status_message(order.id, new_status),
            ))

        return order

    def _parse_status(self, status: Optional[str]) -> Optional[str]:
        if not status:
            return None
        try:
            return OrderStatus(status).value
        except ValueError:
            allowed = ", ".join(s.value for s in OrderStatus)
            raise ValidationError(f"Invalid order status '{status}'. Expected one of: {allowed}")

    def _check_owner_request(
        self,
        order: Order,
        actor: User,
        new_status: Optional[str],
        payment_status: Optional[str],
    ) -> None:
        if order.user != actor.id:
            raise ForbiddenError("You can only update your own orders")
        if payment_status or (new_status is not None and new_status != OrderStatus.CANCELLED):
            raise ForbiddenError("Only administrators can change this order")

    def _check_transition(self, current: str, new: str) -> None:
        if current == OrderStatus.CANCELLED:
            raise OrderStateError("Cancelled orders cannot be reopened")
        if new == OrderStatus.CANCELLED:
            return
        if STATUS_RANK[OrderStatus(new)] < STATUS_RANK[OrderStatus(current)]:
            raise OrderStateError(f"Cannot move order from {current} back to {new}")

    # =========================================================================
    # Stock reconciliation
    # =========================================================================

    def _plan_reconciliation(self, order: Order) -> list[CatalogWrite]:
        """
        Work out every catalog write before making any.

        Lines for the same item are summed, so two lines of one material are
        checked against stock together.

        Raises:
            NotFoundError, InsufficientStockError
        """
        quantities: dict[tuple[str, str], int] = {}
        for line in order.order_items:
            key = (line.product_type, line.product)
            quantities[key] = quantities.get(key, 0) + line.quantity

        writes = []
        for (product_type, product_id), quantity in quantities.items():
            item = self.data_store.get_catalog_item(product_type, product_id)
            if item is None:
                raise NotFoundError(f"No {product_type} found with this ID: {product_id}")
            updates = item.reconciliation_update(quantity)
            writes.append(CatalogWrite(
                product_type=ProductType(product_type),
                product_id=product_id,
                updates=updates,
                previous={name: getattr(item, name) for name in updates},
            ))
        return writes

    def _apply(self, writes: list[CatalogWrite]) -> None:
        for write in writes:
            self.data_store.update_catalog_fields(write.product_type, write.product_id, write.updates)
            logger.info(f"Reconciled {write.product_type.value} {write.product_id}: {write.updates}")

    def _restore(self, writes: list[CatalogWrite]) -> None:
        for write in reversed(writes):
            self.data_store.update_catalog_fields(write.product_type, write.product_id, write.previous)
            logger.warning(f"Restored {write.product_type.value} {write.product_id}: {write.previous}")

    # =========================================================================
    # Queries
    # =========================================================================

    def get_order(self, order_id: str, actor: Optional[User] = None) -> Order:
        """
        Raises:
            NotFoundError: If the order does not exist
            ForbiddenError: If a non-admin actor does not own the order
        """
        order = self.data_store.get_order(order_id)
        if order is None:
            raise NotFoundError("No order found with this ID")
        if actor is not None and not actor.is_admin() and order.user != actor.id:
            raise ForbiddenError("You can only view your own orders")
        return order

    def get_user_orders(self, user_id: str) -> tuple[list[Order], float]:
        """A user's orders and the sum of their totals."""
        orders = self.data_store.get_orders_by_user(user_id)
        return orders, round(sum(o.total_price for o in orders), 2)

    def list_orders(self, page: int = 1, limit: int = 10) -> dict[str, Any]:
        """One page of all orders, newest first, plus the grand total."""
        page = max(page, 1)
        limit = max(limit, 1)
        orders = self.data_store.get_orders()
        start = (page - 1) * limit
        return {
            "orders": orders[start:start + limit],
            "total_amount": round(sum(o.total_price for o in orders), 2),
            "pagination": {
                "total": len(orders),
                "pages": ceil(len(orders) / limit),
                "page": page,
                "limit": limit,
            },
        }

    def delete_order(self, order_id: str) -> Order:
        removed = self.data_store.delete_order(order_id)
        if removed is None:
            raise NotFoundError("No order found with this ID")
        logger.info(f"Order {order_id} deleted")
        return removed
