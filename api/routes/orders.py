"""
Order routes.

Status changes queue an OrderStatusChanged event. Each request drains the
events for its own order as a background task after the response is sent, so
notification delivery never delays or fails the status update.
"""

from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from pydantic import Field

from api.dependencies import get_bus, get_ordering_service, requires
from api.schemas import CamelRequest
from shared.models import Order, User
from workflows.event_bus import EventBus
from workflows.services.ordering import OrderingService

router = APIRouter(tags=["Orders"])


def _events_for(order_id: str):
    return lambda event: event.payload.get("order_id") == order_id


class NewOrderRequest(CamelRequest):
    """A prebuilt order, priced by the client."""
    order_items: list[dict[str, Any]]
    shipping_info: dict[str, Any]
    payment_info: Optional[dict[str, Any]] = None
    items_price: float = 0.0
    tax_price: float = 0.0
    shipping_price: float = 0.0
    total_price: float = 0.0


class CartOrderRequest(CamelRequest):
    """Cart contents; prices are read from the catalog."""
    cart_items: list[dict[str, Any]] = Field(default_factory=list)
    shipping_info: dict[str, Any]
    payment_info: Optional[dict[str, Any]] = None


class StatusUpdateRequest(CamelRequest):
    status: Optional[str] = None
    payment_status: Optional[str] = None


def _orders_json(orders: list[Order]) -> list[dict[str, Any]]:
    return [order.to_json() for order in orders]


@router.post("/order/new", status_code=201)
def create_order(
    body: NewOrderRequest,
    user: User = Depends(requires("orders.create")),
    ordering: OrderingService = Depends(get_ordering_service),
):
    order = ordering.create_order(
        user.id,
        body.order_items,
        body.shipping_info,
        body.payment_info,
        items_price=body.items_price,
        tax_price=body.tax_price,
        shipping_price=body.shipping_price,
        total_price=body.total_price,
    )
    return {"success": True, "order": order.to_json()}


@router.post("/order/from-cart", status_code=201)
def create_order_from_cart(
    body: CartOrderRequest,
    user: User = Depends(requires("orders.create")),
    ordering: OrderingService = Depends(get_ordering_service),
):
    order = ordering.create_order_from_cart(
        user.id,
        body.cart_items,
        body.shipping_info,
        body.payment_info,
    )
    return {"success": True, "order": order.to_json()}


@router.get("/orders/me")
def my_orders(
    user: User = Depends(requires("orders.read")),
    ordering: OrderingService = Depends(get_ordering_service),
):
    orders, total_amount = ordering.get_user_orders(user.id)
    return {"success": True, "orders": _orders_json(orders), "totalAmount": total_amount}


@router.get("/order/{order_id}")
def get_order(
    order_id: str,
    user: User = Depends(requires("orders.read")),
    ordering: OrderingService = Depends(get_ordering_service),
):
    return {"success": True, "order": ordering.get_order(order_id, actor=user).to_json()}


@router.put("/order/{order_id}/status")
def update_order_status(
    order_id: str,
    body: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    user: User = Depends(requires("orders.update_status")),
    ordering: OrderingService = Depends(get_ordering_service),
    bus: EventBus = Depends(get_bus),
):
    """
    Change an order's status and/or payment status.

    Admins may make any allowed transition; owners may only cancel.
    """
    order = ordering.update_order(
        order_id,
        status=body.status,
        payment_status=body.payment_status,
        actor=user,
    )
    background_tasks.add_task(bus.drain, _events_for(order.id))
    return {"success": True, "order": order.to_json()}


# =============================================================================
# Administration
# =============================================================================

@router.get("/admin/orders")
def all_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    admin: User = Depends(requires("orders.manage")),
    ordering: OrderingService = Depends(get_ordering_service),
):
    result = ordering.list_orders(page=page, limit=limit)
    return {
        "success": True,
        "orders": _orders_json(result["orders"]),
        "totalAmount": result["total_amount"],
        "pagination": result["pagination"],
    }


@router.put("/admin/order/{order_id}")
def admin_update_order(
    order_id: str,
    body: StatusUpdateRequest,
    background_tasks: BackgroundTasks,
    admin: User = Depends(requires("orders.manage")),
    ordering: OrderingService = Depends(get_ordering_service),
    bus: EventBus = Depends(get_bus),
):
    order = ordering.update_order(
        order_id,
        status=body.status,
        payment_status=body.payment_status,
        actor=admin,
    )
    background_tasks.add_task(bus.drain, _events_for(order.id))
    return {"success": True, "order": order.to_json()}


@router.delete("/admin/order/{order_id}")
def delete_order(
    order_id: str,
    admin: User = Depends(requires("orders.manage")),
    ordering: OrderingService = Depends(get_ordering_service),
):
    ordering.delete_order(order_id)
    return {"success": True, "message": "Order deleted"}
