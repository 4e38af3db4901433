"""
Push-token and notification routes.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from api.dependencies import get_dispatcher, get_push_token_service, get_store, requires
from api.schemas import CamelRequest
from shared.data_store import DataStore
from shared.errors import NotFoundError
from shared.models import User
from workflows.notification_dispatcher import DispatchResult, NotificationDispatcher
from workflows.services.push_tokens import PushTokenService

router = APIRouter(tags=["Notifications"])


class SaveTokenRequest(CamelRequest):
    user_id: Optional[str] = None
    push_token: Optional[str] = None


class PromoteArtworkRequest(CamelRequest):
    artwork_id: str


class PromoteArtmatRequest(CamelRequest):
    artmat_id: str


class OrderUpdateRequest(CamelRequest):
    order_id: str
    status: Optional[str] = None
    message: Optional[str] = None


def _dispatch_json(result: DispatchResult, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "notification": result.notification.to_json(),
        "recipients": result.recipient_count,
        "sent": result.delivered,
        "failed": result.failed,
    }


# =============================================================================
# Push tokens
# =============================================================================

@router.post("/save-push-token")
def save_push_token(
    body: SaveTokenRequest,
    user: User = Depends(requires("push_token.register")),
    tokens: PushTokenService = Depends(get_push_token_service),
):
    updated = tokens.register_token(body.user_id, body.push_token, actor=user)
    return {
        "success": True,
        "message": "Push token saved",
        "expiresAt": updated.push_token_expires,
    }


@router.post("/cleanup-tokens")
def cleanup_tokens(
    admin: User = Depends(requires("push_tokens.cleanup")),
    tokens: PushTokenService = Depends(get_push_token_service),
):
    report = tokens.cleanup_tokens()
    return {"success": True, "message": "Token cleanup complete.", **report.to_dict()}


@router.get("/token-status/{user_id}")
def token_status(
    user_id: str,
    user: User = Depends(requires("push_token.status")),
    tokens: PushTokenService = Depends(get_push_token_service),
):
    return {"success": True, **tokens.token_status(user_id, actor=user)}


# =============================================================================
# Triggers
# =============================================================================

@router.post("/promote-artwork")
def promote_artwork(
    body: PromoteArtworkRequest,
    admin: User = Depends(requires("notifications.promote")),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = dispatcher.promote_artwork(body.artwork_id)
    return _dispatch_json(result, f"Promotion sent to {result.delivered} users")


@router.post("/promote-artmat")
def promote_artmat(
    body: PromoteArtmatRequest,
    admin: User = Depends(requires("notifications.promote")),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = dispatcher.promote_artmat(body.artmat_id)
    return _dispatch_json(result, f"Promotion sent to {result.delivered} users")


@router.post("/notify-order-update")
def notify_order_update(
    body: OrderUpdateRequest,
    admin: User = Depends(requires("notifications.order_update")),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    result = dispatcher.notify_order_update(body.order_id, status=body.status, message=body.message)
    message = "Order update notification sent" if result.delivered else "Order update saved, no push sent"
    return _dispatch_json(result, message)


# =============================================================================
# Notification log
# =============================================================================

@router.get("/notifications")
def list_notifications(
    user: User = Depends(requires("notifications.read")),
    store: DataStore = Depends(get_store),
):
    return {"success": True, "notifications": [n.to_json() for n in store.get_notifications()]}


@router.get("/notifications/{notification_id}")
def get_notification(
    notification_id: str,
    user: User = Depends(requires("notifications.read")),
    store: DataStore = Depends(get_store),
):
    notification = store.get_notification(notification_id)
    if notification is None:
        raise NotFoundError("Notification not found")
    return {"success": True, "notification": notification.to_json()}


@router.delete("/notifications/{notification_id}")
def delete_notification(
    notification_id: str,
    admin: User = Depends(requires("notifications.delete")),
    store: DataStore = Depends(get_store),
):
    if store.delete_notification(notification_id) is None:
        raise NotFoundError("Notification not found")
    return {"success": True, "message": "Notification deleted"}
