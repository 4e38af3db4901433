"""
Dependency wiring for the HTTP layer.

Module-level instances (store, event bus, gateway, image host) are created on
first use from settings and can be swapped wholesale with `reset_api_state`
in tests. Services are cheap and are built per request on top of them.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from shared.config import Settings, get_settings
from shared.data_store import DataStore, get_data_store
from shared.image_host import ImageHost, create_image_host
from shared.models import User
from shared.push_gateway import PushGateway, create_push_gateway
from workflows.event_bus import EventBus, get_event_bus
from workflows.notification_dispatcher import NotificationDispatcher
from workflows.services.accounts import AccountService, authorize
from workflows.services.catalog import CatalogService
from workflows.services.ordering import OrderingService
from workflows.services.push_tokens import PushTokenService

logger = logging.getLogger("api")


# Module-level instances (would use proper DI in production)
_settings: Optional[Settings] = None
_data_store: Optional[DataStore] = None
_event_bus: Optional[EventBus] = None
_gateway: Optional[PushGateway] = None
_image_host: Optional[ImageHost] = None
_dispatcher: Optional[NotificationDispatcher] = None
_clock: Callable[[], datetime] = datetime.utcnow

bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = get_settings()
    return _settings


def get_store() -> DataStore:
    """Get the data store instance."""
    global _data_store
    if _data_store is None:
        _data_store = get_data_store()
    return _data_store


def get_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = get_event_bus()
    return _event_bus


def get_gateway() -> PushGateway:
    """Get the push gateway configured by PUSH_GATEWAY."""
    global _gateway
    if _gateway is None:
        settings = get_app_settings()
        _gateway = create_push_gateway(settings.push_gateway, settings.expo_access_token)
    return _gateway


def get_image_host() -> ImageHost:
    """Get the image host configured by IMAGE_HOST."""
    global _image_host
    if _image_host is None:
        settings = get_app_settings()
        _image_host = create_image_host(
            settings.image_host,
            settings.cloudinary_cloud_name,
            settings.cloudinary_api_key,
            settings.cloudinary_api_secret,
        )
    return _image_host


def get_dispatcher() -> NotificationDispatcher:
    """Get the dispatcher, subscribed to the event bus on first use."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(
            event_bus=get_bus(),
            data_store=get_store(),
            gateway=get_gateway(),
        )
        _dispatcher.start()
    return _dispatcher


def reset_api_state(
    data_store: Optional[DataStore] = None,
    gateway: Optional[PushGateway] = None,
    image_host: Optional[ImageHost] = None,
    event_bus: Optional[EventBus] = None,
    settings: Optional[Settings] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> None:
    """Reset API state (for testing)."""
    global _settings, _data_store, _event_bus, _gateway, _image_host, _dispatcher, _clock
    if _dispatcher is not None:
        _dispatcher.stop()
    _settings = settings
    _data_store = data_store
    _event_bus = event_bus
    _gateway = gateway
    _image_host = image_host
    _dispatcher = None
    _clock = clock or datetime.utcnow
    logger.debug("API state reset")


# =============================================================================
# Services
# =============================================================================

def get_ordering_service() -> OrderingService:
    # Order events are only useful with a subscriber in place
    get_dispatcher()
    return OrderingService(event_bus=get_bus(), data_store=get_store(), clock=_clock)


def get_push_token_service() -> PushTokenService:
    return PushTokenService(data_store=get_store(), gateway=get_gateway(), clock=_clock)


def get_catalog_service() -> CatalogService:
    return CatalogService(data_store=get_store(), image_host=get_image_host())


def get_account_service() -> AccountService:
    return AccountService(
        data_store=get_store(),
        image_host=get_image_host(),
        settings=get_app_settings(),
    )


# =============================================================================
# Authentication and authorization
# =============================================================================

def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    accounts: AccountService = Depends(get_account_service),
) -> User:
    """Resolve the bearer token to a user. Raises AuthError (401)."""
    token = credentials.credentials if credentials else None
    return accounts.authenticate(token)


def requires(operation: str):
    """
    Dependency factory: the current user, if allowed to perform `operation`.

    Example:
        @router.delete("/admin/order/{order_id}")
        def delete_order(order_id: str, user: User = Depends(requires("orders.manage"))):
            ...
    """
    def dependency(user: User = Depends(get_current_user)) -> User:
        return authorize(user, operation)

    dependency.__name__ = f"requires_{operation.replace('.', '_')}"
    return dependency
