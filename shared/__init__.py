"""
Shared infrastructure for the art marketplace backend.

This package contains the leaves every workflow builds on:
- Domain documents (Artwork, ArtMaterial, Order, User, Notification)
- Data store for JSON-backed persistence
- Error kinds and their HTTP status codes
- Push gateway and image host clients
- Notification templates
"""

from shared.models import (
    ArtMaterial,
    Artwork,
    CartItem,
    CatalogItem,
    Notification,
    Order,
    OrderLine,
    OrderStatus,
    ProductType,
    User,
)
from shared.data_store import DataStore
from shared.errors import MarketplaceError

__all__ = [
    "ArtMaterial",
    "Artwork",
    "CartItem",
    "CatalogItem",
    "Notification",
    "Order",
    "OrderLine",
    "OrderStatus",
    "ProductType",
    "User",
    "DataStore",
    "MarketplaceError",
]
