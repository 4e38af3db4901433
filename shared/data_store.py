"""
JSON-backed document store for the marketplace.

Each collection (artworks, artmats, users, orders, notifications) is loaded
lazily from a JSON fixture file and kept in memory. Writes replace whole
documents under a lock, which gives per-document atomic read-modify-write;
there are no transactions across documents.

Design decisions:
- Getters return copies, so callers mutate their own document and must call
  a save method to make the change visible
- Identifiers are generated by the models (24 hex characters)
- With `persist=True` a collection is written back to its JSON file after
  every write; otherwise writes live in memory only
- `update_catalog_fields` is the unvalidated write path used by stock
  reconciliation, so a reconciliation write never trips catalog validation
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Optional

from shared.config import get_settings
from shared.models import (
    CATALOG_MODELS,
    CatalogItem,
    Notification,
    Order,
    ProductType,
    User,
)

logger = logging.getLogger("data_store")


CATALOG_FILES = {
    ProductType.ARTWORK: "artworks.json",
    ProductType.ARTMAT: "artmats.json",
}


class DataStore:
    """
    Central document store.

    In production this would be a document database; the interface is kept
    narrow (get / list / save / delete per collection plus a few queries) so
    the services never depend on how documents are kept.
    """

    def __init__(self, data_dir: Optional[Path] = None, persist: bool = False):
        """
        Initialize the data store.

        Args:
            data_dir: Directory containing the JSON fixtures.
                     Defaults to ./data relative to project root.
            persist: Write collections back to their JSON files after each write.
        """
        if data_dir is None:
            data_dir = Path(__file__).parent.parent / "data"

        self.data_dir = Path(data_dir)
        self.persist = persist
        self._lock = threading.RLock()

        # In-memory collections - loaded lazily
        self._catalog: dict[ProductType, Optional[dict[str, CatalogItem]]] = {
            product_type: None for product_type in ProductType
        }
        self._users: Optional[dict[str, User]] = None
        self._orders: Optional[dict[str, Order]] = None
        self._notifications: Optional[dict[str, Notification]] = None

    # =========================================================================
    # Loading and flushing
    # =========================================================================

    def _load_json(self, filename: str) -> list[dict]:
        """Load a JSON fixture file."""
        filepath = self.data_dir / filename
        if not filepath.exists():
            return []
        with open(filepath, "r") as f:
            return json.load(f)

    def _write_json(self, filename: str, documents: list[dict]) -> None:
        if not self.persist:
            return
        self.data_dir.mkdir(parents=True, exist_ok=True)
        with open(self.data_dir / filename, "w") as f:
            json.dump(documents, f, indent=2)
        logger.debug(f"Flushed {len(documents)} documents to {filename}")

    def _catalog_collection(self, product_type: ProductType) -> dict[str, CatalogItem]:
        product_type = ProductType(product_type)
        if self._catalog[product_type] is None:
            model = CATALOG_MODELS[product_type]
            data = self._load_json(CATALOG_FILES[product_type])
            self._catalog[product_type] = {d["id"]: model(**d) for d in data}
        return self._catalog[product_type]

    def _user_collection(self) -> dict[str, User]:
        if self._users is None:
            data = self._load_json("users.json")
            self._users = {u["id"]: User(**u) for u in data}
        return self._users

    def _order_collection(self) -> dict[str, Order]:
        if self._orders is None:
            data = self._load_json("orders.json")
            self._orders = {o["id"]: Order(**o) for o in data}
        return self._orders

    def _notification_collection(self) -> dict[str, Notification]:
        if self._notifications is None:
            data = self._load_json("notifications.json")
            self._notifications = {n["id"]: Notification(**n) for n in data}
        return self._notifications

    def _flush_catalog(self, product_type: ProductType) -> None:
        items = self._catalog_collection(product_type).values()
        self._write_json(CATALOG_FILES[ProductType(product_type)], [i.to_json() for i in items])

    def _flush_users(self) -> None:
        documents = []
        for user in self._user_collection().values():
            document = user.to_json()
            # The hash is excluded from every API response but must survive a reload
            document["passwordHash"] = user.password_hash
            documents.append(document)
        self._write_json("users.json", documents)

    def _flush_orders(self) -> None:
        self._write_json("orders.json", [o.to_json() for o in self._order_collection().values()])

    def _flush_notifications(self) -> None:
        self._write_json(
            "notifications.json",
            [n.to_json() for n in self._notification_collection().values()],
        )

    # =========================================================================
    # Catalog Operations
    # =========================================================================

    def get_catalog_item(self, product_type: ProductType, item_id: str) -> Optional[CatalogItem]:
        """Get an artwork or art material by id."""
        with self._lock:
            item = self._catalog_collection(product_type).get(item_id)
            return item.model_copy(deep=True) if item else None

    def get_catalog_items(self, product_type: ProductType) -> list[CatalogItem]:
        """Get every item of one product type, newest first."""
        with self._lock:
            items = [i.model_copy(deep=True) for i in self._catalog_collection(product_type).values()]
        return sorted(items, key=lambda i: i.created_at, reverse=True)

    def save_catalog_item(self, item: CatalogItem) -> CatalogItem:
        """Insert or replace a validated catalog item."""
        with self._lock:
            self._catalog_collection(item.product_type)[item.id] = item.model_copy(deep=True)
            self._flush_catalog(item.product_type)
        return item

    def update_catalog_fields(
        self,
        product_type: ProductType,
        item_id: str,
        updates: dict[str, Any],
    ) -> Optional[CatalogItem]:
        """
        Apply raw field updates to a catalog item without validation.

        Returns the updated item or None if not found.
        """
        with self._lock:
            collection = self._catalog_collection(product_type)
            item = collection.get(item_id)
            if item is None:
                return None
            updated = item.model_copy(update=updates, deep=True)
            collection[item_id] = updated
            self._flush_catalog(product_type)
            return updated.model_copy(deep=True)

    def delete_catalog_item(self, product_type: ProductType, item_id: str) -> Optional[CatalogItem]:
        """Remove a catalog item. Returns the removed item or None."""
        with self._lock:
            removed = self._catalog_collection(product_type).pop(item_id, None)
            if removed is not None:
                self._flush_catalog(product_type)
            return removed

    def find_item_by_review(self, product_type: ProductType, review_id: str) -> Optional[CatalogItem]:
        """Find the catalog item that owns a review."""
        with self._lock:
            for item in self._catalog_collection(product_type).values():
                if item.find_review(review_id) is not None:
                    return item.model_copy(deep=True)
        return None

    # =========================================================================
    # User Operations
    # =========================================================================

    def get_user(self, user_id: str) -> Optional[User]:
        """Get a user by id."""
        with self._lock:
            user = self._user_collection().get(user_id)
            return user.model_copy(deep=True) if user else None

    def get_user_by_email(self, email: str) -> Optional[User]:
        """Find a user by email, case-insensitively."""
        email = email.lower()
        with self._lock:
            for user in self._user_collection().values():
                if user.email.lower() == email:
                    return user.model_copy(deep=True)
        return None

    def get_users(self) -> list[User]:
        """Get all users."""
        with self._lock:
            return [u.model_copy(deep=True) for u in self._user_collection().values()]

    def get_users_with_push_token(self) -> list[User]:
        """
        Get every user holding a push token.

        Used by promotional broadcasts and the token cleanup sweep.
        """
        with self._lock:
            return [
                u.model_copy(deep=True)
                for u in self._user_collection().values()
                if u.push_token
            ]

    def save_user(self, user: User) -> User:
        """Insert or replace a user."""
        with self._lock:
            self._user_collection()[user.id] = user.model_copy(deep=True)
            self._flush_users()
        return user

    # =========================================================================
    # Order Operations
    # =========================================================================

    def get_order(self, order_id: str) -> Optional[Order]:
        """Get an order by id."""
        with self._lock:
            order = self._order_collection().get(order_id)
            return order.model_copy(deep=True) if order else None

    def get_orders(self) -> list[Order]:
        """Get all orders, newest first."""
        with self._lock:
            orders = [o.model_copy(deep=True) for o in self._order_collection().values()]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def get_orders_by_user(self, user_id: str) -> list[Order]:
        """Get all orders placed by one user."""
        return [o for o in self.get_orders() if o.user == user_id]

    def save_order(self, order: Order) -> Order:
        """Insert or replace an order."""
        with self._lock:
            self._order_collection()[order.id] = order.model_copy(deep=True)
            self._flush_orders()
        return order

    def delete_order(self, order_id: str) -> Optional[Order]:
        """Remove an order. Returns the removed order or None."""
        with self._lock:
            removed = self._order_collection().pop(order_id, None)
            if removed is not None:
                self._flush_orders()
            return removed

    # =========================================================================
    # Notification Operations
    # =========================================================================

    def add_notification(self, notification: Notification) -> Notification:
        """Append a notification record."""
        with self._lock:
            self._notification_collection()[notification.id] = notification.model_copy(deep=True)
            self._flush_notifications()
        return notification

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            notification = self._notification_collection().get(notification_id)
            return notification.model_copy(deep=True) if notification else None

    def get_notifications(self) -> list[Notification]:
        """Get all notifications, most recently sent first."""
        with self._lock:
            notifications = [n.model_copy(deep=True) for n in self._notification_collection().values()]
        return sorted(notifications, key=lambda n: n.sent_at, reverse=True)

    def delete_notification(self, notification_id: str) -> Optional[Notification]:
        with self._lock:
            removed = self._notification_collection().pop(notification_id, None)
            if removed is not None:
                self._flush_notifications()
            return removed

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def reload(self):
        """
        Force reload all data from JSON files.

        Useful for tests that modify fixture files.
        """
        with self._lock:
            self._catalog = {product_type: None for product_type in ProductType}
            self._users = None
            self._orders = None
            self._notifications = None


# Module-level singleton for convenience
# In tests, create a new DataStore instance with test fixtures
_default_store: Optional[DataStore] = None


def get_data_store() -> DataStore:
    """Get the default data store singleton."""
    global _default_store
    if _default_store is None:
        settings = get_settings()
        _default_store = DataStore(data_dir=settings.data_dir, persist=settings.persist)
    return _default_store


def reset_data_store(store: Optional[DataStore] = None) -> DataStore:
    """Replace the default data store (useful for testing)."""
    global _default_store
    _default_store = store or DataStore()
    return _default_store
