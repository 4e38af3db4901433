"""
Tests for the DataStore.

These tests verify that the data store correctly loads JSON fixtures
and provides the queries the workflows need.
"""

import json
import shutil
from pathlib import Path

from shared.data_store import DataStore
from shared.models import ArtworkStatus, Notification, ProductType


class TestDataStoreCatalog:
    """Tests for catalog-related data store operations."""

    def test_get_artwork(self, data_store: DataStore):
        artwork = data_store.get_catalog_item(ProductType.ARTWORK, "art-001")

        assert artwork is not None
        assert artwork.title == "Sunset Over Manila Bay"
        assert artwork.status == ArtworkStatus.AVAILABLE.value
        assert artwork.images[0].public_id == "artworks/sunset-manila-bay"

    def test_get_material(self, data_store: DataStore):
        material = data_store.get_catalog_item(ProductType.ARTMAT, "mat-002")

        assert material.name == "Sable Brush Pack"
        assert material.stock == 2

    def test_get_nonexistent_item(self, data_store: DataStore):
        assert data_store.get_catalog_item(ProductType.ARTWORK, "nope") is None
        # Ids are per collection
        assert data_store.get_catalog_item(ProductType.ARTMAT, "art-001") is None

    def test_catalog_items_newest_first(self, data_store: DataStore):
        artworks = data_store.get_catalog_items(ProductType.ARTWORK)

        assert len(artworks) == 5
        assert artworks[0].id == "art-004"
        assert artworks[-1].id == "art-005"

    def test_getters_return_copies(self, data_store: DataStore):
        """Test that mutating a returned document does not change the store."""
        material = data_store.get_catalog_item(ProductType.ARTMAT, "mat-001")
        material.stock = 0

        assert data_store.get_catalog_item(ProductType.ARTMAT, "mat-001").stock == 10

    def test_update_catalog_fields(self, data_store: DataStore):
        updated = data_store.update_catalog_fields(ProductType.ARTMAT, "mat-001", {"stock": 7})

        assert updated.stock == 7
        assert data_store.get_catalog_item(ProductType.ARTMAT, "mat-001").stock == 7

    def test_update_catalog_fields_skips_validation(self, data_store: DataStore):
        """Test that raw updates are stored even when they would fail validation."""
        data_store.update_catalog_fields(ProductType.ARTWORK, "art-001", {"description": ""})

        assert data_store.get_catalog_item(ProductType.ARTWORK, "art-001").description == ""

    def test_update_missing_item_returns_none(self, data_store: DataStore):
        assert data_store.update_catalog_fields(ProductType.ARTMAT, "nope", {"stock": 1}) is None

    def test_find_item_by_review(self, data_store: DataStore):
        item = data_store.find_item_by_review(ProductType.ARTMAT, "rev-101")

        assert item.id == "mat-001"
        assert data_store.find_item_by_review(ProductType.ARTWORK, "rev-101") is None

    def test_delete_catalog_item(self, data_store: DataStore):
        removed = data_store.delete_catalog_item(ProductType.ARTWORK, "art-005")

        assert removed.id == "art-005"
        assert data_store.get_catalog_item(ProductType.ARTWORK, "art-005") is None
        assert data_store.delete_catalog_item(ProductType.ARTWORK, "art-005") is None


class TestDataStoreUsers:
    """Tests for user-related data store operations."""

    def test_get_user(self, data_store: DataStore, maria_id: str):
        user = data_store.get_user(maria_id)

        assert user.name == "Maria Santos"
        assert user.push_token == "ExponentPushToken[maria-device-0001]"

    def test_get_user_by_email_is_case_insensitive(self, data_store: DataStore, maria_id: str):
        assert data_store.get_user_by_email("Maria.Santos@GMAIL.com").id == maria_id
        assert data_store.get_user_by_email("nobody@gmail.com") is None

    def test_users_with_push_token(self, data_store: DataStore, liza_id: str, admin_id: str):
        holders = data_store.get_users_with_push_token()
        holder_ids = {u.id for u in holders}

        assert len(holders) == 5
        assert liza_id not in holder_ids
        assert admin_id not in holder_ids


class TestDataStoreOrders:
    """Tests for order-related data store operations."""

    def test_get_orders_newest_first(self, data_store: DataStore):
        orders = data_store.get_orders()

        assert [o.id for o in orders] == ["ord-004", "ord-002", "ord-001", "ord-003", "ord-005"]

    def test_get_orders_by_user(self, data_store: DataStore, maria_id: str):
        orders = data_store.get_orders_by_user(maria_id)

        assert {o.id for o in orders} == {"ord-001", "ord-003"}

    def test_delete_order(self, data_store: DataStore):
        assert data_store.delete_order("ord-005").id == "ord-005"
        assert data_store.get_order("ord-005") is None


class TestDataStoreNotifications:
    """Tests for the notification log."""

    def test_notifications_most_recent_first(self, data_store: DataStore):
        data_store.add_notification(Notification(id="notif-new", title="Hi", message="Hello"))

        notifications = data_store.get_notifications()

        assert notifications[0].id == "notif-new"
        assert [n.id for n in notifications[1:]] == ["notif-001", "notif-002"]

    def test_delete_notification(self, data_store: DataStore):
        assert data_store.delete_notification("notif-001") is not None
        assert data_store.get_notification("notif-001") is None


class TestDataStorePersistence:
    """Tests for writing collections back to JSON."""

    def test_in_memory_by_default(self, data_dir: Path, tmp_path: Path):
        work_dir = tmp_path / "data"
        shutil.copytree(data_dir, work_dir)
        store = DataStore(data_dir=work_dir)

        store.update_catalog_fields(ProductType.ARTMAT, "mat-001", {"stock": 1})

        assert DataStore(data_dir=work_dir).get_catalog_item(ProductType.ARTMAT, "mat-001").stock == 10

    def test_persist_writes_back(self, data_dir: Path, tmp_path: Path):
        work_dir = tmp_path / "data"
        shutil.copytree(data_dir, work_dir)
        store = DataStore(data_dir=work_dir, persist=True)

        store.update_catalog_fields(ProductType.ARTMAT, "mat-001", {"stock": 1})

        assert DataStore(data_dir=work_dir).get_catalog_item(ProductType.ARTMAT, "mat-001").stock == 1

    def test_password_hash_survives_reload(self, data_dir: Path, tmp_path: Path, maria_id: str):
        work_dir = tmp_path / "data"
        shutil.copytree(data_dir, work_dir)
        store = DataStore(data_dir=work_dir, persist=True)
        user = store.get_user(maria_id)
        user.password_hash = "stored-hash"

        store.save_user(user)

        documents = json.loads((work_dir / "users.json").read_text())
        assert next(d for d in documents if d["id"] == maria_id)["passwordHash"] == "stored-hash"
        assert DataStore(data_dir=work_dir).get_user(maria_id).password_hash == "stored-hash"
