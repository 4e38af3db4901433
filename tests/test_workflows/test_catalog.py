"""
Tests for the catalog service.
"""

import pytest

from shared.data_store import DataStore
from shared.errors import GatewayError, NotFoundError, ValidationError
from shared.image_host import ImageUpload, MockImageHost
from shared.models import ProductType
from workflows.services.catalog import RESULTS_PER_PAGE, CatalogService


NEW_ARTWORK = {
    "title": "Jeepney Noon",
    "artist": "Rico Lim",
    "medium": "Gouache",
    "description": "Midday traffic on Taft Avenue",
    "category": "Painting",
    "price": 95,
}


@pytest.fixture
def catalog(data_store: DataStore, image_host: MockImageHost) -> CatalogService:
    return CatalogService(data_store=data_store, image_host=image_host)


class TestListing:
    """Tests for catalog search and paging."""

    def test_first_page(self, catalog: CatalogService):
        result = catalog.list_items(ProductType.ARTWORK)

        assert len(result["items"]) == RESULTS_PER_PAGE
        assert result["count"] == 5
        assert result["filtered_count"] == 5
        assert result["pages"] == 2
        assert result["items"][0].id == "art-004"

    def test_second_page(self, catalog: CatalogService):
        result = catalog.list_items(ProductType.ARTWORK, page=2)

        assert [i.id for i in result["items"]] == ["art-005"]

    def test_filter_by_category(self, catalog: CatalogService):
        result = catalog.list_items(ProductType.ARTWORK, category="painting")

        assert [i.id for i in result["items"]] == ["art-002", "art-001", "art-003"]
        assert result["filtered_count"] == 3
        assert result["count"] == 5

    def test_filter_by_price_range(self, catalog: CatalogService):
        result = catalog.list_items(ProductType.ARTWORK, min_price=30, max_price=150)

        assert {i.id for i in result["items"]} == {"art-002", "art-003", "art-005"}

    def test_keyword(self, catalog: CatalogService):
        result = catalog.list_items(ProductType.ARTWORK, keyword="SUNSET")

        assert [i.id for i in result["items"]] == ["art-001"]

    def test_keyword_on_materials_matches_name(self, catalog: CatalogService):
        result = catalog.list_items(ProductType.ARTMAT, keyword="brush")

        assert [i.id for i in result["items"]] == ["mat-002"]

    def test_get_unknown_item(self, catalog: CatalogService):
        with pytest.raises(NotFoundError) as excinfo:
            catalog.get_item(ProductType.ARTWORK, "art-999")

        assert excinfo.value.message == "Artwork not found"


class TestAdminWrites:
    """Tests for create / update / delete."""

    def test_create_uploads_images(self, catalog: CatalogService, data_store: DataStore, image_host: MockImageHost, jpeg: ImageUpload):
        item = catalog.create_item(ProductType.ARTWORK, NEW_ARTWORK, [jpeg, jpeg])

        assert len(item.images) == 2
        assert item.images[0].public_id.startswith("artworks/")
        assert "w_500" in item.images[0].url
        assert data_store.get_catalog_item(ProductType.ARTWORK, item.id).title == "Jeepney Noon"
        assert len(image_host.uploaded) == 2

    def test_create_ignores_protected_fields(self, catalog: CatalogService, jpeg: ImageUpload):
        fields = dict(NEW_ARTWORK, ratings=5, numOfReviews=99)

        item = catalog.create_item(ProductType.ARTWORK, fields, [jpeg])

        assert item.ratings == 0
        assert item.num_of_reviews == 0

    def test_create_requires_images(self, catalog: CatalogService):
        with pytest.raises(ValidationError) as excinfo:
            catalog.create_item(ProductType.ARTWORK, NEW_ARTWORK, [])

        assert excinfo.value.message == "No images uploaded."

    def test_invalid_fields_upload_nothing(self, catalog: CatalogService, image_host: MockImageHost, jpeg: ImageUpload):
        fields = dict(NEW_ARTWORK)
        del fields["artist"]

        with pytest.raises(ValidationError):
            catalog.create_item(ProductType.ARTWORK, fields, [jpeg])

        assert image_host.uploaded == {}

    def test_unsupported_image_type(self, catalog: CatalogService):
        gif = ImageUpload(content=b"GIF89a", filename="a.gif", content_type="image/gif")

        with pytest.raises(ValidationError):
            catalog.create_item(ProductType.ARTWORK, NEW_ARTWORK, [gif])

    def test_image_host_failure_stores_nothing(self, data_store: DataStore, jpeg: ImageUpload):
        catalog = CatalogService(data_store=data_store, image_host=MockImageHost(fail=True))

        with pytest.raises(GatewayError):
            catalog.create_item(ProductType.ARTWORK, NEW_ARTWORK, [jpeg])

        assert len(data_store.get_catalog_items(ProductType.ARTWORK)) == 5

    def test_partial_update(self, catalog: CatalogService, data_store: DataStore):
        catalog.update_item(ProductType.ARTMAT, "mat-001", {"price": 32, "stock": 20})

        material = data_store.get_catalog_item(ProductType.ARTMAT, "mat-001")
        assert material.price == 32
        assert material.stock == 20
        assert material.name == "Acrylic Paint Set"
        assert material.num_of_reviews == 1

    def test_update_with_images_replaces_old_ones(self, catalog: CatalogService, image_host: MockImageHost, jpeg: ImageUpload):
        item = catalog.update_item(ProductType.ARTWORK, "art-001", {}, [jpeg])

        assert image_host.destroyed == ["artworks/sunset-manila-bay"]
        assert [i.public_id for i in item.images] == ["artworks/img-0001"]

    def test_failed_delete_of_old_image_still_saves_update(self, data_store: DataStore, jpeg: ImageUpload):
        host = MockImageHost(fail_destroy=True)
        catalog = CatalogService(data_store=data_store, image_host=host)

        item = catalog.update_item(ProductType.ARTWORK, "art-001", {"title": "Manila Bay at Dusk"}, [jpeg])

        stored = data_store.get_catalog_item(ProductType.ARTWORK, "art-001")
        assert stored.title == "Manila Bay at Dusk"
        assert [i.public_id for i in stored.images] == ["artworks/img-0001"]
        assert list(host.uploaded) == [i.public_id for i in item.images]

    def test_update_rejects_invalid_values(self, catalog: CatalogService, data_store: DataStore):
        with pytest.raises(ValidationError):
            catalog.update_item(ProductType.ARTMAT, "mat-001", {"stock": -3})

        assert data_store.get_catalog_item(ProductType.ARTMAT, "mat-001").stock == 10

    def test_delete(self, catalog: CatalogService, data_store: DataStore):
        catalog.delete_item(ProductType.ARTMAT, "mat-004")

        assert data_store.get_catalog_item(ProductType.ARTMAT, "mat-004") is None
        with pytest.raises(NotFoundError) as excinfo:
            catalog.delete_item(ProductType.ARTMAT, "mat-004")
        assert excinfo.value.message == "Art material not found"


class TestReviews:
    """Tests for reviews through the service."""

    def test_new_review(self, catalog: CatalogService, data_store: DataStore, maria_id: str):
        maria = data_store.get_user(maria_id)

        catalog.upsert_review(ProductType.ARTWORK, "art-001", maria, 2, "Smaller than expected")

        artwork = data_store.get_catalog_item(ProductType.ARTWORK, "art-001")
        assert artwork.num_of_reviews == 2
        assert artwork.ratings == 3

    def test_repeat_review_updates(self, catalog: CatalogService, data_store: DataStore, juan_id: str):
        juan = data_store.get_user(juan_id)

        review = catalog.upsert_review(ProductType.ARTWORK, "art-001", juan, 5, "Even better now")

        artwork = data_store.get_catalog_item(ProductType.ARTWORK, "art-001")
        assert review.id == "rev-001"
        assert artwork.num_of_reviews == 1
        assert artwork.ratings == 5

    def test_invalid_rating(self, catalog: CatalogService, data_store: DataStore, maria_id: str):
        with pytest.raises(ValidationError):
            catalog.upsert_review(ProductType.ARTWORK, "art-002", data_store.get_user(maria_id), 0, "Bad")

    def test_review_on_material_stays_on_material(self, catalog: CatalogService, data_store: DataStore, juan_id: str):
        catalog.upsert_review(ProductType.ARTMAT, "mat-002", data_store.get_user(juan_id), 4, "Soft bristles")

        assert data_store.get_catalog_item(ProductType.ARTMAT, "mat-002").num_of_reviews == 1
        assert len(catalog.list_reviews(ProductType.ARTMAT, "mat-002")) == 1

    def test_delete_review(self, catalog: CatalogService, data_store: DataStore):
        catalog.delete_review(ProductType.ARTMAT, "rev-101")

        material = data_store.get_catalog_item(ProductType.ARTMAT, "mat-001")
        assert material.num_of_reviews == 0
        assert material.ratings == 0

    def test_delete_unknown_review(self, catalog: CatalogService):
        with pytest.raises(NotFoundError) as excinfo:
            catalog.delete_review(ProductType.ARTWORK, "rev-101")

        assert excinfo.value.message == "Review not found."
