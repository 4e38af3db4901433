"""
Catalog service: artworks and art materials, their images and their reviews.

One service handles both product types. Everything type-specific lives on the
models (`Artwork`, `ArtMaterial`), so each operation here takes a ProductType
and works the same way for both.
"""

import logging
from math import ceil
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from shared.data_store import DataStore, get_data_store
from shared.errors import NotFoundError, ValidationError
from shared.image_host import (
    CATALOG_IMAGE_WIDTH,
    ImageHost,
    ImageUpload,
    MockImageHost,
    validate_uploads,
)
from shared.models import CATALOG_MODELS, CatalogItem, ProductType, Review, User

logger = logging.getLogger("catalog_service")


RESULTS_PER_PAGE = 4

# Written only by the service itself, never taken from a request
PROTECTED_FIELDS = {
    "id", "images", "ratings", "reviews", "created_at", "createdAt",
    "num_of_reviews", "numOfReviews",
}


def _clean_fields(fields: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in fields.items() if k not in PROTECTED_FIELDS and v is not None}


class CatalogService:
    """
    Catalog CRUD plus reviews for both product types.

    Example:
        catalog = CatalogService(data_store, image_host)
        page = catalog.list_items(ProductType.ARTWORK, keyword="sunset", page=2)
    """

    def __init__(
        self,
        data_store: Optional[DataStore] = None,
        image_host: Optional[ImageHost] = None,
    ):
        self.data_store = data_store or get_data_store()
        self.image_host = image_host or MockImageHost()

    # =========================================================================
    # Queries
    # =========================================================================

    def list_items(
        self,
        product_type: ProductType,
        keyword: Optional[str] = None,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        page: int = 1,
    ) -> dict[str, Any]:
        """
        Search one catalog, newest first.

        `count` is the size of the whole catalog, `filtered_count` the number
        of matches before paging.
        """
        items = self.data_store.get_catalog_items(product_type)
        matches = [
            item for item in items
            if (not keyword or item.matches(keyword))
            and (not category or item.category.lower() == category.lower())
            and (min_price is None or item.price >= min_price)
            and (max_price is None or item.price <= max_price)
        ]

        page = max(page, 1)
        start = (page - 1) * RESULTS_PER_PAGE
        return {
            "items": matches[start:start + RESULTS_PER_PAGE],
            "count": len(items),
            "filtered_count": len(matches),
            "res_per_page": RESULTS_PER_PAGE,
            "pages": ceil(len(matches) / RESULTS_PER_PAGE),
        }

    def get_item(self, product_type: ProductType, item_id: str) -> CatalogItem:
        item = self.data_store.get_catalog_item(product_type, item_id)
        if item is None:
            raise NotFoundError(f"{CATALOG_MODELS[ProductType(product_type)].label} not found")
        return item

    def admin_items(self, product_type: ProductType) -> list[CatalogItem]:
        return self.data_store.get_catalog_items(product_type)

    # =========================================================================
    # Admin writes
    # =========================================================================

    def create_item(
        self,
        product_type: ProductType,
        fields: dict[str, Any],
        uploads: list[ImageUpload],
    ) -> CatalogItem:
        """
        Validate, upload images, then store a new item.

        Fields are validated before anything is uploaded, so a bad request
        leaves no orphaned images on the host.

        Raises:
            ValidationError: If no image is supplied or a field is invalid
            GatewayError: If the image host fails
        """
        product_type = ProductType(product_type)
        model = CATALOG_MODELS[product_type]

        if not uploads:
            raise ValidationError("No images uploaded.")
        validate_uploads(uploads)

        try:
            item = model(**_clean_fields(fields))
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        images = self.image_host.upload_many(uploads, folder=model.image_folder, width=CATALOG_IMAGE_WIDTH)
        item = item.model_copy(update={"images": images})

        self.data_store.save_catalog_item(item)
        logger.info(f"Created {product_type.value} {item.id}: {item.display_name} ({len(images)} images)")
        return item

    def update_item(
        self,
        product_type: ProductType,
        item_id: str,
        fields: dict[str, Any],
        uploads: Optional[list[ImageUpload]] = None,
    ) -> CatalogItem:
        """
        Apply a partial update. New images replace all old ones.

        Raises:
            NotFoundError: If the item does not exist
            ValidationError: If the merged item is invalid
            GatewayError: If uploading a new image fails
        """
        product_type = ProductType(product_type)
        model = CATALOG_MODELS[product_type]
        existing = self.get_item(product_type, item_id)

        merged = existing.model_dump()
        merged.update(_clean_fields(fields))
        try:
            item = model(**merged)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        if uploads:
            validate_uploads(uploads)
            images = self.image_host.upload_many(uploads, folder=model.image_folder, width=CATALOG_IMAGE_WIDTH)
            self.image_host.discard([old.public_id for old in existing.images])
            item = item.model_copy(update={"images": images})

        self.data_store.save_catalog_item(item)
        logger.info(f"Updated {product_type.value} {item.id}")
        return item

    def delete_item(self, product_type: ProductType, item_id: str) -> CatalogItem:
        removed = self.data_store.delete_catalog_item(product_type, item_id)
        if removed is None:
            raise NotFoundError(f"{CATALOG_MODELS[ProductType(product_type)].label} not found")
        logger.info(f"Deleted {ProductType(product_type).value} {item_id}")
        return removed

    # =========================================================================
    # Reviews
    # =========================================================================

    def upsert_review(
        self,
        product_type: ProductType,
        item_id: str,
        reviewer: User,
        rating: Any,
        comment: Optional[str],
    ) -> Review:
        """
        Add the reviewer's review, or update their existing one.

        Raises:
            NotFoundError: If the item does not exist
            ValidationError: If rating or comment is invalid
        """
        item = self.get_item(product_type, item_id)
        try:
            review = item.upsert_review(reviewer.id, reviewer.name, rating, comment)
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        self.data_store.save_catalog_item(item)
        logger.info(
            f"Review {review.id} by {reviewer.id} on {item.id}: "
            f"{item.num_of_reviews} reviews, rating {item.ratings:.2f}"
        )
        return review

    def list_reviews(self, product_type: ProductType, item_id: str) -> list[Review]:
        return self.get_item(product_type, item_id).reviews

    def delete_review(self, product_type: ProductType, review_id: str) -> CatalogItem:
        """
        Remove a review by its id, wherever it lives in this catalog.

        Raises:
            NotFoundError: If no item holds the review
        """
        item = self.data_store.find_item_by_review(product_type, review_id)
        if item is None:
            raise NotFoundError("Review not found.")
        item.remove_review(review_id)
        self.data_store.save_catalog_item(item)
        logger.info(f"Review {review_id} deleted from {item.id}")
        return item
