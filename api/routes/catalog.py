"""
Catalog routes for artworks and art materials.

Both product types expose the same routes under their own prefix, so one
router factory builds both:

    GET    /artworks                       search, filter, paginate
    GET    /artwork/{id}
    GET    /admin/artworks
    POST   /admin/artwork/new              multipart: fields + images
    PUT    /admin/artwork/{id}             multipart or JSON
    DELETE /admin/artwork/{id}
    PUT    /artwork/review/{id}            create or update own review
    GET    /artwork/reviews/{id}
    DELETE /artwork/review/{reviewId}      admin
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from starlette.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from api.dependencies import get_catalog_service, requires
from api.submissions import read_submission
from shared.models import CATALOG_MODELS, ProductType, User
from workflows.services.catalog import CatalogService


class ReviewRequest(BaseModel):
    rating: float = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


def build_catalog_router(product_type: ProductType) -> APIRouter:
    """Build the catalog router for one product type."""
    singular = product_type.value
    plural = f"{singular}s"
    label = CATALOG_MODELS[product_type].label

    router = APIRouter(tags=[label])

    @router.get(f"/{plural}")
    def list_items(
        keyword: Optional[str] = None,
        category: Optional[str] = None,
        min_price: Optional[float] = Query(default=None, alias="minPrice", ge=0),
        max_price: Optional[float] = Query(default=None, alias="maxPrice", ge=0),
        page: int = Query(default=1, ge=1),
        catalog: CatalogService = Depends(get_catalog_service),
    ):
        result = catalog.list_items(
            product_type,
            keyword=keyword,
            category=category,
            min_price=min_price,
            max_price=max_price,
            page=page,
        )
        return {
            "success": True,
            "items": [item.to_json() for item in result["items"]],
            "count": result["count"],
            "filteredCount": result["filtered_count"],
            "resPerPage": result["res_per_page"],
        }

    @router.get(f"/{singular}/{{item_id}}")
    def get_item(item_id: str, catalog: CatalogService = Depends(get_catalog_service)):
        return {"success": True, singular: catalog.get_item(product_type, item_id).to_json()}

    @router.get(f"/admin/{plural}")
    def admin_items(
        user: User = Depends(requires("catalog.manage")),
        catalog: CatalogService = Depends(get_catalog_service),
    ):
        return {"success": True, plural: [item.to_json() for item in catalog.admin_items(product_type)]}

    @router.post(f"/admin/{singular}/new", status_code=201)
    async def create_item(
        request: Request,
        user: User = Depends(requires("catalog.manage")),
        catalog: CatalogService = Depends(get_catalog_service),
    ):
        fields, uploads = await read_submission(request, "images")
        item = await run_in_threadpool(catalog.create_item, product_type, fields, uploads)
        return {"success": True, singular: item.to_json()}

    @router.put(f"/admin/{singular}/{{item_id}}")
    async def update_item(
        item_id: str,
        request: Request,
        user: User = Depends(requires("catalog.manage")),
        catalog: CatalogService = Depends(get_catalog_service),
    ):
        fields, uploads = await read_submission(request, "images")
        item = await run_in_threadpool(catalog.update_item, product_type, item_id, fields, uploads)
        return {"success": True, singular: item.to_json()}

    @router.delete(f"/admin/{singular}/{{item_id}}")
    def delete_item(
        item_id: str,
        user: User = Depends(requires("catalog.manage")),
        catalog: CatalogService = Depends(get_catalog_service),
    ):
        catalog.delete_item(product_type, item_id)
        return {"success": True, "message": f"{label} deleted"}

    # -------------------------------------------------------------------------
    # Reviews
    # -------------------------------------------------------------------------

    @router.put(f"/{singular}/review/{{item_id}}")
    def upsert_review(
        item_id: str,
        body: ReviewRequest,
        user: User = Depends(requires("reviews.write")),
        catalog: CatalogService = Depends(get_catalog_service),
    ):
        review = catalog.upsert_review(product_type, item_id, user, body.rating, body.comment)
        return {
            "success": True,
            "message": "Review added/updated successfully!",
            "review": review.to_json(),
        }

    @router.get(f"/{singular}/reviews/{{item_id}}")
    def list_reviews(item_id: str, catalog: CatalogService = Depends(get_catalog_service)):
        reviews = catalog.list_reviews(product_type, item_id)
        return {"success": True, "reviews": [review.to_json() for review in reviews]}

    @router.delete(f"/{singular}/review/{{review_id}}")
    def delete_review(
        review_id: str,
        user: User = Depends(requires("reviews.delete")),
        catalog: CatalogService = Depends(get_catalog_service),
    ):
        catalog.delete_review(product_type, review_id)
        return {"success": True, "message": "Review deleted successfully!"}

    return router


artwork_router = build_catalog_router(ProductType.ARTWORK)
artmat_router = build_catalog_router(ProductType.ARTMAT)
