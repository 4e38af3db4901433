"""
Domain documents for the art marketplace.

Each model maps to one document collection in the DataStore. Field names are
snake_case in Python and camelCase on the wire (`numOfReviews`, `orderStatus`,
`pushTokenExpires`), which is what the mobile client reads and writes.

Design decisions:
- Catalog items are a tagged union: Artwork and ArtMaterial share one base with
  the common fields (price, images, reviews) and each implements its own
  availability mutation, so order workflows never branch on the product type.
- `ratings` and `numOfReviews` are derived from `reviews`; only the review
  methods below write them.
- The push-token lease lives on User, but only the push-token service calls
  the lease methods.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

from shared.errors import InsufficientStockError


# Push token lease length, renewed on every successful validation
TOKEN_EXPIRATION_DAYS = 30


def new_id() -> str:
    """Generate a 24-hex-character document identifier."""
    return uuid4().hex[:24]


class Document(BaseModel):
    """Base for every persisted model: camelCase aliases, enums stored as values."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_json(self) -> dict[str, Any]:
        """Serialize the way the API and the JSON fixtures expect."""
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# Enums
# =============================================================================

class ProductType(str, Enum):
    """Tag that tells which catalog collection an item or order line belongs to."""
    ARTWORK = "artwork"
    ARTMAT = "artmat"


class ArtworkStatus(str, Enum):
    AVAILABLE = "available"
    SOLD = "sold"


class OrderStatus(str, Enum):
    """
    Order lifecycle states.

    Processing -> Shipped -> Delivered, with Cancelled reachable from any
    state before Delivered.
    """
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


class NotificationType(str, Enum):
    """What a stored notification points the client at."""
    ARTWORK = "artwork"
    ARTMAT = "artmat"
    GENERAL = "general"
    ORDER = "order"


PAYMENT_PAID = "paid"


# =============================================================================
# Catalog
# =============================================================================

class ImageRef(Document):
    """An image stored on the image host."""
    public_id: str = Field(..., description="Image host identifier, used for deletion")
    url: str = Field(..., description="Retrievable URL")


class Review(Document):
    """A single reviewer's rating of a catalog item."""
    id: str = Field(default_factory=new_id)
    user: str = Field(..., description="Reviewer user id")
    name: str = Field(..., min_length=1, description="Reviewer display name")
    rating: float = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


class OrderLine(Document):
    """
    Snapshot of a catalog item at order time.

    Type-specific fields are copied so later catalog edits do not rewrite
    past orders.
    """
    product_type: ProductType
    quantity: int = Field(default=1, ge=1)
    image: str = Field(default="")
    price: float = Field(..., ge=0, description="Unit price at time of order")
    product: str = Field(..., description="Originating catalog item id")

    # Artwork fields
    title: Optional[str] = None
    artist: Optional[str] = None
    medium: Optional[str] = None

    # Art material fields
    name: Optional[str] = None

    @property
    def line_total(self) -> float:
        return self.price * self.quantity


class CatalogItem(Document):
    """
    Fields and behaviour shared by every sellable item.

    Subclasses set `product_type` and implement the availability hooks.
    """
    product_type: ClassVar[ProductType]
    image_folder: ClassVar[str]
    label: ClassVar[str]

    id: str = Field(default_factory=new_id)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    images: list[ImageRef] = Field(default_factory=list)
    price: float = Field(default=0.0, ge=0)
    ratings: float = Field(default=0)
    num_of_reviews: int = Field(default=0)
    reviews: list[Review] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def display_name(self) -> str:
        raise NotImplementedError

    @property
    def primary_image(self) -> str:
        return self.images[0].url if self.images else ""

    def snapshot(self, quantity: int) -> OrderLine:
        """Build the order line for `quantity` units of this item."""
        return OrderLine(
            product_type=self.product_type,
            quantity=quantity,
            image=self.primary_image,
            price=self.price,
            product=self.id,
            **self._snapshot_fields(),
        )

    def _snapshot_fields(self) -> dict[str, Any]:
        raise NotImplementedError

    def reconciliation_update(self, quantity: int) -> dict[str, Any]:
        """
        Field updates that confirm `quantity` units of this item as ordered.

        Raises InsufficientStockError when the item cannot cover the quantity.
        """
        raise NotImplementedError

    def matches(self, keyword: str) -> bool:
        return keyword.lower() in self.display_name.lower()

    # -------------------------------------------------------------------------
    # Reviews
    # -------------------------------------------------------------------------

    def find_review(self, review_id: str) -> Optional[Review]:
        return next((r for r in self.reviews if r.id == review_id), None)

    def upsert_review(self, user_id: str, name: str, rating: float, comment: str) -> Review:
        """
        Add a review, or update the reviewer's existing one in place.

        One review per reviewer; a second submission changes rating and
        comment without adding to `num_of_reviews`.
        """
        existing = next((r for r in self.reviews if r.user == user_id), None)
        if existing is not None:
            updated = Review(
                id=existing.id, user=user_id, name=existing.name,
                rating=rating, comment=comment,
            )
            self.reviews = [updated if r.id == existing.id else r for r in self.reviews]
            review = updated
        else:
            review = Review(user=user_id, name=name, rating=rating, comment=comment)
            self.reviews = self.reviews + [review]
        self.recompute_ratings()
        return review

    def remove_review(self, review_id: str) -> bool:
        remaining = [r for r in self.reviews if r.id != review_id]
        if len(remaining) == len(self.reviews):
            return False
        self.reviews = remaining
        self.recompute_ratings()
        return True

    def recompute_ratings(self) -> None:
        self.num_of_reviews = len(self.reviews)
        self.ratings = (
            sum(r.rating for r in self.reviews) / len(self.reviews)
            if self.reviews else 0
        )


class Artwork(CatalogItem):
    """A one-of-a-kind piece. Selling it once marks it sold."""
    product_type: ClassVar[ProductType] = ProductType.ARTWORK
    image_folder: ClassVar[str] = "artworks"
    label: ClassVar[str] = "Artwork"

    title: str = Field(..., min_length=1, max_length=100)
    artist: str = Field(..., min_length=1)
    medium: str = Field(..., min_length=1)
    status: ArtworkStatus = Field(default=ArtworkStatus.AVAILABLE)

    @property
    def display_name(self) -> str:
        return self.title

    def _snapshot_fields(self) -> dict[str, Any]:
        return {"title": self.title, "artist": self.artist, "medium": self.medium}

    def reconciliation_update(self, quantity: int) -> dict[str, Any]:
        # Sold regardless of quantity or current status
        return {"status": ArtworkStatus.SOLD.value}


class ArtMaterial(CatalogItem):
    """A stocked supply item."""
    product_type: ClassVar[ProductType] = ProductType.ARTMAT
    image_folder: ClassVar[str] = "artmats"
    label: ClassVar[str] = "Art material"

    name: str = Field(..., min_length=1, max_length=100)
    stock: int = Field(default=0, ge=0)

    @property
    def display_name(self) -> str:
        return self.name

    def _snapshot_fields(self) -> dict[str, Any]:
        return {"name": self.name}

    def reconciliation_update(self, quantity: int) -> dict[str, Any]:
        if self.stock < quantity:
            raise InsufficientStockError(self.id, requested=quantity, available=self.stock)
        return {"stock": self.stock - quantity}


CATALOG_MODELS: dict[ProductType, type[CatalogItem]] = {
    ProductType.ARTWORK: Artwork,
    ProductType.ARTMAT: ArtMaterial,
}


# =============================================================================
# Orders
# =============================================================================

class ShippingInfo(Document):
    address: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    phone_no: str = Field(..., min_length=1)
    postal_code: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)


class PaymentInfo(Document):
    id: Optional[str] = Field(default=None, description="External payment id")
    status: Optional[str] = Field(default=None)


class Order(Document):
    """A placed order and its lifecycle state."""
    id: str = Field(default_factory=new_id)
    user: str = Field(..., description="Owning user id")
    order_items: list[OrderLine] = Field(..., min_length=1)
    shipping_info: ShippingInfo
    payment_info: PaymentInfo = Field(default_factory=PaymentInfo)
    paid_at: Optional[datetime] = None
    items_price: float = Field(default=0.0, ge=0)
    tax_price: float = Field(default=0.0, ge=0)
    shipping_price: float = Field(default=0.0, ge=0)
    total_price: float = Field(default=0.0, ge=0)
    order_status: OrderStatus = Field(default=OrderStatus.PROCESSING)
    delivered_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def short_id(self) -> str:
        """Last six characters of the id, used in customer-facing messages."""
        return self.id[-6:]

    def is_delivered(self) -> bool:
        return self.order_status == OrderStatus.DELIVERED


class CartItem(Document):
    """A cart line as submitted by the client."""
    product_type: ProductType
    product: str = Field(..., description="Catalog item id")
    quantity: int = Field(default=1, ge=1)


# =============================================================================
# Users
# =============================================================================

class User(Document):
    """
    A user account with its push-token lease.

    The lease (token, expiration, last-validated) is absent until the first
    registration and is cleared as a whole.
    """
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=30)
    email: EmailStr
    password_hash: Optional[str] = Field(default=None, exclude=True, repr=False)
    avatar: Optional[ImageRef] = None
    role: Role = Field(default=Role.USER)
    push_token: Optional[str] = None
    push_token_expires: Optional[datetime] = None
    push_token_last_validated: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def is_push_token_expired(self, now: Optional[datetime] = None) -> bool:
        """A missing token or expiration counts as expired."""
        if not self.push_token or not self.push_token_expires:
            return True
        return (now or datetime.utcnow()) > self.push_token_expires

    def set_push_token(self, token: str, now: Optional[datetime] = None) -> None:
        now = now or datetime.utcnow()
        self.push_token = token
        self.push_token_expires = now + timedelta(days=TOKEN_EXPIRATION_DAYS)
        self.push_token_last_validated = now

    def mark_token_as_validated(self, now: Optional[datetime] = None) -> None:
        """Record a successful liveness probe and renew the lease."""
        now = now or datetime.utcnow()
        self.push_token_last_validated = now
        self.push_token_expires = now + timedelta(days=TOKEN_EXPIRATION_DAYS)

    def clear_push_token(self) -> None:
        self.push_token = None
        self.push_token_expires = None
        self.push_token_last_validated = None


# =============================================================================
# Notifications
# =============================================================================

class Notification(Document):
    """Append-only record of a sent notification."""
    id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    sent_at: datetime = Field(default_factory=datetime.utcnow)
    data: dict[str, Any] = Field(default_factory=dict, description="Client navigation payload")
    notification_type: NotificationType = Field(default=NotificationType.GENERAL)
    event_date: Optional[datetime] = None
