"""
Error kinds raised by the marketplace services.

Every error carries the HTTP status it maps to, so the API layer can turn any
MarketplaceError into the standard `{"success": false, "message": ...}` envelope
without knowing which service raised it.
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message}


class ValidationError(MarketplaceError):
    """Missing or malformed input. User-correctable."""

    status_code = 400

    @classmethod
    def from_pydantic(cls, exc) -> "ValidationError":
        """Flatten a pydantic validation error into one readable message."""
        parts = []
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()))
            parts.append(f"{location}: {error['msg']}" if location else error["msg"])
        return cls("; ".join(parts) or "Invalid input")


class NotFoundError(MarketplaceError):
    """A referenced entity does not exist."""

    status_code = 404


class AuthError(MarketplaceError):
    """Missing or invalid credential."""

    status_code = 401


class ForbiddenError(AuthError):
    """Authenticated, but the role or ownership does not allow the operation."""

    status_code = 403


class InsufficientStockError(MarketplaceError):
    """
    Raised during stock reconciliation when a material line asks for more
    units than the catalog holds.
    """

    status_code = 400

    def __init__(self, product_id: str, requested: int, available: int):
        super().__init__(
            f"Not enough stock available for product {product_id}: "
            f"requested {requested}, available {available}"
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["productId"] = self.product_id
        return data


class OrderStateError(MarketplaceError):
    """An order status change that the lifecycle does not allow."""

    status_code = 400


class GatewayError(MarketplaceError):
    """Push gateway or image host failure."""

    status_code = 500

    def __init__(self, message: str, service: Optional[str] = None):
        super().__init__(message)
        self.service = service
