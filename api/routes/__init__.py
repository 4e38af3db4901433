"""HTTP routers, one module per area."""

from api.routes.accounts import router as accounts_router
from api.routes.catalog import artmat_router, artwork_router
from api.routes.notifications import router as notifications_router
from api.routes.orders import router as orders_router

__all__ = [
    "accounts_router",
    "artmat_router",
    "artwork_router",
    "notifications_router",
    "orders_router",
]
