"""
FastAPI application for the art marketplace backend.

Every response is `{"success": bool, ...}`. Domain errors raised by the
services carry their own status code and become
`{"success": false, "message": ...}`; malformed request bodies become 400 in
the same shape, and anything unexpected becomes 500.

Run with:
    uvicorn api.main:app --reload

Then visit http://localhost:8000/docs for interactive API documentation.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.config import get_settings

# Configure logging
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s",
    datefmt="%H:%M:%S",
)

from api.dependencies import get_dispatcher
from api.routes import (
    accounts_router,
    artmat_router,
    artwork_router,
    notifications_router,
    orders_router,
)
from shared.errors import MarketplaceError

logger = logging.getLogger("api")


# Application lifespan
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    logger.info("Starting Art Marketplace API")
    get_dispatcher()
    yield
    logger.info("Shutting down")


# Create the FastAPI app
app = FastAPI(
    title="Art Marketplace API",
    description="""
    Backend for an art marketplace: artworks, art materials, orders and push
    notifications for the mobile client.

    ## Areas

    - `/artworks`, `/artmats` - Catalog browsing, admin CRUD and reviews
    - `/register`, `/login`, `/me` - Accounts
    - `/order/*`, `/orders/me`, `/admin/orders` - Orders and the status workflow
    - `/save-push-token`, `/cleanup-tokens`, `/promote-*` - Push notifications
    """,
    version="1.0.0",
    lifespan=lifespan,
)


# =============================================================================
# Error envelope
# =============================================================================

@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        parts.append(f"{location}: {error['msg']}" if location else error["msg"])
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": "; ".join(parts) or "Invalid request"},
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal Server Error."},
    )


# =============================================================================
# Health Check
# =============================================================================

@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint."""
    return {"success": True, "status": "healthy", "service": "art-marketplace"}


app.include_router(artwork_router)
app.include_router(artmat_router)
app.include_router(accounts_router)
app.include_router(orders_router)
app.include_router(notifications_router)
