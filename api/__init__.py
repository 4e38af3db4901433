"""
JSON REST API for the art marketplace.

This package provides a single FastAPI application that exposes:
- Catalog endpoints for artworks and art materials, with reviews
- Account, profile and user administration endpoints
- Order endpoints, including the status workflow
- Push-token and notification endpoints
"""

from api.main import app

__all__ = ["app"]
