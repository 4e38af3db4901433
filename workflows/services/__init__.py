"""
Domain services of the marketplace.

- Ordering: orders, pricing, lifecycle and stock reconciliation
- Push tokens: device token leases and the cleanup sweep
- Catalog: artworks, art materials and their reviews
- Accounts: users, credentials and the authorization table

Ordering publishes events; it does not know about the notification dispatcher.
"""

from workflows.services.ordering import OrderingService
from workflows.services.push_tokens import PushTokenService
from workflows.services.catalog import CatalogService
from workflows.services.accounts import AccountService

__all__ = [
    "OrderingService",
    "PushTokenService",
    "CatalogService",
    "AccountService",
]
