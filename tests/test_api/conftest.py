"""
Fixtures for the HTTP tests.

Every test gets a TestClient wired to fresh state: the fixture store, a new
event bus, the mock gateway and image host, and the fixed clock. Fixture
users have no passwords, so requests authenticate with tokens minted
directly for their ids.
"""

import pytest
from fastapi.testclient import TestClient

from api.dependencies import reset_api_state
from api.main import app
from workflows.services.accounts import create_access_token


@pytest.fixture
def api_client(data_store, gateway, image_host, event_bus, settings, clock):
    """Create a test client with fresh state."""
    reset_api_state(
        data_store=data_store,
        gateway=gateway,
        image_host=image_host,
        event_bus=event_bus,
        settings=settings,
        clock=clock,
    )
    yield TestClient(app)
    reset_api_state()


@pytest.fixture
def auth(settings):
    """Build an Authorization header for a user id."""
    def headers(user_id: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user_id, settings)}"}
    return headers
