"""
Shared pytest fixtures for the art marketplace tests.

These fixtures provide consistent test data and reset state between tests.
Time-dependent tests run against a fixed clock, NOW, which the push-token
leases in data/users.json are arranged around.
"""

from datetime import datetime
from pathlib import Path

import pytest

from shared.config import Settings
from shared.data_store import DataStore
from shared.image_host import ImageUpload, MockImageHost
from shared.push_gateway import MockPushGateway
from workflows.event_bus import EventBus


NOW = datetime(2024, 6, 15, 12, 0, 0)


@pytest.fixture
def data_dir() -> Path:
    """Path to the fixture data directory."""
    return Path(__file__).parent.parent / "data"


@pytest.fixture
def data_store(data_dir: Path) -> DataStore:
    """
    Fresh DataStore instance for each test.

    Uses the real JSON fixtures but creates a new instance
    so tests don't interfere with each other.
    """
    return DataStore(data_dir=data_dir)


@pytest.fixture
def event_bus() -> EventBus:
    """Fresh event bus for each test."""
    return EventBus()


@pytest.fixture
def gateway() -> MockPushGateway:
    """Mock push gateway; Carlo's device is no longer registered."""
    return MockPushGateway(unregistered_tokens={"ExponentPushToken[carlo-device-0006]"})


@pytest.fixture
def image_host() -> MockImageHost:
    return MockImageHost()


@pytest.fixture
def settings(data_dir: Path) -> Settings:
    """Settings that never read the environment."""
    return Settings(data_dir=data_dir, jwt_secret="test-secret", jwt_expires_days=7)


@pytest.fixture
def clock():
    """Fixed clock at NOW."""
    return lambda: NOW


@pytest.fixture
def jpeg() -> ImageUpload:
    """A small JPEG-typed upload."""
    return ImageUpload(content=b"\xff\xd8\xff\xe0fake-jpeg", filename="photo.jpg", content_type="image/jpeg")


# =============================================================================
# User Fixtures
# =============================================================================

@pytest.fixture
def maria_id() -> str:
    """Maria: regular user, valid token last probed 5 days ago, owns ord-001 and ord-003."""
    return "user-001"


@pytest.fixture
def juan_id() -> str:
    """Juan: regular user, token probed this morning, owns ord-002 and ord-005."""
    return "user-002"


@pytest.fixture
def ana_id() -> str:
    """Ana: token lease expired on 2024-06-01."""
    return "user-003"


@pytest.fixture
def paolo_id() -> str:
    """Paolo: token with an invalid format."""
    return "user-004"


@pytest.fixture
def liza_id() -> str:
    """Liza: no push token, owns ord-004."""
    return "user-005"


@pytest.fixture
def carlo_id() -> str:
    """Carlo: well-formed token the gateway reports as unregistered."""
    return "user-006"


@pytest.fixture
def admin_id() -> str:
    return "admin-001"


# =============================================================================
# Order Fixtures
# =============================================================================

@pytest.fixture
def processing_order_id() -> str:
    """
    Maria's Processing order: art-001 x1 and mat-001 x2 (stock 10).
    Totals 80 / 8 / 15 / 103.
    """
    return "ord-001"


@pytest.fixture
def shipped_order_id() -> str:
    """Juan's Shipped order: mat-002 x1."""
    return "ord-002"


@pytest.fixture
def delivered_order_id() -> str:
    """Maria's Delivered order."""
    return "ord-003"


@pytest.fixture
def short_stock_order_id() -> str:
    """
    Liza's Processing order: art-002 x1 and mat-002 x3, but mat-002 has only 2
    in stock. Confirming it must fail without touching either item.
    """
    return "ord-004"


@pytest.fixture
def cancelled_order_id() -> str:
    """Juan's Cancelled order."""
    return "ord-005"
