"""
Tests for notification templates.

These tests verify that templates render correctly with variable substitution.
"""

import pytest

from shared.models import OrderStatus
from shared.templates import (
    TEMPLATES,
    NotificationTrigger,
    PushTemplate,
    format_price,
    get_template,
    order_status_message,
    render_notification,
)


class TestPushTemplate:
    """Tests for PushTemplate class."""

    def test_render(self):
        template = PushTemplate(
            trigger=NotificationTrigger.ORDER_UPDATE,
            title="Order {order_id}",
            body="{message}",
        )

        assert template.render(order_id="42", message="Shipped") == ("Order 42", "Shipped")

    def test_render_missing_variable_raises(self):
        template = get_template(NotificationTrigger.ARTWORK_PROMOTION)

        with pytest.raises(KeyError):
            template.render(title="Only a title")


class TestTemplates:
    """Tests for the built-in templates."""

    def test_every_trigger_has_a_template(self):
        for trigger in NotificationTrigger:
            assert trigger in TEMPLATES

    def test_artwork_promotion(self):
        title, body = render_notification(
            NotificationTrigger.ARTWORK_PROMOTION,
            title="Quiet Harbor",
            artist="Elena Cruz",
            price="80",
        )

        assert title == "New Artwork: Quiet Harbor"
        assert body == 'Discover "Quiet Harbor" by Elena Cruz, now available for ₱80'

    def test_artmat_promotion(self):
        title, body = render_notification(
            NotificationTrigger.ARTMAT_PROMOTION,
            name="Gesso",
            description_excerpt="Acrylic primer",
        )

        assert title == "New Art Material: Gesso"
        assert body == "Check out our new Gesso - Acrylic primer..."

    def test_order_update(self):
        title, body = render_notification(
            NotificationTrigger.ORDER_UPDATE,
            order_id="ord-001",
            message="On its way",
        )

        assert title == "Order Update: #ord-001"
        assert body == "On its way"


class TestOrderStatusMessage:
    """Tests for per-status order messages."""

    def test_uses_last_six_characters(self):
        message = order_status_message("665f1c2e9b1d4a0012ab34cd", OrderStatus.SHIPPED.value)

        assert message == "Great news! Your order #ab34cd has shipped and is on its way to you."

    @pytest.mark.parametrize("status", [s.value for s in OrderStatus])
    def test_every_status_has_a_message(self, status):
        assert "#ab34cd" in order_status_message("665f1c2e9b1d4a0012ab34cd", status)

    def test_unknown_status_uses_default(self):
        message = order_status_message("665f1c2e9b1d4a0012ab34cd", "Returned")

        assert message == "Your order #ab34cd has been updated to: Returned"


class TestFormatPrice:
    def test_whole_amount(self):
        assert format_price(150.0) == "150"

    def test_fractional_amount(self):
        assert format_price(12.5) == "12.50"
