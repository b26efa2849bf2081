"""Unit tests for menu session models and currency formatting."""
import pytest
from pydantic import ValidationError

from diner_session.services.menu_session.currency import format_price, get_currency_symbol
from diner_session.services.menu_session.models import (
    OrderLineItem,
    OrderStatus,
    OrderSummary,
    PlaceOrderRequest,
    SessionInitData,
    SessionStatusData,
    TERMINAL_STATUSES,
)
from diner_session.services.menu_session.poller import has_active_orders, should_poll


class TestOrderSummary:
    """Test order status derivation."""

    @pytest.mark.parametrize("status", ["pending", "preparing", "ready"])
    def test_active_statuses(self, order_factory, status):
        """Test non-terminal statuses are active."""
        assert OrderSummary.model_validate(order_factory(1, status)).is_active is True

    @pytest.mark.parametrize("status", ["delivered", "completed", "cancelled"])
    def test_terminal_statuses(self, order_factory, status):
        """Test terminal statuses are never active."""
        order = OrderSummary.model_validate(order_factory(1, status))
        assert order.is_active is False
        assert order.status in TERMINAL_STATUSES

    def test_is_active_follows_status_not_server_flag(self, order_factory):
        """Test a contradictory is_active flag is corrected from status."""
        order = OrderSummary.model_validate(order_factory(1, "completed", is_active=True))
        assert order.is_active is False

    def test_unknown_status_rejected(self, order_factory):
        """Test statuses outside the lifecycle fail validation."""
        with pytest.raises(ValidationError):
            OrderSummary.model_validate(order_factory(1, "lost"))

    def test_mixed_list_has_one_active(self, order_factory):
        """Test ['pending', 'completed', 'cancelled'] yields exactly one active order."""
        orders = [
            OrderSummary.model_validate(order_factory(i, status))
            for i, status in enumerate(["pending", "completed", "cancelled"], start=1)
        ]

        assert [o.status for o in orders if o.is_active] == [OrderStatus.PENDING]
        assert has_active_orders(orders) is True
        assert should_poll(orders, "tok") is True
        assert should_poll(orders, None) is False

    def test_formatted_total_accepts_string(self, order_factory):
        """Test numeric-string totals are formatted with the currency symbol."""
        order = OrderSummary.model_validate(order_factory(1, total="1450.5", currency="USD"))
        assert order.formatted_total == "$1450.50"

    def test_stage_timestamps_optional(self, order_factory):
        """Test stage timestamps are parsed when present."""
        order = OrderSummary.model_validate(
            order_factory(1, "ready", preparing_at="2026-01-01T12:05:00Z", ready_at="2026-01-01T12:20:00Z")
        )
        assert order.preparing_at == "2026-01-01T12:05:00Z"
        assert order.ready_at == "2026-01-01T12:20:00Z"
        assert order.delivered_at is None


class TestOrderLineItem:
    """Test cart line serialization."""

    def test_variation_uses_wire_alias(self):
        """Test selected variation is sent as selectedVariation."""
        item = OrderLineItem(
            id=2, name="Iced Milo", quantity=2, unit_price=450,
            selected_variation={"name": "Large", "price": 100},
        )
        payload = PlaceOrderRequest(items=[item], currency="LKR", notes="").to_payload()

        assert payload["items"][0]["selectedVariation"] == {"name": "Large", "price": 100.0}
        assert "selected_variation" not in payload["items"][0]

    def test_line_total_includes_variation(self):
        """Test line total adds the variation delta per unit."""
        item = OrderLineItem.model_validate(
            {"id": 2, "name": "Iced Milo", "quantity": 2, "unit_price": 450,
             "selectedVariation": {"name": "Large", "price": 100}}
        )
        assert item.line_total == 1100


class TestPayloads:
    """Test session payload decoding."""

    def test_init_orders_active_first(self, order_factory):
        """Test init concatenates active then recent orders."""
        data = SessionInitData.model_validate({
            "session_token": "tok",
            "active_orders": [order_factory(2)],
            "recent_orders": [order_factory(1, "completed")],
        })
        assert [o.id for o in data.all_orders()] == [2, 1]

    def test_null_lists_become_empty(self):
        """Test null order lists decode as empty lists."""
        data = SessionStatusData.model_validate({"active_orders": None, "done_orders": None})
        assert data.all_orders() == []

        init = SessionInitData.model_validate({"session_token": "tok", "recent_orders": None})
        assert init.all_orders() == []


class TestCurrency:
    """Test currency helpers."""

    def test_symbols(self):
        """Test known, default and unknown currency codes."""
        assert get_currency_symbol("EUR") == "€"
        assert get_currency_symbol(None) == "Rs"
        assert get_currency_symbol("XXX") == "Rs"

    def test_format_price(self):
        """Test numbers and numeric strings format to two decimals."""
        assert format_price(1250, "LKR") == "Rs1250.00"
        assert format_price("3.5", "GBP") == "£3.50"
