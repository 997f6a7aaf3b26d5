"""
Tests for core.models module.
"""
import pytest
from datetime import datetime, timezone, timedelta

from core.models import (
    OrderStatus,
    PaymentMethod,
    Channel,
    Product,
    Customer,
    OrderItem,
    Order,
    parse_timestamp,
)


class TestOrderStatus:
    """Tests for OrderStatus enum."""

    def test_values(self):
        """values should contain all six legal statuses."""
        assert OrderStatus.values() == {
            "pending", "confirmed", "processing", "completed", "cancelled", "refunded",
        }

    def test_revenue_statuses(self):
        """Completed family excludes cancelled and refunded."""
        statuses = OrderStatus.revenue_statuses()
        assert OrderStatus.PENDING in statuses
        assert OrderStatus.COMPLETED in statuses
        assert OrderStatus.CANCELLED not in statuses
        assert OrderStatus.REFUNDED not in statuses


class TestPaymentMethod:
    """Tests for PaymentMethod enum."""

    def test_missing_defaults_to_cash(self):
        assert PaymentMethod.parse(None) is PaymentMethod.CASH
        assert PaymentMethod.parse("") is PaymentMethod.CASH

    def test_case_insensitive(self):
        assert PaymentMethod.parse("UPI") is PaymentMethod.UPI

    def test_unknown_is_other(self):
        assert PaymentMethod.parse("crypto") is PaymentMethod.OTHER

    def test_is_digital(self):
        assert not PaymentMethod.CASH.is_digital
        assert PaymentMethod.CARD.is_digital
        assert PaymentMethod.OTHER.is_digital


class TestParseTimestamp:
    """Tests for parse_timestamp helper."""

    def test_zulu_string(self):
        result = parse_timestamp("2026-03-10T10:00:00Z")
        assert result == datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        result = parse_timestamp("2026-03-10T10:00:00+05:30")
        assert result == datetime(2026, 3, 10, 4, 30, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_naive_taken_as_utc(self):
        result = parse_timestamp(datetime(2026, 3, 10, 10, 0))
        assert result.tzinfo == timezone.utc
        assert result.hour == 10

    def test_invalid(self):
        assert parse_timestamp("not a date") is None
        assert parse_timestamp(None) is None


class TestProduct:
    """Tests for Product dataclass."""

    def test_from_record_defaults(self):
        """Missing thresholds fall back to the named defaults."""
        product = Product.from_record({"id": 7, "name": "Salt", "price": "12.5"})
        assert product.id == "7"
        assert product.price == 12.5
        assert product.stock == 0
        assert product.cost_price is None
        assert product.is_active is True
        assert product.min_stock_level == 5
        assert product.reorder_point == 10

    def test_from_record_camel_case(self):
        product = Product.from_record({
            "id": "p9", "name": "Oil", "price": 200, "stock": 3,
            "costPrice": 150, "isActive": False, "minStockLevel": 2, "reorderPoint": 6,
        })
        assert product.cost_price == 150.0
        assert product.is_active is False
        assert product.min_stock_level == 2
        assert product.reorder_point == 6

    def test_negative_stock_clamped(self):
        assert Product.from_record({"id": "p", "name": "x", "price": 1, "stock": -4}).stock == 0

    def test_effective_cost_price_recorded(self):
        assert Product(id="p", name="x", price=100, cost_price=45).effective_cost_price() == 45

    def test_effective_cost_price_default_ratio(self):
        """Without a cost price the default is 60% of the sell price."""
        assert Product(id="p", name="x", price=100).effective_cost_price() == pytest.approx(60.0)

    def test_category_name(self):
        assert Product(id="p", name="x", price=1).category_name == "Uncategorized"
        assert Product(id="p", name="x", price=1, category="Home").category_name == "Home"


class TestCustomer:
    """Tests for Customer dataclass."""

    def test_from_record(self):
        customer = Customer.from_record({
            "id": 5, "name": "Meera", "email": "", "createdAt": "2026-01-01T00:00:00Z",
            "tags": ["wholesale"],
        })
        assert customer.id == "5"
        assert customer.email is None
        assert customer.created_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert customer.tags == ["wholesale"]


class TestOrderItem:
    """Tests for OrderItem dataclass."""

    def test_from_record_aliases(self):
        item = OrderItem.from_record({"productId": 3, "qty": 2, "price": 9.5})
        assert item.product_id == "3"
        assert item.quantity == 2
        assert item.line_total == 19.0

    def test_nested_product(self):
        item = OrderItem.from_record({"quantity": 1, "price": 5, "product": {"id": "p1", "name": "Rice"}})
        assert item.product_id == "p1"
        assert item.name == "Rice"

    def test_deleted_product_line(self):
        item = OrderItem.from_record({"name": "Discontinued mug", "quantity": 1, "price": 80})
        assert item.product_id is None
        assert item.name == "Discontinued mug"


class TestOrder:
    """Tests for Order dataclass."""

    def test_from_record(self, make_order):
        order = Order.from_record(make_order("o1", 100.0, "COMPLETED", customer_id=42))
        assert order.id == "o1"
        assert order.status == "completed"
        assert order.customer_id == "42"
        assert order.payment_method is PaymentMethod.CASH
        assert order.created_at == datetime(2026, 3, 10, 10, 0, tzinfo=timezone.utc)

    def test_unparseable_total(self, make_order):
        order = Order.from_record(make_order("o1", "n/a", items=[]))
        assert order.total == 0.0

    def test_missing_status_is_pending(self):
        order = Order.from_record({"id": "o", "total": 10, "items": []})
        assert order.status == "pending"

    def test_channel_follows_customer_link(self, make_order):
        """Channel depends only on the customer reference, not the payment method."""
        online = Order.from_record(make_order("a", 10, customer_id="c1", payment_method="cash"))
        offline = Order.from_record(make_order("b", 10, payment_method="upi"))
        assert online.channel is Channel.ONLINE
        assert offline.channel is Channel.OFFLINE

    def test_status_classification(self, make_order):
        assert Order.from_record(make_order("a", 10, "processing")).is_revenue
        assert Order.from_record(make_order("b", 10, "refunded")).is_refund
        assert Order.from_record(make_order("c", 10, "cancelled")).is_cancelled

    def test_item_count(self, make_order):
        order = Order.from_record(make_order("a", 10, items=[
            {"product_id": "p1", "quantity": 2, "price": 2},
            {"product_id": "p2", "quantity": 3, "price": 2},
        ]))
        assert order.item_count == 5

    def test_is_within_period_inclusive(self, make_order):
        order = Order.from_record(make_order("a", 10, created_at="2026-03-10T00:00:00Z"))
        start = datetime(2026, 3, 10, tzinfo=timezone.utc)
        assert order.is_within_period(start, start + timedelta(days=1))
        assert not order.is_within_period(start + timedelta(seconds=1), start + timedelta(days=1))
