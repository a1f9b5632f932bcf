"""Tests for Order and OrderPricing invariants."""

import pytest
from escrow.order.order import Order, OrderPricing
from protean.exceptions import ValidationError


def _order():
    return Order.place(
        buyer_id="buyer-001",
        seller_id="seller-001",
        items_data=[{"listing_id": "lst-001", "product_name": "Camera", "unit_price": 100.0, "quantity": 1}],
    )


class TestPricing:
    def test_total_must_match_components(self):
        with pytest.raises(ValidationError) as exc:
            OrderPricing(subtotal=100.0, tax=15.0, shipping=0.0, discount=0.0, total=100.0, currency="ZAR")
        assert "total" in exc.value.messages

    def test_negative_amounts_rejected(self):
        with pytest.raises(ValidationError):
            OrderPricing(subtotal=100.0, tax=-5.0, shipping=0.0, discount=0.0, total=95.0, currency="ZAR")

    def test_valid_pricing(self):
        pricing = OrderPricing(subtotal=100.0, tax=15.0, shipping=50.0, discount=10.0, total=155.0, currency="ZAR")
        assert pricing.total == 155.0


class TestOrderInvariants:
    def test_funds_cannot_be_marked_released_without_releasing_payments(self):
        order = _order()
        order.record_payment(100.0, "Credit_Card", succeeded=True, actor_id="buyer-001")
        with pytest.raises(ValidationError):
            order.funds_held = False

    def test_seller_cannot_become_buyer(self):
        order = _order()
        with pytest.raises(ValidationError):
            order.seller_id = "buyer-001"

    def test_timestamps_cannot_go_backwards(self, clock):
        order = _order()
        order.record_payment(100.0, "Credit_Card", succeeded=True, actor_id="buyer-001")
        clock.advance(days=1)
        order.ship("seller-001")
        clock.advance(days=1)
        with pytest.raises(ValidationError):
            order.paid_at = clock.now()
