"""Shared BDD fixtures and step definitions for the escrow domain."""

import pytest
from escrow.operations import confirm_delivery, open_dispute, pay_order, place_order, register_listing, ship_order
from escrow.order.order import Order
from protean import current_domain
from protean.exceptions import ValidationError
from pytest_bdd import given, parsers, then

BUYER = "buyer-001"
SELLER = "seller-001"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


def _order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def _placed(amount, days=None):
    listing_id = register_listing(SELLER, "Road Bike", price=amount, quantity=1)
    return place_order(BUYER, [{"listing_id": listing_id, "quantity": 1}], auto_release_days=days)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a pending order worth {amount:f} ZAR"), target_fixture="order_id")
def pending_order(amount):
    return _placed(amount)


@given(parsers.cfparse("a paid order worth {amount:f} ZAR"), target_fixture="order_id")
def paid_order(amount):
    order_id = _placed(amount)
    pay_order(order_id, BUYER, amount)
    return order_id


@given(parsers.cfparse("a shipped order worth {amount:f} ZAR"), target_fixture="order_id")
def shipped_order(amount):
    order_id = _placed(amount)
    pay_order(order_id, BUYER, amount)
    ship_order(order_id, SELLER, tracking_number="TRK-BDD")
    return order_id


@given(
    parsers.cfparse("a delivered order worth {amount:f} ZAR with a {days:d} day release period"),
    target_fixture="order_id",
)
def delivered_order(amount, days):
    order_id = _placed(amount, days)
    pay_order(order_id, BUYER, amount)
    ship_order(order_id, SELLER)
    confirm_delivery(order_id, BUYER)
    return order_id


@given(parsers.cfparse('the buyer opens a dispute because "{reason}"'), target_fixture="dispute_id")
def buyer_opens_dispute(order_id, reason):
    return open_dispute(order_id, BUYER, reason)


@given(parsers.cfparse("{days:d} days have passed"))
def days_pass(clock, days):
    clock.advance(days=days)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def order_status_is(order_id, status):
    assert _order(order_id).status == status


@then(parsers.cfparse('the payment status is "{status}"'))
def payment_status_is(order_id, status):
    assert _order(order_id).payment_status == status


@then("the funds are still held in escrow")
def funds_still_held(order_id):
    assert _order(order_id).funds_held is True


@then("the funds have been released to the seller")
def funds_released(order_id):
    order = _order(order_id)
    assert order.funds_held is False
    assert order.funds_released_at is not None


@then("the operation is rejected")
def operation_rejected(error):
    assert isinstance(error["exc"], ValidationError)


@then(parsers.cfparse('the order history has {count:d} entry containing "{text}"'))
@then(parsers.cfparse('the order history has {count:d} entries containing "{text}"'))
def history_entries_containing(order_id, count, text):
    matching = [e for e in _order(order_id).timeline() if text in (e.note or "")]
    assert len(matching) == count
