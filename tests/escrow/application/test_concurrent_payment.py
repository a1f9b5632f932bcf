"""Concurrent payments competing for the last unit of a listing."""

import threading
import time

from escrow.domain import escrow
from escrow.listing.listing import Listing
from escrow.operations import pay_order, place_order
from escrow.order.locking import active_lock_count
from escrow.order.order import Order, OrderStatus, PaymentStatus
from protean import current_domain
from protean.exceptions import ValidationError

FIRST_BUYER = "buyer-001"
SECOND_BUYER = "buyer-002"


def _slow_charges(gateway, monkeypatch):
    original = gateway.create_charge

    def create_charge(**kwargs):
        time.sleep(0.2)
        return original(**kwargs)

    monkeypatch.setattr(gateway, "create_charge", create_charge)


def _race(*callables):
    barrier = threading.Barrier(len(callables))
    outcomes = []

    def run(fn):
        with escrow.domain_context():
            barrier.wait()
            try:
                outcomes.append(("ok", fn()))
            except ValidationError as exc:
                outcomes.append(("rejected", exc))

    threads = [threading.Thread(target=run, args=(fn,)) for fn in callables]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    return outcomes


class TestLastUnitRace:
    def test_only_one_buyer_is_charged(self, listing_id, gateway, monkeypatch):
        first = place_order(FIRST_BUYER, [{"listing_id": listing_id, "quantity": 1}])
        second = place_order(SECOND_BUYER, [{"listing_id": listing_id, "quantity": 1}])
        _slow_charges(gateway, monkeypatch)

        outcomes = _race(
            lambda: pay_order(first, FIRST_BUYER, 1000.00),
            lambda: pay_order(second, SECOND_BUYER, 1000.00),
        )

        assert sorted(kind for kind, _ in outcomes) == ["ok", "rejected"]
        assert len(gateway.calls) == 1

        repo = current_domain.repository_for(Order)
        orders = [repo.get(first), repo.get(second)]
        assert sorted(o.status for o in orders) == [OrderStatus.CONFIRMED.value, OrderStatus.PENDING.value]

        [winner] = [o for o in orders if o.status == OrderStatus.CONFIRMED.value]
        [loser] = [o for o in orders if o.status == OrderStatus.PENDING.value]
        assert winner.payment_status == PaymentStatus.COMPLETED.value
        assert len(winner.payments) == 1
        assert len(loser.payments) == 0

        assert current_domain.repository_for(Listing).get(listing_id).quantity == 0
        assert active_lock_count() == 0

    def test_rejected_buyer_hears_why(self, listing_id, gateway, monkeypatch):
        first = place_order(FIRST_BUYER, [{"listing_id": listing_id, "quantity": 1}])
        second = place_order(SECOND_BUYER, [{"listing_id": listing_id, "quantity": 1}])
        _slow_charges(gateway, monkeypatch)

        outcomes = _race(
            lambda: pay_order(first, FIRST_BUYER, 1000.00),
            lambda: pay_order(second, SECOND_BUYER, 1000.00),
        )

        [(_, error)] = [outcome for outcome in outcomes if outcome[0] == "rejected"]
        assert "listing_id" in error.messages or "quantity" in error.messages
