"""Tests for the per-order lock registry."""

import threading

import pytest
from escrow.operations import confirm_delivery, pay_order, place_order, register_listing, release_funds, ship_order
from escrow.order.locking import active_lock_count, order_lock

BUYER = "buyer-001"
SELLER = "seller-001"


class TestLockLifetime:
    def test_entry_exists_only_while_held(self):
        with order_lock("ord-1"):
            assert active_lock_count() == 1
        assert active_lock_count() == 0

    def test_listing_locks_are_counted_with_the_order(self):
        with order_lock("ord-1", ["lst-1", "lst-2"]):
            assert active_lock_count() == 3
        assert active_lock_count() == 0

    def test_released_when_the_body_raises(self):
        with pytest.raises(RuntimeError):
            with order_lock("ord-1", ["lst-1"]):
                raise RuntimeError("boom")
        assert active_lock_count() == 0

    def test_many_orders_leave_nothing_behind(self):
        for n in range(20):
            listing_id = register_listing(SELLER, f"Item {n}", price=50.00, quantity=1)
            order_id = place_order(BUYER, [{"listing_id": listing_id, "quantity": 1}])
            pay_order(order_id, BUYER, 50.00)
            ship_order(order_id, SELLER)
            confirm_delivery(order_id, BUYER)
            release_funds(order_id, BUYER)

        assert active_lock_count() == 0


class TestLockContention:
    def test_waiter_keeps_the_entry_alive(self):
        entered = threading.Event()
        leave = threading.Event()
        seen = []

        def holder():
            with order_lock("ord-1"):
                entered.set()
                leave.wait(timeout=5)

        def waiter():
            with order_lock("ord-1"):
                seen.append(active_lock_count())

        first = threading.Thread(target=holder)
        first.start()
        entered.wait(timeout=5)
        second = threading.Thread(target=waiter)
        second.start()
        leave.set()
        first.join(timeout=5)
        second.join(timeout=5)

        assert seen == [1]
        assert active_lock_count() == 0

    def test_overlapping_listings_in_either_order_do_not_deadlock(self):
        barrier = threading.Barrier(2)
        done = []

        def lock(order_id, listing_ids):
            barrier.wait()
            for _ in range(50):
                with order_lock(order_id, listing_ids):
                    pass
            done.append(order_id)

        threads = [
            threading.Thread(target=lock, args=("ord-1", ["lst-a", "lst-b"])),
            threading.Thread(target=lock, args=("ord-2", ["lst-b", "lst-a"])),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert sorted(done) == ["ord-1", "ord-2"]
        assert active_lock_count() == 0
