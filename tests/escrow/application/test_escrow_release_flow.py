"""Application tests for buyer and administrator escrow release."""

import pytest
from escrow.exceptions import InvalidStateTransitionError
from escrow.operations import open_dispute, release_funds
from escrow.order.order import ActorRole, Order, OrderStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError

BUYER = "buyer-001"
SELLER = "seller-001"
ADMIN = "admin-001"


class TestBuyerRelease:
    def test_release_after_delivery(self, delivered_order_id, clock):
        clock.advance(days=1)
        order = release_funds(delivered_order_id, BUYER)

        assert order.status == OrderStatus.COMPLETED.value
        assert order.funds_held is False
        assert order.funds_released_at == clock.now()

    def test_release_before_delivery_is_rejected(self, shipped_order_id):
        with pytest.raises(InvalidStateTransitionError):
            release_funds(shipped_order_id, BUYER)

        order = current_domain.repository_for(Order).get(shipped_order_id)
        assert order.funds_held is True
        assert order.status == OrderStatus.SHIPPED.value

    def test_double_release_is_rejected(self, delivered_order_id):
        release_funds(delivered_order_id, BUYER)
        with pytest.raises(InvalidStateTransitionError):
            release_funds(delivered_order_id, BUYER)

        order = current_domain.repository_for(Order).get(delivered_order_id)
        completed = [e for e in order.timeline() if e.status == OrderStatus.COMPLETED.value]
        assert len(completed) == 1

    def test_seller_cannot_release_to_themselves(self, delivered_order_id):
        with pytest.raises(ObjectNotFoundError):
            release_funds(delivered_order_id, SELLER)


class TestAdminRelease:
    def test_override_before_delivery(self, paid_order_id):
        order = release_funds(paid_order_id, ADMIN, actor_role=ActorRole.ADMIN.value)

        assert order.status == OrderStatus.COMPLETED.value
        entry = order.timeline()[-1]
        assert entry.actor_role == ActorRole.ADMIN.value
        assert "override before delivery" in entry.note

    def test_member_role_cannot_use_admin_channel(self, paid_order_id):
        with pytest.raises(ObjectNotFoundError):
            release_funds(paid_order_id, ADMIN)

    def test_blocked_by_open_dispute(self, delivered_order_id):
        open_dispute(delivered_order_id, BUYER, "Wrong colour")
        with pytest.raises(InvalidStateTransitionError):
            release_funds(delivered_order_id, ADMIN, actor_role=ActorRole.ADMIN.value)

    def test_unpaid_order(self, placed_order_id):
        with pytest.raises(InvalidStateTransitionError):
            release_funds(placed_order_id, ADMIN, actor_role=ActorRole.ADMIN.value)
