"""Application tests for opening, progressing and resolving disputes."""

import pytest
from escrow.dispute.dispute import Dispute, DisputeParty, DisputeStatus
from escrow.exceptions import InvalidStateTransitionError
from escrow.listing.listing import Listing, ListingStatus
from escrow.operations import (
    add_dispute_note,
    close_dispute,
    escalate_dispute,
    open_dispute,
    release_funds,
    request_dispute_evidence,
    resolve_dispute,
    start_dispute_review,
    submit_dispute_evidence,
)
from escrow.order.order import ActorRole, DisputeOutcome, Order, OrderStatus, PaymentStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError

BUYER = "buyer-001"
SELLER = "seller-001"
ADMIN = "admin-001"


def _order(order_id) -> Order:
    return current_domain.repository_for(Order).get(order_id)


def _dispute(dispute_id) -> Dispute:
    return current_domain.repository_for(Dispute).get(dispute_id)


class TestOpenDispute:
    def test_buyer_opens_dispute(self, paid_order_id):
        dispute_id = open_dispute(paid_order_id, BUYER, "Item not as described", evidence_url="https://x.test/1.jpg")

        dispute = _dispute(dispute_id)
        assert dispute.status == DisputeStatus.OPEN.value
        assert dispute.initiator_party == DisputeParty.BUYER.value
        assert len(dispute.evidence) == 1

        order = _order(paid_order_id)
        assert order.status == OrderStatus.DISPUTED.value
        assert str(order.dispute_id) == dispute_id

    def test_seller_opens_dispute(self, shipped_order_id):
        dispute_id = open_dispute(shipped_order_id, SELLER, "Buyer refuses delivery")
        assert _dispute(dispute_id).initiator_party == DisputeParty.SELLER.value

    def test_second_dispute_is_rejected(self, dispute_id, paid_order_id):
        with pytest.raises(InvalidStateTransitionError):
            open_dispute(paid_order_id, SELLER, "Me too")

    def test_no_dispute_on_completed_order(self, delivered_order_id):
        release_funds(delivered_order_id, BUYER)
        with pytest.raises(InvalidStateTransitionError):
            open_dispute(delivered_order_id, BUYER, "Too late")
        assert current_domain.repository_for(Dispute)._dao.query.all().items == []

    def test_stranger_cannot_open(self, paid_order_id):
        with pytest.raises(ObjectNotFoundError):
            open_dispute(paid_order_id, "member-999", "Nosy")


class TestProgression:
    def test_review_evidence_and_notes(self, dispute_id):
        start_dispute_review(dispute_id, ADMIN, note="Looking into it")
        request_dispute_evidence(dispute_id, ADMIN, "Please send photos")
        dispute = submit_dispute_evidence(dispute_id, BUYER, "https://x.test/2.jpg", "Cracked screen")
        assert dispute.status == DisputeStatus.UNDER_REVIEW.value

        escalate_dispute(dispute_id, ADMIN, "High value")
        dispute = add_dispute_note(dispute_id, ADMIN, "Seller contacted")
        assert dispute.status == DisputeStatus.ESCALATED.value
        assert "Seller contacted" in dispute.admin_notes

    def test_members_cannot_act_as_admin(self, dispute_id):
        with pytest.raises(ObjectNotFoundError):
            start_dispute_review(dispute_id, BUYER, actor_role=ActorRole.MEMBER.value)

    def test_close_after_resolution(self, dispute_id):
        resolve_dispute(dispute_id, ADMIN, DisputeOutcome.NO_ACTION.value, "No fault found")
        dispute = close_dispute(dispute_id, ADMIN)
        assert dispute.status == DisputeStatus.CLOSED.value


class TestResolution:
    def test_buyer_favorable_refunds_and_restores_stock(self, dispute_id, paid_order_id, listing_id):
        dispute = resolve_dispute(dispute_id, ADMIN, DisputeOutcome.BUYER_FAVORABLE.value, "Item damaged")

        assert dispute.status == DisputeStatus.RESOLVED.value
        assert dispute.refund_amount == 1000.0
        order = _order(paid_order_id)
        assert order.status == OrderStatus.REFUNDED.value
        assert order.payment_status == PaymentStatus.REFUNDED.value
        listing = current_domain.repository_for(Listing).get(listing_id)
        assert listing.quantity == 1
        assert listing.status == ListingStatus.ACTIVE.value

    def test_seller_favorable_releases_funds(self, dispute_id, paid_order_id):
        resolve_dispute(dispute_id, ADMIN, DisputeOutcome.SELLER_FAVORABLE.value, "Tracking shows delivery")

        order = _order(paid_order_id)
        assert order.status == OrderStatus.COMPLETED.value
        assert order.funds_held is False

    def test_partial_refund_leaves_order_disputed(self, dispute_id, paid_order_id):
        dispute = resolve_dispute(
            dispute_id, ADMIN, DisputeOutcome.PARTIAL_REFUND.value, "Minor damage", refund_amount=250.00
        )

        assert dispute.refund_amount == 250.0
        order = _order(paid_order_id)
        assert order.status == OrderStatus.DISPUTED.value
        assert order.payment_status == PaymentStatus.PARTIALLY_REFUNDED.value
        assert order.dispute_open is False

        order = release_funds(paid_order_id, ADMIN, actor_role=ActorRole.ADMIN.value)
        assert order.status == OrderStatus.COMPLETED.value

    def test_no_action_keeps_funds_held(self, dispute_id, paid_order_id):
        resolve_dispute(dispute_id, ADMIN, DisputeOutcome.NO_ACTION.value, "Insufficient evidence")
        order = _order(paid_order_id)
        assert order.status == OrderStatus.DISPUTED.value
        assert order.funds_held is True

    def test_second_resolution_is_rejected(self, dispute_id, paid_order_id):
        resolve_dispute(dispute_id, ADMIN, DisputeOutcome.NO_ACTION.value, "Insufficient evidence")
        history = len(_order(paid_order_id).history)

        with pytest.raises(InvalidStateTransitionError):
            resolve_dispute(dispute_id, ADMIN, DisputeOutcome.BUYER_FAVORABLE.value, "Second thoughts")

        assert len(_order(paid_order_id).history) == history
        assert _dispute(dispute_id).outcome == DisputeOutcome.NO_ACTION.value

    def test_non_admin_gets_not_found(self, dispute_id):
        with pytest.raises(ObjectNotFoundError):
            resolve_dispute(
                dispute_id,
                BUYER,
                DisputeOutcome.BUYER_FAVORABLE.value,
                "I win",
                actor_role=ActorRole.MEMBER.value,
            )

    def test_invalid_partial_amount_changes_nothing(self, dispute_id, paid_order_id):
        with pytest.raises(ValidationError):
            resolve_dispute(dispute_id, ADMIN, DisputeOutcome.PARTIAL_REFUND.value, "Too much", refund_amount=5000.0)

        assert _dispute(dispute_id).status == DisputeStatus.OPEN.value
        assert _order(paid_order_id).dispute_open is True

    def test_unknown_dispute(self):
        with pytest.raises(ObjectNotFoundError):
            resolve_dispute("missing", ADMIN, DisputeOutcome.NO_ACTION.value, "Nothing")
