"""Dispute lookups that apply the same visibility rules as orders."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from escrow.dispute.dispute import Dispute
from escrow.order.access import Access, is_allowed, not_found
from escrow.order.order import Order


def load_dispute_for(dispute_id, actor_id, actor_role, access: Access) -> tuple[Dispute, Order]:
    """Fetch a dispute and its order, or raise ObjectNotFoundError."""
    try:
        dispute = current_domain.repository_for(Dispute).get(str(dispute_id))
        order = current_domain.repository_for(Order).get(str(dispute.order_id))
    except ObjectNotFoundError:
        raise not_found("Dispute", dispute_id) from None

    if not is_allowed(order, actor_id, actor_role, access):
        raise not_found("Dispute", dispute_id)
    return dispute, order
