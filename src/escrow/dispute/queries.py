"""Read-side queries over disputes."""

from protean.utils.globals import current_domain

from escrow.dispute.access import load_dispute_for
from escrow.dispute.dispute import Dispute, DisputeStatus, IN_PROGRESS_STATUSES
from escrow.order.access import Access, load_order_for, not_found
from escrow.order.order import ActorRole
from escrow.utils.paging import fetch_all

_FILTERS = {
    "open": {status.value for status in IN_PROGRESS_STATUSES},
    "resolved": {DisputeStatus.RESOLVED.value, DisputeStatus.CLOSED.value},
    "all": {status.value for status in DisputeStatus},
}


def disputes_for_admin(actor_role, status_filter: str = "open") -> list[Dispute]:
    """Disputes for the admin queue, newest first."""
    if ActorRole(actor_role) != ActorRole.ADMIN:
        raise not_found("Report", "disputes")
    if status_filter not in _FILTERS:
        raise ValueError(f"Unknown dispute filter: {status_filter!r}")

    wanted = _FILTERS[status_filter]
    everything = fetch_all(Dispute, order_by="-created_at")
    return [d for d in everything if d.status in wanted]


def dispute_details(dispute_id, actor_id, actor_role) -> dict:
    dispute, order = load_dispute_for(dispute_id, actor_id, actor_role, Access.PARTY_OR_ADMIN)
    return {
        "dispute_id": str(dispute.id),
        "order_id": str(order.id),
        "order_number": order.order_number,
        "order_status": order.status,
        "payment_status": order.payment_status,
        "initiated_by": str(dispute.initiated_by),
        "initiator_party": dispute.initiator_party,
        "reason": dispute.reason,
        "description": dispute.description,
        "status": dispute.status,
        "evidence": [
            {"url": e.url, "description": e.description, "submitted_by": str(e.submitted_by)}
            for e in dispute.evidence
        ],
        "outcome": dispute.outcome,
        "resolution": dispute.resolution,
        "refund_amount": dispute.refund_amount,
        "resolved_by": str(dispute.resolved_by) if dispute.resolved_by else None,
        "resolved_at": dispute.resolved_at,
    }


def dispute_for_order(order_id, actor_id, actor_role) -> Dispute | None:
    order = load_order_for(order_id, actor_id, actor_role, Access.PARTY_OR_ADMIN)
    if not order.dispute_id:
        return None
    return current_domain.repository_for(Dispute).get(str(order.dispute_id))
