"""Read-side queries over orders.

Reads go straight to the repository; nothing here mutates state.
"""

from escrow import clock
from escrow.order.access import Access, load_order_for, not_found
from escrow.order.escrow_policy import auto_release_due, is_sweep_candidate, release_deadline
from escrow.order.order import ActorRole, Order, OrderStatus
from escrow.utils.paging import fetch_all


def _all_matching(batch_size: int | None = None, **filters) -> list:
    return fetch_all(Order, batch_size=batch_size, **filters)


def order_timeline(order_id, actor_id, actor_role) -> list[dict]:
    """Status history for a party to the order, or an administrator."""
    order = load_order_for(order_id, actor_id, actor_role, Access.PARTY_OR_ADMIN)
    return [
        {
            "sequence": entry.sequence,
            "status": entry.status,
            "actor_id": entry.actor_id,
            "actor_role": entry.actor_role,
            "note": entry.note,
            "recorded_at": entry.recorded_at,
        }
        for entry in order.timeline()
    ]


def orders_for_member(member_id, as_party: str = "buyer", status: str | None = None) -> list[Order]:
    """A member's purchases (``as_party="buyer"``) or sales (``"seller"``)."""
    if as_party not in ("buyer", "seller"):
        raise ValueError(f"as_party must be 'buyer' or 'seller', got {as_party!r}")
    filters = {f"{as_party}_id": str(member_id)}
    if status:
        filters["status"] = OrderStatus(status).value
    return _all_matching(**filters)


def auto_release_candidate_ids(batch_size: int | None = None) -> list[str]:
    """Ids of orders the sweeper should look at, oldest first."""
    held = _all_matching(batch_size, funds_held=True, auto_release_enabled=True)
    return [str(order.id) for order in held if is_sweep_candidate(order)]


def escrow_overview(actor_role=ActorRole.ADMIN.value) -> dict:
    """Administrator summary of funds still held in escrow."""
    if ActorRole(actor_role) not in (ActorRole.ADMIN, ActorRole.SYSTEM):
        raise not_found("Report", "escrow-overview")

    now = clock.now()
    held = _all_matching(funds_held=True)
    rows = []
    for order in held:
        if order.is_terminal or order.paid_at is None:
            continue
        deadline = release_deadline(order)
        rows.append(
            {
                "order_id": str(order.id),
                "order_number": order.order_number,
                "status": order.status,
                "amount": order.held_amount(),
                "currency": order.currency,
                "delivered_at": order.delivered_at,
                "release_due_at": deadline,
                "auto_release_due": auto_release_due(order, now),
            }
        )

    return {
        "as_of": now,
        "held_count": len(rows),
        "held_total": round(sum(row["amount"] for row in rows), 2),
        "eligible_count": sum(1 for row in rows if row["auto_release_due"]),
        "orders": rows,
    }
