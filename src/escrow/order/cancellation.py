"""Order cancellation — command and handler.

Cancelling a paid order refunds it and hands every item's stock back to
its listing. An unpaid order never took stock, so none is returned.
"""

from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.domain import escrow
from escrow.listing.listing import Listing
from escrow.order.access import Access, load_order_for
from escrow.order.order import ActorRole, Order


@escrow.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(choices=ActorRole, default=ActorRole.MEMBER.value)
    reason = String(max_length=500)


def restore_order_stock(order: Order) -> None:
    """Return each line's quantity to its listing."""
    listing_repo = current_domain.repository_for(Listing)
    for listing_id, quantity in order.stock_lines():
        listing = listing_repo.get(listing_id)
        listing.restore_stock(quantity, order.id)
        listing_repo.add(listing)


@escrow.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        order = load_order_for(command.order_id, command.actor_id, command.actor_role, Access.PARTY_OR_ADMIN)
        refunded = order.cancel(
            actor_id=command.actor_id,
            actor_role=command.actor_role,
            reason=command.reason,
        )
        if refunded:
            restore_order_stock(order)
        current_domain.repository_for(Order).add(order)
        return order.status
