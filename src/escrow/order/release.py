"""Escrow release — buyer, administrator and automatic release commands.

The three commands share one aggregate method; the channel decides which
guards apply and what the history entry says.
"""

from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.domain import escrow
from escrow.order.access import Access, load_order_for
from escrow.order.order import ActorRole, Order, ReleaseChannel

SYSTEM_ACTOR = "system:auto-release"


@escrow.command(part_of="Order")
class ReleaseFunds:
    """Buyer early release (Member) or administrator release (Admin)."""

    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(choices=ActorRole, default=ActorRole.MEMBER.value)


@escrow.command(part_of="Order")
class AutoReleaseFunds:
    order_id = Identifier(required=True)


@escrow.command_handler(part_of=Order)
class ReleaseFundsHandler:
    @handle(ReleaseFunds)
    def release_funds(self, command):
        if command.actor_role == ActorRole.ADMIN.value:
            access, channel = Access.ADMIN, ReleaseChannel.ADMIN
        else:
            access, channel = Access.BUYER, ReleaseChannel.BUYER

        order = load_order_for(command.order_id, command.actor_id, command.actor_role, access)
        amount = order.release_funds(channel, actor_id=command.actor_id, actor_role=command.actor_role)
        current_domain.repository_for(Order).add(order)
        return amount

    @handle(AutoReleaseFunds)
    def auto_release_funds(self, command):
        order = load_order_for(command.order_id, SYSTEM_ACTOR, ActorRole.SYSTEM.value, Access.SYSTEM)
        amount = order.release_funds(ReleaseChannel.AUTO, actor_id=SYSTEM_ACTOR, actor_role=ActorRole.SYSTEM)
        current_domain.repository_for(Order).add(order)
        return amount
