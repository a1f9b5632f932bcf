"""OpenDispute — a party freezes an order pending an administrator's ruling.

The dispute and the order's move to Disputed commit together. At most one
dispute ever exists per order, checked against both the order's link and
the dispute store.
"""

from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.dispute.dispute import Dispute, DisputeParty
from escrow.domain import escrow
from escrow.exceptions import InvalidStateTransitionError
from escrow.order.access import Access, load_order_for
from escrow.order.order import ActorRole, Order


@escrow.command(part_of="Dispute")
class OpenDispute:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    reason = String(required=True, max_length=200)
    description = Text()
    evidence_url = String(max_length=500)


@escrow.command_handler(part_of=Dispute)
class OpenDisputeHandler:
    @handle(OpenDispute)
    def open_dispute(self, command):
        order = load_order_for(command.order_id, command.actor_id, ActorRole.MEMBER.value, Access.PARTY)
        repo = current_domain.repository_for(Dispute)

        existing = repo._dao.query.filter(order_id=str(order.id)).all().items
        if existing or order.dispute_id:
            raise InvalidStateTransitionError({"dispute": ["A dispute already exists for this order"]})

        party = DisputeParty.BUYER if str(command.actor_id) == str(order.buyer_id) else DisputeParty.SELLER
        dispute = Dispute.open(
            order_id=str(order.id),
            initiated_by=command.actor_id,
            initiator_party=party.value,
            reason=command.reason,
            description=command.description,
            evidence_url=command.evidence_url,
        )
        order.open_dispute(dispute.id, actor_id=command.actor_id, reason=dispute.reason)

        repo.add(dispute)
        current_domain.repository_for(Order).add(order)
        return str(dispute.id)
