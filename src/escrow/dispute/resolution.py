"""ResolveDispute — an administrator's ruling, applied atomically.

The dispute, the order (status, payments, history) and any restored
listing stock commit together or not at all. Every guard runs before the
first mutation; a second ruling on the same dispute is rejected.
"""

import structlog
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.dispute.access import load_dispute_for
from escrow.dispute.dispute import Dispute
from escrow.domain import escrow
from escrow.order.access import Access
from escrow.order.cancellation import restore_order_stock
from escrow.order.order import ActorRole, DisputeOutcome, Order

logger = structlog.get_logger(__name__)


@escrow.command(part_of="Dispute")
class ResolveDispute:
    dispute_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(choices=ActorRole, default=ActorRole.ADMIN.value)
    outcome = String(choices=DisputeOutcome, required=True)
    resolution = Text(required=True)
    refund_amount = Float(min_value=0.0)


@escrow.command_handler(part_of=Dispute)
class ResolveDisputeHandler:
    @handle(ResolveDispute)
    def resolve_dispute(self, command):
        dispute, order = load_dispute_for(command.dispute_id, command.actor_id, command.actor_role, Access.ADMIN)
        dispute.assert_resolvable()
        order.assert_dispute_outcome_applicable(DisputeOutcome(command.outcome), command.refund_amount)

        result = order.record_dispute_resolution(
            outcome=command.outcome,
            resolution=command.resolution,
            actor_id=command.actor_id,
            refund_amount=command.refund_amount,
        )
        dispute.resolve(
            admin_id=command.actor_id,
            outcome=command.outcome,
            resolution=command.resolution,
            refund_amount=result["refund_amount"],
        )
        if result["restore_stock"]:
            restore_order_stock(order)

        current_domain.repository_for(Order).add(order)
        current_domain.repository_for(Dispute).add(dispute)
        logger.info(
            "Dispute resolved",
            dispute_id=str(dispute.id),
            order_id=str(order.id),
            outcome=command.outcome,
            refund_amount=result["refund_amount"],
        )
        return str(dispute.id)
