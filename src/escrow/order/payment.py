"""PayOrder — charge the buyer and hold the funds in escrow.

Guards and stock are checked before the gateway is called, so a charge is
never taken for an order that could not be confirmed. A declined charge is
recorded and the order stays Pending for another attempt.
"""

import structlog
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.domain import escrow
from escrow.gateway import get_gateway
from escrow.listing.listing import Listing
from escrow.order.access import Access, load_order_for
from escrow.order.order import ActorRole, Order, PaymentMethod

logger = structlog.get_logger(__name__)


@escrow.command(part_of="Order")
class PayOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    amount = Float(required=True, min_value=0.0)
    method = String(choices=PaymentMethod, default=PaymentMethod.CREDIT_CARD.value)


def _quantities_by_listing(order: Order) -> dict[str, int]:
    needed: dict[str, int] = {}
    for listing_id, quantity in order.stock_lines():
        needed[listing_id] = needed.get(listing_id, 0) + quantity
    return needed


@escrow.command_handler(part_of=Order)
class PayOrderHandler:
    @handle(PayOrder)
    def pay_order(self, command):
        order = load_order_for(command.order_id, command.actor_id, ActorRole.MEMBER.value, Access.BUYER)
        order.assert_payable(command.amount)

        listing_repo = current_domain.repository_for(Listing)
        listings = {}
        for listing_id, quantity in _quantities_by_listing(order).items():
            listing = listing_repo.get(listing_id)
            listing.assert_purchasable(quantity)
            listings[listing_id] = listing

        charge = get_gateway().create_charge(
            amount=order.total,
            currency=order.currency,
            payment_method=command.method,
            idempotency_key=f"{order.id}-{len(order.payments) + 1}",
        )
        payment = order.record_payment(
            amount=command.amount,
            method=command.method,
            succeeded=charge.success,
            actor_id=command.actor_id,
            gateway_reference=charge.gateway_reference,
            gateway_status=charge.gateway_status,
            failure_reason=charge.failure_reason,
        )

        if charge.success:
            for listing_id, quantity in order.stock_lines():
                listings[listing_id].deduct_stock(quantity, order.id)
            for listing in listings.values():
                listing_repo.add(listing)
        else:
            logger.warning(
                "Payment declined",
                order_id=str(order.id),
                transaction_id=payment.transaction_id,
                reason=payment.failure_reason,
            )

        current_domain.repository_for(Order).add(order)
        return payment.transaction_id
