"""Seller and buyer fulfillment steps — commands and handler."""

from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.domain import escrow
from escrow.order.access import Access, load_order_for
from escrow.order.order import ActorRole, Order


@escrow.command(part_of="Order")
class StartProcessing:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)


@escrow.command(part_of="Order")
class ShipOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    tracking_number = String(max_length=100)
    courier_service = String(max_length=100)


@escrow.command(part_of="Order")
class ConfirmDelivery:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)


@escrow.command_handler(part_of=Order)
class FulfillmentHandler:
    @handle(StartProcessing)
    def start_processing(self, command):
        order = load_order_for(command.order_id, command.actor_id, ActorRole.MEMBER.value, Access.SELLER)
        order.start_processing(actor_id=command.actor_id)
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    @handle(ShipOrder)
    def ship_order(self, command):
        order = load_order_for(command.order_id, command.actor_id, ActorRole.MEMBER.value, Access.SELLER)
        order.ship(
            actor_id=command.actor_id,
            tracking_number=command.tracking_number,
            courier_service=command.courier_service,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    @handle(ConfirmDelivery)
    def confirm_delivery(self, command):
        order = load_order_for(command.order_id, command.actor_id, ActorRole.MEMBER.value, Access.BUYER)
        order.confirm_delivery(actor_id=command.actor_id)
        current_domain.repository_for(Order).add(order)
        return str(order.id)
