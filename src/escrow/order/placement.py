"""PlaceOrder — turn a buyer's selection of listings into a Pending order.

All listings must belong to one seller, be Active, and have enough stock.
Stock is not taken here; it is deducted when the payment completes.
"""

import json

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.domain import escrow
from escrow.listing.listing import Listing
from escrow.order.access import not_found
from escrow.order.order import Order


@escrow.command(part_of="Order")
class PlaceOrder:
    buyer_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of {listing_id, quantity}
    buyer_email = String(max_length=254)
    seller_email = String(max_length=254)
    shipping_address = Text()  # JSON object
    buyer_notes = Text()
    tax = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    discount = Float(default=0.0, min_value=0.0)
    currency = String(max_length=3)
    auto_release_days = Integer(min_value=0)
    auto_release_enabled = Boolean(default=True)


def _requested_quantities(raw_items: str) -> dict[str, int]:
    try:
        requested = json.loads(raw_items)
    except (TypeError, ValueError):
        raise ValidationError({"items": ["Items must be a JSON list"]}) from None
    if not isinstance(requested, list) or not requested:
        raise ValidationError({"items": ["An order needs at least one item"]})

    quantities: dict[str, int] = {}
    for entry in requested:
        listing_id = str(entry.get("listing_id") or "")
        quantity = int(entry.get("quantity", 1))
        if not listing_id:
            raise ValidationError({"items": ["Every item needs a listing_id"]})
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        quantities[listing_id] = quantities.get(listing_id, 0) + quantity
    return quantities


@escrow.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        quantities = _requested_quantities(command.items)
        listing_repo = current_domain.repository_for(Listing)

        items_data = []
        seller_ids = set()
        for listing_id, quantity in quantities.items():
            try:
                listing = listing_repo.get(listing_id)
            except ObjectNotFoundError:
                raise not_found("Listing", listing_id) from None

            listing.assert_purchasable(quantity, buyer_id=command.buyer_id)
            seller_ids.add(str(listing.seller_id))
            items_data.append(
                {
                    "listing_id": listing_id,
                    "product_name": listing.title,
                    "description": listing.description,
                    "unit_price": listing.price,
                    "quantity": quantity,
                }
            )

        if len(seller_ids) != 1:
            raise ValidationError({"items": ["All items in an order must come from the same seller"]})

        order = Order.place(
            buyer_id=command.buyer_id,
            seller_id=seller_ids.pop(),
            items_data=items_data,
            tax=command.tax or 0.0,
            shipping=command.shipping or 0.0,
            discount=command.discount or 0.0,
            currency=command.currency,
            buyer_email=command.buyer_email,
            seller_email=command.seller_email,
            shipping_address=json.loads(command.shipping_address) if command.shipping_address else None,
            buyer_notes=command.buyer_notes,
            auto_release_days=command.auto_release_days,
            auto_release_enabled=command.auto_release_enabled,
        )
        current_domain.repository_for(Order).add(order)
        return str(order.id)
