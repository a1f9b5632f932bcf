"""Listing registration — command and handler."""

from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.domain import escrow
from escrow.listing.listing import Listing


@escrow.command(part_of="Listing")
class RegisterListing:
    seller_id = Identifier(required=True)
    title = String(required=True, max_length=200)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(min_value=0, default=1)
    description = Text()
    publish = Boolean(default=True)


@escrow.command_handler(part_of=Listing)
class ListingCommandHandler:
    @handle(RegisterListing)
    def register_listing(self, command):
        listing = Listing.register(
            seller_id=command.seller_id,
            title=command.title,
            price=command.price,
            quantity=command.quantity,
            description=command.description,
            publish=command.publish,
        )
        current_domain.repository_for(Listing).add(listing)
        return str(listing.id)
