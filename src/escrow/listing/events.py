"""Listing domain events."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from escrow.domain import escrow


@escrow.event(part_of="Listing")
class ListingPublished:
    """A listing became available for purchase."""

    __version__ = 1

    listing_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    title = String(required=True)
    price = Float(required=True)
    quantity = Integer(required=True)
    published_at = DateTime(required=True)


@escrow.event(part_of="Listing")
class ListingStockDeducted:
    """Stock was taken by a paid order."""

    __version__ = 1

    listing_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@escrow.event(part_of="Listing")
class ListingSoldOut:
    """The last unit was sold."""

    __version__ = 1

    listing_id = Identifier(required=True)
    sold_at = DateTime(required=True)


@escrow.event(part_of="Listing")
class ListingStockRestored:
    """Stock came back from a cancelled or refunded order."""

    __version__ = 1

    listing_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    available = Integer(required=True)
    reactivated = String()
