"""Listing aggregate — the catalog's view of stock, as far as escrow needs it.

Only three flows touch a listing: stock is deducted when an order's payment
completes, and restored when a paid order is cancelled or a dispute is
ruled in the buyer's favour.

State Machine:
    DRAFT → ACTIVE ⇄ SOLD
    ACTIVE → SUSPENDED → ACTIVE
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from escrow import clock
from escrow.domain import escrow
from escrow.exceptions import InvalidStateTransitionError
from escrow.listing.events import (
    ListingPublished,
    ListingSoldOut,
    ListingStockDeducted,
    ListingStockRestored,
)


class ListingStatus(Enum):
    DRAFT = "Draft"
    ACTIVE = "Active"
    SOLD = "Sold"
    SUSPENDED = "Suspended"


_VALID_TRANSITIONS = {
    ListingStatus.DRAFT: {ListingStatus.ACTIVE},
    ListingStatus.ACTIVE: {ListingStatus.SOLD, ListingStatus.SUSPENDED},
    ListingStatus.SOLD: {ListingStatus.ACTIVE},
    ListingStatus.SUSPENDED: {ListingStatus.ACTIVE},
}


@escrow.aggregate
class Listing:
    seller_id = Identifier(required=True)
    title = String(required=True, max_length=200)
    description = Text()
    price = Float(required=True, min_value=0.0)
    quantity = Integer(min_value=0, default=1)
    status = String(choices=ListingStatus, default=ListingStatus.DRAFT.value)
    created_at = DateTime()
    sold_at = DateTime()

    @classmethod
    def register(cls, seller_id, title, price, quantity=1, description=None, publish=True):
        listing = cls(
            seller_id=seller_id,
            title=title,
            description=description,
            price=price,
            quantity=quantity,
            status=ListingStatus.DRAFT.value,
            created_at=clock.now(),
        )
        if publish:
            listing.publish()
        return listing

    def _assert_can_transition(self, target_status: ListingStatus) -> None:
        current = ListingStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransitionError(
                {"status": [f"Cannot transition listing from {current.value} to {target_status.value}"]}
            )

    @property
    def is_active(self) -> bool:
        return self.status == ListingStatus.ACTIVE.value

    def publish(self) -> None:
        self._assert_can_transition(ListingStatus.ACTIVE)
        if self.quantity < 1:
            raise ValidationError({"quantity": ["A listing needs stock before it can be published"]})
        self.status = ListingStatus.ACTIVE.value
        self.raise_(
            ListingPublished(
                listing_id=str(self.id),
                seller_id=str(self.seller_id),
                title=self.title,
                price=self.price,
                quantity=self.quantity,
                published_at=clock.now(),
            )
        )

    def suspend(self) -> None:
        self._assert_can_transition(ListingStatus.SUSPENDED)
        self.status = ListingStatus.SUSPENDED.value

    def assert_purchasable(self, quantity: int, buyer_id=None) -> None:
        """Raise ValidationError unless ``quantity`` units can be bought now."""
        if not self.is_active:
            raise ValidationError({"listing_id": [f"Listing '{self.title}' is not available"]})
        if buyer_id is not None and str(buyer_id) == str(self.seller_id):
            raise ValidationError({"listing_id": ["You cannot purchase your own listing"]})
        if quantity > self.quantity:
            raise ValidationError(
                {"quantity": [f"Only {self.quantity} unit(s) of '{self.title}' available, {quantity} requested"]}
            )

    def deduct_stock(self, quantity: int, order_id) -> None:
        self.assert_purchasable(quantity)
        self.quantity = self.quantity - quantity
        self.raise_(
            ListingStockDeducted(
                listing_id=str(self.id),
                order_id=str(order_id),
                quantity=quantity,
                remaining=self.quantity,
            )
        )
        if self.quantity == 0:
            now = clock.now()
            self.status = ListingStatus.SOLD.value
            self.sold_at = now
            self.raise_(ListingSoldOut(listing_id=str(self.id), sold_at=now))

    def restore_stock(self, quantity: int, order_id) -> None:
        """Hand units back. A sold-out listing becomes available again."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        reactivated = None
        self.quantity = self.quantity + quantity
        if self.status == ListingStatus.SOLD.value:
            self.status = ListingStatus.ACTIVE.value
            self.sold_at = None
            reactivated = ListingStatus.ACTIVE.value
        self.raise_(
            ListingStockRestored(
                listing_id=str(self.id),
                order_id=str(order_id),
                quantity=quantity,
                available=self.quantity,
                reactivated=reactivated,
            )
        )
