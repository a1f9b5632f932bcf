"""Order domain events — immutable facts about order and escrow state changes.

All events are past tense and versioned. Monetary amounts are floats in the
order's currency.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from escrow.domain import escrow


@escrow.event(part_of="Order")
class OrderPlaced:
    """A buyer placed an order against one seller's listings."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of item snapshots
    item_count = Integer(required=True)
    total = Float(required=True)
    currency = String(required=True)
    placed_at = DateTime(required=True)


@escrow.event(part_of="Order")
class PaymentCaptured:
    """The buyer's payment succeeded and is now held in escrow."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    transaction_id = String(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    method = String(required=True)
    paid_at = DateTime(required=True)


@escrow.event(part_of="Order")
class PaymentDeclined:
    """A payment attempt failed; the order stays Pending for a retry."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_id = Identifier(required=True)
    transaction_id = String(required=True)
    amount = Float(required=True)
    reason = String(required=True)
    declined_at = DateTime(required=True)


@escrow.event(part_of="Order")
class OrderProcessingStarted:
    """The seller started preparing the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    started_at = DateTime(required=True)


@escrow.event(part_of="Order")
class OrderShipped:
    """The seller handed the order to a courier."""

    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    tracking_number = String()
    courier_service = String()
    shipped_at = DateTime(required=True)


@escrow.event(part_of="Order")
class DeliveryConfirmed:
    """The buyer confirmed receipt; the auto-release countdown starts."""

    __version__ = 1

    order_id = Identifier(required=True)
    buyer_id = Identifier(required=True)
    delivered_at = DateTime(required=True)
    auto_release_days = Integer(required=True)


@escrow.event(part_of="Order")
class FundsReleased:
    """Escrowed funds were released to the seller."""

    __version__ = 1

    order_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(required=True)
    channel = String(required=True)
    released_by = String(required=True)
    released_at = DateTime(required=True)


@escrow.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled before shipping."""

    __version__ = 1

    order_id = Identifier(required=True)
    cancelled_by = String(required=True)
    reason = String()
    refunded = Boolean(required=True)
    refund_amount = Float(default=0.0)
    cancelled_at = DateTime(required=True)


@escrow.event(part_of="Order")
class OrderDisputed:
    """A party opened a dispute; the order is frozen until an admin rules."""

    __version__ = 1

    order_id = Identifier(required=True)
    dispute_id = Identifier(required=True)
    opened_by = String(required=True)
    previous_status = String(required=True)
    disputed_at = DateTime(required=True)


@escrow.event(part_of="Order")
class DisputeOutcomeApplied:
    """An admin ruling was applied to the order's status and payments."""

    __version__ = 1

    order_id = Identifier(required=True)
    dispute_id = Identifier(required=True)
    outcome = String(required=True)
    refund_amount = Float()
    status = String(required=True)
    payment_status = String(required=True)
    applied_at = DateTime(required=True)
