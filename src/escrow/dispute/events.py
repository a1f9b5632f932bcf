"""Dispute domain events."""

from protean.fields import DateTime, Float, Identifier, String, Text

from escrow.domain import escrow


@escrow.event(part_of="Dispute")
class DisputeOpened:
    """A buyer or seller raised a dispute on an order."""

    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    initiated_by = Identifier(required=True)
    initiator_party = String(required=True)
    reason = String(required=True)
    opened_at = DateTime(required=True)


@escrow.event(part_of="Dispute")
class DisputeStatusChanged:
    """An administrator moved the dispute along before ruling."""

    __version__ = 1

    dispute_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_by = Identifier(required=True)
    note = Text()
    changed_at = DateTime(required=True)


@escrow.event(part_of="Dispute")
class DisputeEvidenceSubmitted:
    __version__ = 1

    dispute_id = Identifier(required=True)
    submitted_by = Identifier(required=True)
    url = String(required=True)
    submitted_at = DateTime(required=True)


@escrow.event(part_of="Dispute")
class DisputeResolved:
    """An administrator ruled on the dispute. Happens at most once."""

    __version__ = 1

    dispute_id = Identifier(required=True)
    order_id = Identifier(required=True)
    outcome = String(required=True)
    resolution = Text(required=True)
    refund_amount = Float()
    resolved_by = Identifier(required=True)
    resolved_at = DateTime(required=True)


@escrow.event(part_of="Dispute")
class DisputeClosed:
    __version__ = 1

    dispute_id = Identifier(required=True)
    closed_by = Identifier(required=True)
    closed_at = DateTime(required=True)
