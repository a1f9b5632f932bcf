"""Dispute aggregate — one per order, resolved at most once.

State Machine:
    OPEN → {UNDER_REVIEW, AWAITING_EVIDENCE, ESCALATED} (in any order)
    {OPEN, UNDER_REVIEW, AWAITING_EVIDENCE, ESCALATED} → RESOLVED → CLOSED

Resolution fields are only ever written by ``resolve``.
"""

from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, String, Text

from escrow import clock
from escrow.domain import escrow
from escrow.dispute.events import (
    DisputeClosed,
    DisputeEvidenceSubmitted,
    DisputeOpened,
    DisputeResolved,
    DisputeStatusChanged,
)
from escrow.exceptions import InvalidStateTransitionError
from escrow.order.order import DisputeOutcome


class DisputeStatus(Enum):
    OPEN = "Open"
    UNDER_REVIEW = "Under_Review"
    AWAITING_EVIDENCE = "Awaiting_Evidence"
    ESCALATED = "Escalated"
    RESOLVED = "Resolved"
    CLOSED = "Closed"


class DisputeParty(Enum):
    BUYER = "Buyer"
    SELLER = "Seller"


IN_PROGRESS_STATUSES = {
    DisputeStatus.OPEN,
    DisputeStatus.UNDER_REVIEW,
    DisputeStatus.AWAITING_EVIDENCE,
    DisputeStatus.ESCALATED,
}

_VALID_TRANSITIONS = {
    DisputeStatus.OPEN: {
        DisputeStatus.UNDER_REVIEW,
        DisputeStatus.AWAITING_EVIDENCE,
        DisputeStatus.ESCALATED,
        DisputeStatus.RESOLVED,
    },
    DisputeStatus.UNDER_REVIEW: {
        DisputeStatus.AWAITING_EVIDENCE,
        DisputeStatus.ESCALATED,
        DisputeStatus.RESOLVED,
    },
    DisputeStatus.AWAITING_EVIDENCE: {
        DisputeStatus.UNDER_REVIEW,
        DisputeStatus.ESCALATED,
        DisputeStatus.RESOLVED,
    },
    DisputeStatus.ESCALATED: {
        DisputeStatus.UNDER_REVIEW,
        DisputeStatus.AWAITING_EVIDENCE,
        DisputeStatus.RESOLVED,
    },
    DisputeStatus.RESOLVED: {DisputeStatus.CLOSED},
    DisputeStatus.CLOSED: set(),  # terminal
}


@escrow.entity(part_of="Dispute")
class DisputeEvidence:
    """A link to supporting material (photos, courier slips, chat logs)."""

    url = String(required=True, max_length=500)
    description = String(max_length=500)
    submitted_by = Identifier(required=True)
    submitted_at = DateTime(required=True)


@escrow.aggregate
class Dispute:
    order_id = Identifier(required=True, unique=True)
    initiated_by = Identifier(required=True)
    initiator_party = String(choices=DisputeParty, required=True)
    reason = String(required=True, max_length=200)
    description = Text()
    status = String(choices=DisputeStatus, default=DisputeStatus.OPEN.value)
    evidence = HasMany(DisputeEvidence)
    admin_notes = Text()
    created_at = DateTime()
    updated_at = DateTime()

    # Resolution
    outcome = String(choices=DisputeOutcome)
    resolution = Text()
    refund_amount = Float(min_value=0.0)
    resolved_by = Identifier()
    resolved_at = DateTime()

    @invariant.post
    def resolution_only_when_resolved(self):
        settled = self.status in (DisputeStatus.RESOLVED.value, DisputeStatus.CLOSED.value)
        if not settled and (self.outcome or self.resolved_at):
            raise ValidationError({"outcome": ["Only a resolved dispute carries an outcome"]})
        if settled and not (self.outcome and self.resolved_at and self.resolved_by):
            raise ValidationError({"outcome": ["A resolved dispute must record its outcome and resolver"]})

    @invariant.post
    def partial_refund_needs_amount(self):
        if self.outcome == DisputeOutcome.PARTIAL_REFUND.value and not self.refund_amount:
            raise ValidationError({"refund_amount": ["A partial refund must record the refunded amount"]})

    @classmethod
    def open(cls, order_id, initiated_by, initiator_party, reason, description=None, evidence_url=None):
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A dispute needs a reason"]})

        now = clock.now()
        dispute = cls(
            order_id=order_id,
            initiated_by=initiated_by,
            initiator_party=DisputeParty(initiator_party).value,
            reason=reason.strip(),
            description=description,
            status=DisputeStatus.OPEN.value,
            created_at=now,
            updated_at=now,
        )
        if evidence_url:
            dispute.add_evidence(
                DisputeEvidence(url=evidence_url, submitted_by=initiated_by, submitted_at=now)
            )
        dispute.raise_(
            DisputeOpened(
                dispute_id=str(dispute.id),
                order_id=str(order_id),
                initiated_by=str(initiated_by),
                initiator_party=dispute.initiator_party,
                reason=dispute.reason,
                opened_at=now,
            )
        )
        return dispute

    @property
    def is_settled(self) -> bool:
        return DisputeStatus(self.status) not in IN_PROGRESS_STATUSES

    def _assert_can_transition(self, target_status: DisputeStatus) -> None:
        current = DisputeStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransitionError(
                {"status": [f"Cannot transition dispute from {current.value} to {target_status.value}"]}
            )

    def _move(self, target_status: DisputeStatus, admin_id, note=None) -> None:
        self._assert_can_transition(target_status)
        now = clock.now()
        previous = self.status
        self.status = target_status.value
        self.updated_at = now
        if note:
            self._append_note(admin_id, note, now)
        self.raise_(
            DisputeStatusChanged(
                dispute_id=str(self.id),
                previous_status=previous,
                new_status=self.status,
                changed_by=str(admin_id),
                note=note,
                changed_at=now,
            )
        )

    def _append_note(self, author, note, now) -> None:
        line = f"[{now:%Y-%m-%d %H:%M}] {author}: {note}"
        self.admin_notes = f"{self.admin_notes}\n{line}" if self.admin_notes else line

    # -------------------------------------------------------------------
    # Progression
    # -------------------------------------------------------------------
    def start_review(self, admin_id, note=None) -> None:
        self._move(DisputeStatus.UNDER_REVIEW, admin_id, note)

    def request_evidence(self, admin_id, note) -> None:
        self._move(DisputeStatus.AWAITING_EVIDENCE, admin_id, note)

    def escalate(self, admin_id, note) -> None:
        self._move(DisputeStatus.ESCALATED, admin_id, note)

    def add_admin_note(self, admin_id, note) -> None:
        if not note or not note.strip():
            raise ValidationError({"note": ["Note cannot be empty"]})
        now = clock.now()
        self._append_note(admin_id, note.strip(), now)
        self.updated_at = now

    def submit_evidence(self, actor_id, url, description=None) -> None:
        """A party attaches evidence. Answers a pending evidence request."""
        if self.is_settled:
            raise InvalidStateTransitionError({"status": ["Evidence cannot be added to a resolved dispute"]})
        if not url:
            raise ValidationError({"url": ["Evidence needs a link"]})

        now = clock.now()
        self.add_evidence(DisputeEvidence(url=url, description=description, submitted_by=actor_id, submitted_at=now))
        self.updated_at = now
        self.raise_(
            DisputeEvidenceSubmitted(
                dispute_id=str(self.id),
                submitted_by=str(actor_id),
                url=url,
                submitted_at=now,
            )
        )
        if self.status == DisputeStatus.AWAITING_EVIDENCE.value:
            self._move(DisputeStatus.UNDER_REVIEW, actor_id)

    # -------------------------------------------------------------------
    # Ruling
    # -------------------------------------------------------------------
    def assert_resolvable(self) -> None:
        if self.is_settled:
            raise InvalidStateTransitionError({"status": ["Dispute is already resolved"]})

    def resolve(self, admin_id, outcome, resolution, refund_amount=None) -> None:
        self.assert_resolvable()
        outcome = DisputeOutcome(outcome)
        if not resolution or not resolution.strip():
            raise ValidationError({"resolution": ["A resolution note is required"]})

        now = clock.now()
        with atomic_change(self):
            self.status = DisputeStatus.RESOLVED.value
            self.outcome = outcome.value
            self.resolution = resolution.strip()
            self.refund_amount = refund_amount
            self.resolved_by = admin_id
            self.resolved_at = now
            self.updated_at = now
        self.raise_(
            DisputeResolved(
                dispute_id=str(self.id),
                order_id=str(self.order_id),
                outcome=self.outcome,
                resolution=self.resolution,
                refund_amount=refund_amount,
                resolved_by=str(admin_id),
                resolved_at=now,
            )
        )

    def close(self, admin_id) -> None:
        self._assert_can_transition(DisputeStatus.CLOSED)
        now = clock.now()
        self.status = DisputeStatus.CLOSED.value
        self.updated_at = now
        self.raise_(DisputeClosed(dispute_id=str(self.id), closed_by=str(admin_id), closed_at=now))
