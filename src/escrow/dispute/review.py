"""Dispute progression before a ruling — commands and handler.

Administrators move a dispute between review states and keep notes;
either party may attach evidence until the dispute is resolved.
"""

from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from escrow.dispute.access import load_dispute_for
from escrow.dispute.dispute import Dispute
from escrow.domain import escrow
from escrow.order.access import Access
from escrow.order.order import ActorRole


@escrow.command(part_of="Dispute")
class StartDisputeReview:
    dispute_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(choices=ActorRole, default=ActorRole.ADMIN.value)
    note = Text()


@escrow.command(part_of="Dispute")
class RequestDisputeEvidence:
    dispute_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(choices=ActorRole, default=ActorRole.ADMIN.value)
    note = Text(required=True)


@escrow.command(part_of="Dispute")
class EscalateDispute:
    dispute_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(choices=ActorRole, default=ActorRole.ADMIN.value)
    note = Text(required=True)


@escrow.command(part_of="Dispute")
class AddDisputeNote:
    dispute_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(choices=ActorRole, default=ActorRole.ADMIN.value)
    note = Text(required=True)


@escrow.command(part_of="Dispute")
class CloseDispute:
    dispute_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    actor_role = String(choices=ActorRole, default=ActorRole.ADMIN.value)


@escrow.command(part_of="Dispute")
class SubmitDisputeEvidence:
    dispute_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    url = String(required=True, max_length=500)
    description = String(max_length=500)


@escrow.command_handler(part_of=Dispute)
class DisputeReviewHandler:
    def _admin_dispute(self, command):
        dispute, _ = load_dispute_for(command.dispute_id, command.actor_id, command.actor_role, Access.ADMIN)
        return dispute

    def _save(self, dispute):
        current_domain.repository_for(Dispute).add(dispute)
        return str(dispute.id)

    @handle(StartDisputeReview)
    def start_review(self, command):
        dispute = self._admin_dispute(command)
        dispute.start_review(command.actor_id, command.note)
        return self._save(dispute)

    @handle(RequestDisputeEvidence)
    def request_evidence(self, command):
        dispute = self._admin_dispute(command)
        dispute.request_evidence(command.actor_id, command.note)
        return self._save(dispute)

    @handle(EscalateDispute)
    def escalate(self, command):
        dispute = self._admin_dispute(command)
        dispute.escalate(command.actor_id, command.note)
        return self._save(dispute)

    @handle(AddDisputeNote)
    def add_note(self, command):
        dispute = self._admin_dispute(command)
        dispute.add_admin_note(command.actor_id, command.note)
        return self._save(dispute)

    @handle(CloseDispute)
    def close(self, command):
        dispute = self._admin_dispute(command)
        dispute.close(command.actor_id)
        return self._save(dispute)

    @handle(SubmitDisputeEvidence)
    def submit_evidence(self, command):
        dispute, _ = load_dispute_for(command.dispute_id, command.actor_id, ActorRole.MEMBER.value, Access.PARTY)
        dispute.submit_evidence(command.actor_id, command.url, command.description)
        return self._save(dispute)
