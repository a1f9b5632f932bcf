"""Application entry points for the escrow engine.

Each function is one request from an outer transport (HTTP handler, CLI,
job runner): it builds the command, runs it under the order's lock inside
a single unit of work, and sends notifications only once the change has
committed. Operations that move stock also hold the lock of each listing
on the order. Transient persistence failures surface as
RetryableOperationError; nothing was committed in that case.
"""

import json

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from escrow.dispute.dispute import Dispute
from escrow.dispute.opening import OpenDispute
from escrow.dispute.resolution import ResolveDispute
from escrow.dispute.review import (
    AddDisputeNote,
    CloseDispute,
    EscalateDispute,
    RequestDisputeEvidence,
    StartDisputeReview,
    SubmitDisputeEvidence,
)
from escrow.exceptions import RetryableOperationError
from escrow.listing.management import RegisterListing
from escrow.notifier.dispatch import buyer_recipient, order_context, seller_recipient, send
from escrow.notifier.templates import MessageKind
from escrow.order.access import not_found
from escrow.order.cancellation import CancelOrder
from escrow.order.fulfillment import ConfirmDelivery, ShipOrder, StartProcessing
from escrow.order.locking import order_lock
from escrow.order.order import ActorRole, DisputeOutcome, Order, OrderStatus, PaymentMethod, PaymentStatus
from escrow.order.payment import PayOrder
from escrow.order.placement import PlaceOrder
from escrow.order.release import ReleaseFunds

logger = structlog.get_logger(__name__)

_RETRYABLE_ERRORS = (ConnectionError, TimeoutError, ExpectedVersionError)


def _process(operation: str, order_id, command):
    with structlog.contextvars.bound_contextvars(operation=operation, order_id=str(order_id) if order_id else None):
        try:
            result = current_domain.process(command, asynchronous=False)
        except _RETRYABLE_ERRORS as exc:
            logger.warning("Operation aborted by a transient failure", error=str(exc))
            raise RetryableOperationError(operation, str(order_id) if order_id else None, exc) from exc
        logger.info("Operation committed")
        return result


def _locked(operation: str, order_id, command, listing_ids=()):
    with order_lock(order_id, listing_ids):
        return _process(operation, order_id, command)


def _load(order_id) -> Order:
    return current_domain.repository_for(Order).get(str(order_id))


def _load_dispute(dispute_id) -> Dispute:
    return current_domain.repository_for(Dispute).get(str(dispute_id))


def _stock_listing_ids(operation: str, order_id) -> list[str]:
    # Line items are fixed at placement; read outside the lock
    try:
        order = _load(order_id)
    except ObjectNotFoundError:
        return []
    except _RETRYABLE_ERRORS as exc:
        raise RetryableOperationError(operation, str(order_id), exc) from exc
    return [listing_id for listing_id, _ in order.stock_lines()]


def _read_back(operation: str, loader):
    """Load committed state for the response and notifications.

    The change is already committed, so a failed read is logged and None
    returned. Raising here would invite a retry against the new state.
    """
    try:
        return loader()
    except Exception as exc:
        logger.error("Committed change could not be read back", operation=operation, error=str(exc))
        return None


def _after_commit(operation: str, order_id, notify=None) -> Order | None:
    order = _read_back(operation, lambda: _load(order_id))
    if order is None or notify is None:
        return order
    try:
        notify(order)
    except Exception as exc:
        logger.error("Notifications after commit failed", operation=operation, order_id=str(order_id), error=str(exc))
    return order


def _order_id_of_dispute(dispute_id) -> str:
    try:
        return str(_load_dispute(dispute_id).order_id)
    except ObjectNotFoundError:
        raise not_found("Dispute", dispute_id) from None


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
def register_listing(seller_id, title, price, quantity=1, description=None, publish=True) -> str:
    command = RegisterListing(
        seller_id=seller_id,
        title=title,
        price=price,
        quantity=quantity,
        description=description,
        publish=publish,
    )
    return _process("register_listing", None, command)


# ---------------------------------------------------------------------------
# Order lifecycle
# ---------------------------------------------------------------------------
def place_order(buyer_id, items: list[dict], shipping_address: dict | None = None, **options) -> str:
    """Place a Pending order. ``items`` is a list of {listing_id, quantity}."""
    command = PlaceOrder(
        buyer_id=buyer_id,
        items=json.dumps(items),
        shipping_address=json.dumps(shipping_address) if shipping_address else None,
        **options,
    )
    return _process("place_order", None, command)


def pay_order(order_id, buyer_id, amount, method=PaymentMethod.CREDIT_CARD.value) -> Order:
    """Charge the buyer. A declined charge returns the order with payment_status Failed.

    Holds the lock of every listing on the order as well, so two buyers
    competing for the last unit are checked against stock one at a time
    and only the first is charged.
    """
    command = PayOrder(order_id=order_id, actor_id=buyer_id, amount=amount, method=method)
    _locked("pay_order", order_id, command, _stock_listing_ids("pay_order", order_id))

    def notify(order):
        if order.payment_status == PaymentStatus.COMPLETED.value:
            context = order_context(order)
            send(MessageKind.ORDER_CONFIRMATION, buyer_recipient(order), context)
            send(MessageKind.NEW_ORDER, seller_recipient(order), context)

    return _after_commit("pay_order", order_id, notify)


def start_processing(order_id, seller_id) -> Order:
    _locked("start_processing", order_id, StartProcessing(order_id=order_id, actor_id=seller_id))
    return _after_commit("start_processing", order_id)


def ship_order(order_id, seller_id, tracking_number=None, courier_service=None) -> Order:
    command = ShipOrder(
        order_id=order_id,
        actor_id=seller_id,
        tracking_number=tracking_number,
        courier_service=courier_service,
    )
    _locked("ship_order", order_id, command)
    return _after_commit(
        "ship_order",
        order_id,
        lambda order: send(MessageKind.ORDER_SHIPPED, buyer_recipient(order), order_context(order)),
    )


def confirm_delivery(order_id, buyer_id) -> Order:
    _locked("confirm_delivery", order_id, ConfirmDelivery(order_id=order_id, actor_id=buyer_id))
    return _after_commit(
        "confirm_delivery",
        order_id,
        lambda order: send(MessageKind.DELIVERY_CONFIRMED, seller_recipient(order), order_context(order)),
    )


def release_funds(order_id, actor_id, actor_role=ActorRole.MEMBER.value) -> Order:
    """Buyer early release, or administrator release when ``actor_role`` is Admin.

    Once the release commits it stands: a failure reading the order back
    is logged and None is returned instead of an error.
    """
    command = ReleaseFunds(order_id=order_id, actor_id=actor_id, actor_role=actor_role)
    amount = _locked("release_funds", order_id, command)
    return _after_commit(
        "release_funds",
        order_id,
        lambda order: send(MessageKind.FUNDS_RELEASED, seller_recipient(order), order_context(order, amount=amount)),
    )


def cancel_order(order_id, actor_id, actor_role=ActorRole.MEMBER.value, reason=None) -> Order:
    command = CancelOrder(order_id=order_id, actor_id=actor_id, actor_role=actor_role, reason=reason)
    _locked("cancel_order", order_id, command, _stock_listing_ids("cancel_order", order_id))

    def notify(order):
        context = order_context(order, reason=reason, refunded=order.status == OrderStatus.REFUNDED.value)
        if str(actor_id) != str(order.buyer_id):
            send(MessageKind.ORDER_CANCELLED, buyer_recipient(order), context)
        if str(actor_id) != str(order.seller_id):
            send(MessageKind.ORDER_CANCELLED, seller_recipient(order), context)

    return _after_commit("cancel_order", order_id, notify)


# ---------------------------------------------------------------------------
# Disputes
# ---------------------------------------------------------------------------
def open_dispute(order_id, actor_id, reason, description=None, evidence_url=None) -> str:
    command = OpenDispute(
        order_id=order_id,
        actor_id=actor_id,
        reason=reason,
        description=description,
        evidence_url=evidence_url,
    )
    dispute_id = _locked("open_dispute", order_id, command)

    def notify(order):
        other = seller_recipient(order) if str(actor_id) == str(order.buyer_id) else buyer_recipient(order)
        send(MessageKind.DISPUTE_OPENED, other, order_context(order, reason=reason))

    _after_commit("open_dispute", order_id, notify)
    return dispute_id


def resolve_dispute(
    dispute_id,
    admin_id,
    outcome,
    resolution,
    refund_amount=None,
    actor_role=ActorRole.ADMIN.value,
) -> Dispute:
    order_id = _order_id_of_dispute(dispute_id)
    command = ResolveDispute(
        dispute_id=dispute_id,
        actor_id=admin_id,
        actor_role=actor_role,
        outcome=outcome,
        resolution=resolution,
        refund_amount=refund_amount,
    )
    _locked("resolve_dispute", order_id, command, _stock_listing_ids("resolve_dispute", order_id))

    dispute = _read_back("resolve_dispute", lambda: _load_dispute(dispute_id))
    if dispute is None:
        return None

    def notify(order):
        context = order_context(order, outcome=dispute.outcome, resolution=dispute.resolution)
        ruling = DisputeOutcome(dispute.outcome)
        if ruling in (DisputeOutcome.BUYER_FAVORABLE, DisputeOutcome.PARTIAL_REFUND, DisputeOutcome.NO_ACTION):
            send(MessageKind.DISPUTE_RESOLVED, buyer_recipient(order), context)
        if ruling in (DisputeOutcome.SELLER_FAVORABLE, DisputeOutcome.NO_ACTION):
            send(MessageKind.DISPUTE_RESOLVED, seller_recipient(order), context)

    _after_commit("resolve_dispute", order_id, notify)
    return dispute


def _progress_dispute(operation: str, dispute_id, command) -> Dispute:
    _locked(operation, _order_id_of_dispute(dispute_id), command)
    return _read_back(operation, lambda: _load_dispute(dispute_id))


def start_dispute_review(dispute_id, admin_id, note=None, actor_role=ActorRole.ADMIN.value) -> Dispute:
    command = StartDisputeReview(dispute_id=dispute_id, actor_id=admin_id, actor_role=actor_role, note=note)
    return _progress_dispute("start_dispute_review", dispute_id, command)


def request_dispute_evidence(dispute_id, admin_id, note, actor_role=ActorRole.ADMIN.value) -> Dispute:
    command = RequestDisputeEvidence(dispute_id=dispute_id, actor_id=admin_id, actor_role=actor_role, note=note)
    return _progress_dispute("request_dispute_evidence", dispute_id, command)


def escalate_dispute(dispute_id, admin_id, note, actor_role=ActorRole.ADMIN.value) -> Dispute:
    command = EscalateDispute(dispute_id=dispute_id, actor_id=admin_id, actor_role=actor_role, note=note)
    return _progress_dispute("escalate_dispute", dispute_id, command)


def add_dispute_note(dispute_id, admin_id, note, actor_role=ActorRole.ADMIN.value) -> Dispute:
    command = AddDisputeNote(dispute_id=dispute_id, actor_id=admin_id, actor_role=actor_role, note=note)
    return _progress_dispute("add_dispute_note", dispute_id, command)


def close_dispute(dispute_id, admin_id, actor_role=ActorRole.ADMIN.value) -> Dispute:
    command = CloseDispute(dispute_id=dispute_id, actor_id=admin_id, actor_role=actor_role)
    return _progress_dispute("close_dispute", dispute_id, command)


def submit_dispute_evidence(dispute_id, actor_id, url, description=None) -> Dispute:
    command = SubmitDisputeEvidence(dispute_id=dispute_id, actor_id=actor_id, url=url, description=description)
    return _progress_dispute("submit_dispute_evidence", dispute_id, command)
