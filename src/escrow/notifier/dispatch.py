"""Fire-and-forget delivery of escrow notifications.

Called only after the state change has committed. A failing notifier is
logged and otherwise ignored; it never undoes or blocks the change.
"""

import structlog

from escrow.notifier import get_notifier
from escrow.notifier.templates import MessageKind, render

logger = structlog.get_logger(__name__)


def buyer_recipient(order) -> str:
    return order.buyer_email or str(order.buyer_id)


def seller_recipient(order) -> str:
    return order.seller_email or str(order.seller_id)


def order_context(order, **extra) -> dict:
    context = {
        "order_id": str(order.id),
        "order_number": order.order_number,
        "amount": order.pricing.total,
        "currency": order.pricing.currency,
        "tracking_number": order.tracking_number,
        "courier_service": order.courier_service,
        "auto_release_days": order.auto_release_days,
    }
    context.update(extra)
    return context


def send(kind: MessageKind, recipient: str, context: dict) -> bool:
    """Render and send one message. Returns False if delivery failed."""
    rendered = render(kind, context)
    try:
        get_notifier().notify(recipient, rendered["subject"], rendered["body"])
    except Exception as exc:
        logger.error(
            "Notification dispatch failed",
            kind=kind.value,
            recipient=recipient,
            order_id=context.get("order_id"),
            error=str(exc),
        )
        return False

    logger.debug("Notification sent", kind=kind.value, recipient=recipient, order_id=context.get("order_id"))
    return True
