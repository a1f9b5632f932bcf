"""Message templates for escrow notifications.

Each template renders ``{"subject", "body"}`` from a plain context dict,
so the notifier never sees domain objects.
"""

from enum import Enum


class MessageKind(Enum):
    ORDER_CONFIRMATION = "Order_Confirmation"
    NEW_ORDER = "New_Order"
    ORDER_SHIPPED = "Order_Shipped"
    DELIVERY_CONFIRMED = "Delivery_Confirmed"
    FUNDS_RELEASED = "Funds_Released"
    ORDER_CANCELLED = "Order_Cancelled"
    DISPUTE_OPENED = "Dispute_Opened"
    DISPUTE_RESOLVED = "Dispute_Resolved"


def _money(context: dict) -> str:
    return f"{context.get('currency', 'ZAR')} {float(context.get('amount', 0.0)):.2f}"


class OrderConfirmationTemplate:
    kind = MessageKind.ORDER_CONFIRMATION

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Order Confirmation - {number}",
            "body": (
                f"Your payment of {_money(context)} for order {number} was successful.\n\n"
                "The funds are held in escrow and will only be paid to the seller "
                "once you confirm delivery."
            ),
        }


class NewOrderTemplate:
    kind = MessageKind.NEW_ORDER

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"New Order Received - {number}",
            "body": (
                f"Order {number} has been paid ({_money(context)}).\n\n"
                "Please prepare the items for shipping and add a tracking number "
                "once dispatched."
            ),
        }


class OrderShippedTemplate:
    kind = MessageKind.ORDER_SHIPPED

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        tracking = context.get("tracking_number") or "not provided"
        courier = context.get("courier_service") or "the courier"
        return {
            "subject": f"Your Order Has Shipped - {number}",
            "body": (
                f"Order {number} is on its way with {courier}.\n"
                f"Tracking number: {tracking}\n\n"
                "Please confirm delivery once you have received your items."
            ),
        }


class DeliveryConfirmedTemplate:
    kind = MessageKind.DELIVERY_CONFIRMED

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        days = context.get("auto_release_days", 7)
        return {
            "subject": f"Delivery Confirmed - {number}",
            "body": (
                f"The buyer confirmed delivery of order {number}.\n\n"
                f"Escrowed funds are released automatically after {days} day(s) "
                "unless the buyer releases them sooner or opens a dispute."
            ),
        }


class FundsReleasedTemplate:
    kind = MessageKind.FUNDS_RELEASED

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Funds Released - {number}",
            "body": (
                f"The escrowed payment of {_money(context)} for order {number} "
                "has been released to you."
            ),
        }


class OrderCancelledTemplate:
    kind = MessageKind.ORDER_CANCELLED

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        reason = context.get("reason") or "No reason given"
        refunded = context.get("refunded", False)
        body = f"Order {number} has been cancelled.\n\nReason: {reason}"
        if refunded:
            body += f"\n\nThe payment of {_money(context)} has been refunded."
        return {"subject": f"Order Cancelled - {number}", "body": body}


class DisputeOpenedTemplate:
    kind = MessageKind.DISPUTE_OPENED

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Dispute Opened - {number}",
            "body": (
                f"A dispute has been opened on order {number}.\n\n"
                f"Reason: {context.get('reason', 'N/A')}\n\n"
                "Our team will review the case. Funds stay in escrow until it is resolved."
            ),
        }


class DisputeResolvedTemplate:
    kind = MessageKind.DISPUTE_RESOLVED

    @staticmethod
    def render(context: dict) -> dict:
        number = context.get("order_number", "N/A")
        return {
            "subject": f"Dispute Resolved - {number}",
            "body": (
                f"The dispute on order {number} has been resolved.\n\n"
                f"Outcome: {context.get('outcome', 'N/A')}\n"
                f"Resolution: {context.get('resolution', '')}"
            ),
        }


TEMPLATE_REGISTRY: dict[MessageKind, type] = {
    template.kind: template
    for template in (
        OrderConfirmationTemplate,
        NewOrderTemplate,
        OrderShippedTemplate,
        DeliveryConfirmedTemplate,
        FundsReleasedTemplate,
        OrderCancelledTemplate,
        DisputeOpenedTemplate,
        DisputeResolvedTemplate,
    )
}


def render(kind: MessageKind, context: dict) -> dict:
    return TEMPLATE_REGISTRY[kind].render(context)
