"""Order aggregate (CQRS) — the core of the escrow domain.

An Order is placed by a buyer against a single seller's listings. The
buyer's payment is held in escrow (``funds_held``) until it is released to
the seller by the buyer, by an administrator, by the auto-release sweeper,
or by a seller-favourable dispute ruling.

State Machine:
    PENDING → CONFIRMED → [PROCESSING →] SHIPPED → DELIVERED → COMPLETED
    {PENDING} → CANCELLED
    {CONFIRMED} → REFUNDED (cancel after payment)
    any non-terminal → DISPUTED → {COMPLETED, REFUNDED}
    {CONFIRMED, PROCESSING, SHIPPED, DELIVERED, DISPUTED} → COMPLETED (release)

Every status change appends exactly one StatusHistoryEntry. Guards run
before the first mutation, so a rejected operation leaves the aggregate
exactly as it was.
"""

import json
from enum import Enum
from uuid import uuid4

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from escrow import clock, settings
from escrow.clock.port import as_utc
from escrow.domain import escrow
from escrow.exceptions import InvalidStateTransitionError
from escrow.order.events import (
    DeliveryConfirmed,
    DisputeOutcomeApplied,
    FundsReleased,
    OrderCancelled,
    OrderDisputed,
    OrderPlaced,
    OrderProcessingStarted,
    OrderShipped,
    PaymentCaptured,
    PaymentDeclined,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"
    DISPUTED = "Disputed"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    PARTIALLY_REFUNDED = "Partially_Refunded"


class PaymentMethod(Enum):
    CREDIT_CARD = "Credit_Card"
    DEBIT_CARD = "Debit_Card"
    EFT = "EFT"
    PAYFAST = "PayFast"
    PAYPAL = "PayPal"
    STRIPE = "Stripe"
    CASH_ON_DELIVERY = "Cash_On_Delivery"


class ActorRole(Enum):
    MEMBER = "Member"
    ADMIN = "Admin"
    SYSTEM = "System"


class ReleaseChannel(Enum):
    BUYER = "Buyer"
    ADMIN = "Admin"
    AUTO = "Auto"
    DISPUTE = "Dispute"


class DisputeOutcome(Enum):
    BUYER_FAVORABLE = "Buyer_Favorable"
    SELLER_FAVORABLE = "Seller_Favorable"
    PARTIAL_REFUND = "Partial_Refund"
    NO_ACTION = "No_Action"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED, OrderStatus.DISPUTED},
    OrderStatus.CONFIRMED: {
        OrderStatus.PROCESSING,
        OrderStatus.SHIPPED,
        OrderStatus.REFUNDED,  # Cancel after payment
        OrderStatus.DISPUTED,
        OrderStatus.COMPLETED,  # Admin release
    },
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.DISPUTED, OrderStatus.COMPLETED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.DISPUTED, OrderStatus.COMPLETED},
    OrderStatus.DELIVERED: {OrderStatus.COMPLETED, OrderStatus.DISPUTED},
    OrderStatus.DISPUTED: {OrderStatus.COMPLETED, OrderStatus.REFUNDED},
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_PAYMENT_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.PROCESSING: {PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.FAILED: {PaymentStatus.PROCESSING, PaymentStatus.COMPLETED, PaymentStatus.FAILED},
    PaymentStatus.COMPLETED: {PaymentStatus.REFUNDED, PaymentStatus.PARTIALLY_REFUNDED},
    PaymentStatus.PARTIALLY_REFUNDED: set(),
    PaymentStatus.REFUNDED: set(),
}

TERMINAL_STATUSES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.CONFIRMED}

# Funds can only be released if something was actually captured
_RELEASABLE_PAYMENT_STATES = {PaymentStatus.COMPLETED, PaymentStatus.PARTIALLY_REFUNDED}


def _cents(amount: float) -> float:
    return round(float(amount or 0.0), 2)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@escrow.value_object(part_of="Order")
class OrderPricing:
    """Financial summary locked at placement: never recomputed afterwards."""

    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    shipping = Float(default=0.0)
    discount = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="ZAR")

    @invariant.post
    def amounts_are_non_negative(self):
        for name in ("subtotal", "tax", "shipping", "discount", "total"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValidationError({name: ["Amount cannot be negative"]})

    @invariant.post
    def total_matches_components(self):
        expected = _cents(self.subtotal + self.tax + self.shipping - self.discount)
        if abs(expected - _cents(self.total)) > 0.005:
            raise ValidationError({"total": [f"Total {self.total:.2f} does not equal computed total {expected:.2f}"]})


@escrow.value_object(part_of="Order")
class ShippingAddress:
    """Where the buyer asked the order to be sent, captured at placement."""

    recipient = String(max_length=150)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    province = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(max_length=100, default="South Africa")
    phone = String(max_length=30)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@escrow.entity(part_of="Order")
class OrderItem:
    """A line snapshot of a listing at purchase time.

    ``listing_id`` is kept only so stock can be handed back on cancellation
    or a buyer-favourable dispute ruling.
    """

    listing_id = Identifier(required=True)
    product_name = String(required=True, max_length=200)
    description = Text()
    sku = String(max_length=100)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    total_price = Float(required=True, min_value=0.0)


@escrow.entity(part_of="Order")
class Payment:
    """A single charge attempt against the order."""

    amount = Float(required=True, min_value=0.0)
    currency = String(max_length=3, default="ZAR")
    method = String(choices=PaymentMethod, required=True)
    transaction_id = String(required=True, max_length=100)
    gateway_reference = String(max_length=200)
    gateway_status = String(max_length=50)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    failure_reason = String(max_length=500)
    refunded_amount = Float(default=0.0, min_value=0.0)
    is_escrow = Boolean(default=True)
    is_released = Boolean(default=False)
    escrow_released_at = DateTime()
    created_at = DateTime()
    processed_at = DateTime()


@escrow.entity(part_of="Order")
class StatusHistoryEntry:
    """An append-only audit record. Never mutated once written."""

    sequence = Integer(required=True, min_value=1)
    status = String(choices=OrderStatus, required=True)
    actor_id = String(required=True, max_length=100)
    actor_role = String(choices=ActorRole, required=True)
    note = Text()
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@escrow.aggregate
class Order:
    order_number = String(required=True, max_length=30, unique=True)
    buyer_id = Identifier(required=True)
    seller_id = Identifier(required=True)
    buyer_email = String(max_length=254)
    seller_email = String(max_length=254)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    items = HasMany(OrderItem)
    payments = HasMany(Payment)
    history = HasMany(StatusHistoryEntry)
    pricing = ValueObject(OrderPricing, required=True)
    shipping_address = ValueObject(ShippingAddress)
    buyer_notes = Text()

    # Escrow
    funds_held = Boolean(default=True)
    funds_released_at = DateTime()
    auto_release_enabled = Boolean(default=True)
    auto_release_days = Integer(min_value=0, default=7)

    # Shipping
    tracking_number = String(max_length=100)
    courier_service = String(max_length=100)
    cancellation_reason = String(max_length=500)

    # Dispute link (0 or 1 per order)
    dispute_id = Identifier()
    dispute_open = Boolean(default=False)

    created_at = DateTime()
    paid_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------
    @invariant.post
    def buyer_and_seller_must_differ(self):
        if self.buyer_id and self.seller_id and str(self.buyer_id) == str(self.seller_id):
            raise ValidationError({"buyer_id": ["You cannot purchase your own listing"]})

    @invariant.post
    def released_funds_are_fully_accounted(self):
        if self.funds_held:
            return
        if self.funds_released_at is None:
            raise ValidationError({"funds_released_at": ["Released funds must record a release time"]})
        unreleased = [p for p in self.payments if p.is_escrow and not p.is_released]
        if unreleased:
            raise ValidationError({"payments": ["Every escrow payment must be released with the order's funds"]})

    @invariant.post
    def lifecycle_timestamps_are_ordered(self):
        stamps = [self.created_at, self.paid_at, self.shipped_at, self.delivered_at]
        present = [as_utc(s) for s in stamps if s is not None]
        if present != sorted(present):
            raise ValidationError({"timestamps": ["Lifecycle timestamps must not go backwards"]})
        if self.cancelled_at and self.created_at and as_utc(self.cancelled_at) < as_utc(self.created_at):
            raise ValidationError({"cancelled_at": ["Cancellation cannot precede creation"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        buyer_id: str,
        seller_id: str,
        items_data: list[dict],
        tax: float = 0.0,
        shipping: float = 0.0,
        discount: float = 0.0,
        currency: str | None = None,
        buyer_email: str | None = None,
        seller_email: str | None = None,
        shipping_address: dict | None = None,
        buyer_notes: str | None = None,
        auto_release_days: int | None = None,
        auto_release_enabled: bool = True,
    ):
        """Create a Pending order from listing snapshots.

        ``items_data`` holds dicts with listing_id, product_name, unit_price,
        quantity and optionally sku and description. Prices are snapshotted
        and the total is fixed here for the lifetime of the order.
        """
        if str(buyer_id) == str(seller_id):
            raise ValidationError({"buyer_id": ["You cannot purchase your own listing"]})
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})
        for item in items_data:
            if int(item.get("quantity", 0)) < 1:
                raise ValidationError({"quantity": ["Quantity must be at least 1"]})
            if float(item.get("unit_price", 0.0)) < 0:
                raise ValidationError({"unit_price": ["Price cannot be negative"]})
        for name, value in (("tax", tax), ("shipping", shipping), ("discount", discount)):
            if value < 0:
                raise ValidationError({name: ["Amount cannot be negative"]})

        subtotal = _cents(sum(float(i["unit_price"]) * int(i["quantity"]) for i in items_data))
        total = _cents(subtotal + tax + shipping - discount)
        if total < 0:
            raise ValidationError({"discount": ["Discount cannot exceed the order value"]})

        now = clock.now()
        days = settings.auto_release_days() if auto_release_days is None else auto_release_days

        order = cls(
            order_number=f"ORD-{now:%Y%m%d}-{uuid4().hex[:6].upper()}",
            buyer_id=buyer_id,
            seller_id=seller_id,
            buyer_email=buyer_email,
            seller_email=seller_email,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            pricing=OrderPricing(
                subtotal=subtotal,
                tax=_cents(tax),
                shipping=_cents(shipping),
                discount=_cents(discount),
                total=total,
                currency=(currency or settings.default_currency()).upper(),
            ),
            shipping_address=ShippingAddress(**shipping_address) if shipping_address else None,
            buyer_notes=buyer_notes,
            funds_held=True,
            auto_release_enabled=auto_release_enabled,
            auto_release_days=days,
            created_at=now,
            updated_at=now,
        )

        snapshots = []
        for item in items_data:
            quantity = int(item["quantity"])
            unit_price = _cents(item["unit_price"])
            line = OrderItem(
                listing_id=item["listing_id"],
                product_name=item["product_name"],
                description=item.get("description"),
                sku=item.get("sku") or f"LST-{item['listing_id']}",
                unit_price=unit_price,
                quantity=quantity,
                total_price=_cents(unit_price * quantity),
            )
            order.add_items(line)
            snapshots.append(
                {
                    "listing_id": str(line.listing_id),
                    "product_name": line.product_name,
                    "unit_price": line.unit_price,
                    "quantity": line.quantity,
                }
            )

        order._record(OrderStatus.PENDING, buyer_id, ActorRole.MEMBER, "Order created", now)
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order.order_number,
                buyer_id=str(buyer_id),
                seller_id=str(seller_id),
                items=json.dumps(snapshots),
                item_count=len(snapshots),
                total=total,
                currency=order.pricing.currency,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @property
    def is_terminal(self) -> bool:
        return OrderStatus(self.status) in TERMINAL_STATUSES

    @property
    def total(self) -> float:
        return self.pricing.total

    @property
    def currency(self) -> str:
        return self.pricing.currency

    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidStateTransitionError(
                {"status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    def _assert_payment_can_transition(self, target_status: PaymentStatus) -> None:
        current = PaymentStatus(self.payment_status)
        if target_status not in _PAYMENT_TRANSITIONS.get(current, set()):
            raise InvalidStateTransitionError(
                {"payment_status": [f"Cannot move payment from {current.value} to {target_status.value}"]}
            )

    def _record(self, status: OrderStatus, actor_id, actor_role: ActorRole | str, note: str, now) -> None:
        role = actor_role.value if isinstance(actor_role, ActorRole) else actor_role
        self.add_history(
            StatusHistoryEntry(
                sequence=len(self.history) + 1,
                status=status.value,
                actor_id=str(actor_id),
                actor_role=role,
                note=note,
                recorded_at=now,
            )
        )

    def timeline(self) -> list:
        """Status history in the order it was written."""
        return sorted(self.history, key=lambda entry: entry.sequence)

    def stock_lines(self) -> list[tuple[str, int]]:
        """(listing_id, quantity) for every line, for stock restoration."""
        return [(str(item.listing_id), item.quantity) for item in self.items]

    def held_amount(self) -> float:
        """Escrowed money not yet paid out to the seller."""
        return _cents(
            sum(
                (p.amount or 0.0) - (p.refunded_amount or 0.0)
                for p in self.payments
                if p.is_escrow and not p.is_released and self._counts(p)
            )
        )

    @staticmethod
    def _counts(payment) -> bool:
        return payment.status in (PaymentStatus.COMPLETED.value, PaymentStatus.PARTIALLY_REFUNDED.value)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def assert_payable(self, amount: float) -> None:
        """Guards for a charge attempt, checked before the gateway is called."""
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise InvalidStateTransitionError({"status": [f"Order is {self.status}; only Pending orders accept payment"]})
        self._assert_payment_can_transition(PaymentStatus.COMPLETED)
        if abs(_cents(amount) - _cents(self.total)) > 0.005:
            raise ValidationError(
                {"amount": [f"Payment amount {amount:.2f} does not match order total {self.total:.2f}"]}
            )

    def record_payment(
        self,
        amount: float,
        method: str,
        succeeded: bool,
        actor_id: str,
        gateway_reference: str | None = None,
        gateway_status: str | None = None,
        failure_reason: str | None = None,
    ):
        """Record the outcome of a charge attempt.

        A successful charge confirms the order and holds the funds in escrow.
        A declined charge is kept on the ledger and the order stays Pending
        so the buyer can retry.
        """
        self.assert_payable(amount)

        now = clock.now()
        payment = Payment(
            amount=_cents(amount),
            currency=self.currency,
            method=method,
            transaction_id=f"TXN-{uuid4().hex[:16].upper()}",
            gateway_reference=gateway_reference,
            gateway_status=gateway_status,
            is_escrow=True,
            is_released=False,
            created_at=now,
            processed_at=now,
        )

        if not succeeded:
            payment.status = PaymentStatus.FAILED.value
            payment.failure_reason = failure_reason or "Payment declined"
            self.add_payments(payment)
            self.payment_status = PaymentStatus.FAILED.value
            self.updated_at = now
            self._record(
                OrderStatus.PENDING,
                actor_id,
                ActorRole.MEMBER,
                f"Payment failed: {payment.failure_reason}",
                now,
            )
            self.raise_(
                PaymentDeclined(
                    order_id=str(self.id),
                    payment_id=str(payment.id),
                    transaction_id=payment.transaction_id,
                    amount=payment.amount,
                    reason=payment.failure_reason,
                    declined_at=now,
                )
            )
            return payment

        self._assert_can_transition(OrderStatus.CONFIRMED)
        payment.status = PaymentStatus.COMPLETED.value
        self.add_payments(payment)
        with atomic_change(self):
            self.status = OrderStatus.CONFIRMED.value
            self.payment_status = PaymentStatus.COMPLETED.value
            self.paid_at = now
            self.updated_at = now
        self._record(
            OrderStatus.CONFIRMED,
            actor_id,
            ActorRole.MEMBER,
            f"Payment of {self.currency} {payment.amount:.2f} received and held in escrow",
            now,
        )
        self.raise_(
            PaymentCaptured(
                order_id=str(self.id),
                payment_id=str(payment.id),
                transaction_id=payment.transaction_id,
                amount=payment.amount,
                currency=self.currency,
                method=method,
                paid_at=now,
            )
        )
        return payment

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def start_processing(self, actor_id: str) -> None:
        """Seller acknowledges the paid order and starts preparing it."""
        self._assert_can_transition(OrderStatus.PROCESSING)
        if PaymentStatus(self.payment_status) != PaymentStatus.COMPLETED:
            raise InvalidStateTransitionError({"payment_status": ["Order must be paid before processing"]})

        now = clock.now()
        self.status = OrderStatus.PROCESSING.value
        self.updated_at = now
        self._record(OrderStatus.PROCESSING, actor_id, ActorRole.MEMBER, "Seller started processing the order", now)
        self.raise_(
            OrderProcessingStarted(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                started_at=now,
            )
        )

    def ship(self, actor_id: str, tracking_number: str | None = None, courier_service: str | None = None) -> None:
        """Seller hands the order to a courier."""
        self._assert_can_transition(OrderStatus.SHIPPED)
        if OrderStatus(self.status) not in (OrderStatus.CONFIRMED, OrderStatus.PROCESSING):
            raise InvalidStateTransitionError({"status": ["Order must be Confirmed or Processing to ship"]})
        if PaymentStatus(self.payment_status) != PaymentStatus.COMPLETED:
            raise InvalidStateTransitionError({"payment_status": ["Order must be paid before shipping"]})

        now = clock.now()
        with atomic_change(self):
            self.status = OrderStatus.SHIPPED.value
            self.tracking_number = tracking_number
            self.courier_service = courier_service
            self.shipped_at = now
            self.updated_at = now

        note = "Order shipped"
        if courier_service:
            note += f" via {courier_service}"
        if tracking_number:
            note += f" (tracking {tracking_number})"
        self._record(OrderStatus.SHIPPED, actor_id, ActorRole.MEMBER, note, now)
        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                tracking_number=tracking_number,
                courier_service=courier_service,
                shipped_at=now,
            )
        )

    def confirm_delivery(self, actor_id: str) -> None:
        """Buyer confirms receipt. Starts the auto-release grace period."""
        self._assert_can_transition(OrderStatus.DELIVERED)

        now = clock.now()
        with atomic_change(self):
            self.status = OrderStatus.DELIVERED.value
            self.delivered_at = now
            self.updated_at = now
        self._record(OrderStatus.DELIVERED, actor_id, ActorRole.MEMBER, "Delivery confirmed by buyer", now)
        self.raise_(
            DeliveryConfirmed(
                order_id=str(self.id),
                buyer_id=str(self.buyer_id),
                delivered_at=now,
                auto_release_days=self.auto_release_days,
            )
        )

    # -------------------------------------------------------------------
    # Escrow release
    # -------------------------------------------------------------------
    def _assert_can_release(self, channel: ReleaseChannel, now) -> None:
        from escrow.order.escrow_policy import auto_release_due

        if not self.funds_held:
            raise InvalidStateTransitionError({"funds_held": ["Funds have already been released"]})
        self._assert_can_transition(OrderStatus.COMPLETED)
        if PaymentStatus(self.payment_status) not in _RELEASABLE_PAYMENT_STATES:
            raise InvalidStateTransitionError(
                {"payment_status": [f"No captured payment to release (payment is {self.payment_status})"]}
            )

        if channel == ReleaseChannel.BUYER and OrderStatus(self.status) != OrderStatus.DELIVERED:
            raise InvalidStateTransitionError({"status": ["Funds can only be released by the buyer after delivery"]})
        if channel in (ReleaseChannel.ADMIN, ReleaseChannel.BUYER) and self.dispute_open:
            raise InvalidStateTransitionError({"dispute": ["Funds cannot be released while a dispute is open"]})
        if channel == ReleaseChannel.AUTO and not auto_release_due(self, now):
            raise InvalidStateTransitionError({"funds_held": ["Order is not yet eligible for automatic release"]})

    def _release_escrow(self, now) -> float:
        """Pay out every unreleased escrow payment and complete the order.

        Payments are flipped first so the aggregate never holds
        ``funds_held=False`` with an unreleased escrow payment.
        """
        amount = self.held_amount()
        for payment in self.payments:
            if payment.is_escrow and not payment.is_released:
                payment.is_released = True
                payment.escrow_released_at = now

        with atomic_change(self):
            self.funds_held = False
            self.funds_released_at = now
            self.status = OrderStatus.COMPLETED.value
            self.updated_at = now
        return amount

    def release_funds(self, channel: ReleaseChannel | str, actor_id: str, actor_role: ActorRole | str) -> float:
        """Release escrowed funds to the seller and complete the order.

        An administrator may release at any stage while funds are held,
        except while a dispute is open: the dispute has to be resolved
        first, for administrators as well as buyers. Automatic release
        additionally needs the grace period to have passed.

        Returns the amount released.
        """
        channel = ReleaseChannel(channel)
        role = ActorRole(actor_role)
        now = clock.now()
        self._assert_can_release(channel, now)

        previous = OrderStatus(self.status)
        amount = self._release_escrow(now)

        if channel == ReleaseChannel.BUYER:
            note = "Funds released by buyer after delivery"
        elif channel == ReleaseChannel.AUTO:
            note = f"Funds auto-released after delivery period of {self.auto_release_days} day(s)"
        elif previous == OrderStatus.DELIVERED:
            note = "Funds released by administrator"
        else:
            note = f"Funds released by administrator override before delivery (order was {previous.value})"

        self._record(OrderStatus.COMPLETED, actor_id, role, note, now)
        self.raise_(
            FundsReleased(
                order_id=str(self.id),
                seller_id=str(self.seller_id),
                amount=amount,
                currency=self.currency,
                channel=channel.value,
                released_by=str(actor_id),
                released_at=now,
            )
        )
        return amount

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, actor_id: str, actor_role: ActorRole | str, reason: str | None = None) -> bool:
        """Cancel a Pending or Confirmed order.

        When the payment had completed the order ends Refunded rather than
        Cancelled and every payment is marked Refunded. Returns True in that
        case, so the caller knows stock must be handed back.
        """
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise InvalidStateTransitionError({"status": [f"Cannot cancel an order that is {current.value}"]})

        refunded = PaymentStatus(self.payment_status) == PaymentStatus.COMPLETED
        target = OrderStatus.REFUNDED if refunded else OrderStatus.CANCELLED
        self._assert_can_transition(target)
        if refunded:
            self._assert_payment_can_transition(PaymentStatus.REFUNDED)

        now = clock.now()
        refund_amount = 0.0
        if refunded:
            refund_amount = self._refund_all_payments()

        with atomic_change(self):
            self.status = target.value
            if refunded:
                self.payment_status = PaymentStatus.REFUNDED.value
            self.cancelled_at = now
            self.cancellation_reason = reason
            self.updated_at = now

        note = "Order cancelled"
        if refunded:
            note += f" and {self.currency} {refund_amount:.2f} refunded"
        if reason:
            note += f": {reason}"
        self._record(target, actor_id, actor_role, note, now)
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                cancelled_by=str(actor_id),
                reason=reason,
                refunded=refunded,
                refund_amount=refund_amount,
                cancelled_at=now,
            )
        )
        return refunded

    def _refund_all_payments(self) -> float:
        refunded = 0.0
        for payment in self.payments:
            if payment.status == PaymentStatus.COMPLETED.value:
                payment.status = PaymentStatus.REFUNDED.value
                payment.refunded_amount = payment.amount
                refunded += payment.amount
        return _cents(refunded)

    # -------------------------------------------------------------------
    # Disputes
    # -------------------------------------------------------------------
    def open_dispute(self, dispute_id: str, actor_id: str, reason: str) -> None:
        """Freeze the order while an administrator reviews a dispute."""
        if self.dispute_id is not None:
            raise InvalidStateTransitionError({"dispute": ["A dispute already exists for this order"]})
        self._assert_can_transition(OrderStatus.DISPUTED)

        now = clock.now()
        previous = self.status
        party = "buyer" if str(actor_id) == str(self.buyer_id) else "seller"
        with atomic_change(self):
            self.status = OrderStatus.DISPUTED.value
            self.dispute_id = dispute_id
            self.dispute_open = True
            self.updated_at = now
        self._record(OrderStatus.DISPUTED, actor_id, ActorRole.MEMBER, f"Dispute opened by {party}: {reason}", now)
        self.raise_(
            OrderDisputed(
                order_id=str(self.id),
                dispute_id=str(dispute_id),
                opened_by=str(actor_id),
                previous_status=previous,
                disputed_at=now,
            )
        )

    def assert_dispute_outcome_applicable(self, outcome: DisputeOutcome, refund_amount: float | None = None) -> None:
        """Run every guard for a ruling without touching the order."""
        if not self.dispute_open:
            raise InvalidStateTransitionError({"dispute": ["Order has no open dispute"]})

        if outcome == DisputeOutcome.BUYER_FAVORABLE:
            self._assert_can_transition(OrderStatus.REFUNDED)
        elif outcome == DisputeOutcome.SELLER_FAVORABLE:
            self._assert_can_transition(OrderStatus.COMPLETED)
            if not self.funds_held:
                raise InvalidStateTransitionError({"funds_held": ["Funds have already been released"]})
            if PaymentStatus(self.payment_status) not in _RELEASABLE_PAYMENT_STATES:
                raise InvalidStateTransitionError({"payment_status": ["No captured payment to release to the seller"]})
        elif outcome == DisputeOutcome.PARTIAL_REFUND:
            if refund_amount is None:
                raise ValidationError({"refund_amount": ["A refund amount is required for a partial refund"]})
            if refund_amount <= 0 or _cents(refund_amount) > _cents(self.total):
                raise ValidationError(
                    {"refund_amount": [f"Refund amount must be greater than 0 and at most {self.total:.2f}"]}
                )
            self._assert_payment_can_transition(PaymentStatus.PARTIALLY_REFUNDED)

    def record_dispute_resolution(
        self,
        outcome: DisputeOutcome | str,
        resolution: str,
        actor_id: str,
        refund_amount: float | None = None,
    ) -> dict:
        """Apply an admin ruling to the order and its payments.

        Exactly one history entry is written whatever the outcome. A partial
        refund leaves the order Disputed; an administrator release is the
        way out of that state.

        Returns ``{"refund_amount", "restore_stock"}`` for the caller.
        """
        outcome = DisputeOutcome(outcome)
        self.assert_dispute_outcome_applicable(outcome, refund_amount)

        now = clock.now()
        applied_refund = None
        restore_stock = False
        note = f"Dispute resolved: {outcome.value}. {resolution}"

        if outcome == DisputeOutcome.BUYER_FAVORABLE:
            applied_refund = _cents(self.total)
            restore_stock = self.paid_at is not None
            for payment in self.payments:
                if payment.status in (PaymentStatus.COMPLETED.value, PaymentStatus.PARTIALLY_REFUNDED.value):
                    payment.status = PaymentStatus.REFUNDED.value
                    payment.refunded_amount = payment.amount
            with atomic_change(self):
                self.status = OrderStatus.REFUNDED.value
                self.payment_status = PaymentStatus.REFUNDED.value
                self.dispute_open = False
                self.updated_at = now
        elif outcome == DisputeOutcome.SELLER_FAVORABLE:
            released = self._release_escrow(now)
            self.dispute_open = False
            self.raise_(
                FundsReleased(
                    order_id=str(self.id),
                    seller_id=str(self.seller_id),
                    amount=released,
                    currency=self.currency,
                    channel=ReleaseChannel.DISPUTE.value,
                    released_by=str(actor_id),
                    released_at=now,
                )
            )
        elif outcome == DisputeOutcome.PARTIAL_REFUND:
            applied_refund = _cents(refund_amount)
            remaining = applied_refund
            for payment in self.payments:
                if payment.status == PaymentStatus.COMPLETED.value and remaining > 0:
                    portion = min(payment.amount, remaining)
                    payment.status = PaymentStatus.PARTIALLY_REFUNDED.value
                    payment.refunded_amount = _cents(portion)
                    remaining = _cents(remaining - portion)
            with atomic_change(self):
                self.payment_status = PaymentStatus.PARTIALLY_REFUNDED.value
                self.dispute_open = False
                self.updated_at = now
            note += (
                f" Partial refund of {self.currency} {applied_refund:.2f} recorded;"
                " order stays Disputed until an administrator releases the remaining funds."
            )
        else:
            with atomic_change(self):
                self.dispute_open = False
                self.updated_at = now

        self._record(OrderStatus(self.status), actor_id, ActorRole.ADMIN, note, now)
        self.raise_(
            DisputeOutcomeApplied(
                order_id=str(self.id),
                dispute_id=str(self.dispute_id),
                outcome=outcome.value,
                refund_amount=applied_refund,
                status=self.status,
                payment_status=self.payment_status,
                applied_at=now,
            )
        )
        return {"refund_amount": applied_refund, "restore_stock": restore_stock}
