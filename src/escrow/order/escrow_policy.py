"""Escrow release policy — when held funds may move to the seller.

Three ways out of escrow:

* buyer early release, once the order is Delivered;
* administrator release at any point while funds are held (recorded as an
  override when the order never reached Delivered);
* automatic release, once ``auto_release_days`` whole days have passed
  since delivery.

The automatic predicate is evaluated twice: once by the sweeper when it
picks candidates, and again inside the order's own transaction.
"""

from datetime import datetime, timedelta

from escrow.clock.port import as_utc
from escrow.order.order import OrderStatus, PaymentStatus


def release_deadline(order) -> datetime | None:
    """The first instant at which automatic release is allowed."""
    if order.delivered_at is None:
        return None
    return as_utc(order.delivered_at) + timedelta(days=order.auto_release_days or 0)


def auto_release_due(order, now: datetime) -> bool:
    """True when the sweeper may release this order's funds as of ``now``."""
    if not order.auto_release_enabled or not order.funds_held:
        return False
    if order.delivered_at is None or order.funds_released_at is not None:
        return False
    if order.status == OrderStatus.DISPUTED.value or order.dispute_open:
        return False
    elapsed = as_utc(now) - as_utc(order.delivered_at)
    return elapsed.days >= (order.auto_release_days or 0)


def is_sweep_candidate(order) -> bool:
    """Coarse filter used when loading orders for a sweep."""
    return bool(
        order.funds_held
        and order.auto_release_enabled
        and order.delivered_at is not None
        and order.payment_status == PaymentStatus.COMPLETED.value
    )
