"""Auto-release sweeper — pays out escrow once the post-delivery grace period ends.

Run from cron (``escrow-admin sweep``) or any scheduler. Each order is
released in its own transaction, under the same per-order lock as a manual
release, so the sweeper can race a buyer or an administrator safely:
whoever commits first wins and the other's ``funds_held`` guard fails.
"""

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from escrow import clock
from escrow.notifier.dispatch import order_context, seller_recipient, send
from escrow.notifier.templates import MessageKind
from escrow.order.escrow_policy import auto_release_due
from escrow.order.locking import order_lock
from escrow.order.order import Order
from escrow.order.queries import auto_release_candidate_ids
from escrow.order.release import AutoReleaseFunds

logger = structlog.get_logger(__name__)


def run_auto_release_sweep(batch_size: int | None = None) -> int:
    """Release every order whose grace period has passed. Returns the count released."""
    now = clock.now()
    repo = current_domain.repository_for(Order)
    candidate_ids = auto_release_candidate_ids(batch_size)

    released = 0
    for order_id in candidate_ids:
        try:
            with order_lock(order_id):
                order = repo.get(order_id)
                if not auto_release_due(order, now):
                    continue
                amount = current_domain.process(AutoReleaseFunds(order_id=order_id), asynchronous=False)
        except (ValidationError, ObjectNotFoundError) as exc:
            # Lost a race with a manual release, or a dispute arrived
            logger.info("Auto-release skipped", order_id=order_id, reason=str(exc))
            continue
        except Exception as exc:
            logger.error("Auto-release failed", order_id=order_id, error=str(exc))
            continue

        released += 1
        try:
            order = repo.get(order_id)
        except Exception as exc:
            logger.error("Released order could not be reloaded for notification", order_id=order_id, error=str(exc))
            continue
        send(MessageKind.FUNDS_RELEASED, seller_recipient(order), order_context(order, amount=amount))

    logger.info(
        "Auto-release sweep finished",
        candidates=len(candidate_ids),
        released=released,
        as_of=now.isoformat(),
    )
    return released
