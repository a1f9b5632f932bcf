"""BDD tests for releasing escrowed funds."""

from escrow.operations import release_funds
from escrow.order.order import ActorRole
from protean.exceptions import ValidationError
from pytest_bdd import scenarios, when

scenarios("features/escrow_release.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when("the buyer releases the funds")
def buyer_releases(order_id, error):
    try:
        release_funds(order_id, "buyer-001")
    except ValidationError as exc:
        error["exc"] = exc


@when("an administrator releases the funds")
def admin_releases(order_id, error):
    try:
        release_funds(order_id, "admin-001", actor_role=ActorRole.ADMIN.value)
    except ValidationError as exc:
        error["exc"] = exc
