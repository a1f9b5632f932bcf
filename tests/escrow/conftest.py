from datetime import UTC, datetime

import pytest
from escrow import clock as escrow_clock
from escrow.clock import FrozenClock
from escrow.gateway import FakeGateway, reset_gateway, set_gateway
from escrow.notifier import reset_notifier, set_notifier
from escrow.notifier.fake_notifier import FakeNotifier
from escrow.order.locking import reset_locks
from protean.integrations.pytest import DomainFixture

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)

BUYER = "buyer-001"
SELLER = "seller-001"
ADMIN = "admin-001"
OUTSIDER = "member-999"


@pytest.fixture(scope="session")
def escrow_bed():
    from escrow.domain import escrow

    bed = DomainFixture(escrow)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture()
def clock():
    return FrozenClock(T0)


@pytest.fixture()
def notifier():
    return FakeNotifier()


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture(autouse=True)
def _ctx(escrow_bed, clock, notifier, gateway):
    escrow_clock.set_clock(clock)
    set_notifier(notifier)
    set_gateway(gateway)
    with escrow_bed.domain_context():
        yield
    escrow_clock.reset_clock()
    reset_notifier()
    reset_gateway()
    reset_locks()


# ---------------------------------------------------------------------------
# Order set-up through the application layer
# ---------------------------------------------------------------------------
@pytest.fixture()
def listing_id():
    from escrow.operations import register_listing

    return register_listing(SELLER, "Vintage Camera", price=1000.00, quantity=1)


@pytest.fixture()
def placed_order_id(listing_id):
    from escrow.operations import place_order

    return place_order(
        BUYER,
        [{"listing_id": listing_id, "quantity": 1}],
        buyer_email="buyer@example.com",
        seller_email="seller@example.com",
    )


@pytest.fixture()
def paid_order_id(placed_order_id):
    from escrow.operations import pay_order

    pay_order(placed_order_id, BUYER, 1000.00)
    return placed_order_id


@pytest.fixture()
def shipped_order_id(paid_order_id):
    from escrow.operations import ship_order

    ship_order(paid_order_id, SELLER, tracking_number="TRK-100", courier_service="Courier Guy")
    return paid_order_id


@pytest.fixture()
def delivered_order_id(shipped_order_id):
    from escrow.operations import confirm_delivery

    confirm_delivery(shipped_order_id, BUYER)
    return shipped_order_id


@pytest.fixture()
def dispute_id(paid_order_id):
    from escrow.operations import open_dispute

    return open_dispute(paid_order_id, BUYER, "Item not as described")
