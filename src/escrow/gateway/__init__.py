"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations. Only the
simulated gateway ships with the engine; PAYMENT_GATEWAY must name it.
"""

from escrow import settings
from escrow.gateway.fake_adapter import FakeGateway
from escrow.gateway.port import ChargeResult, PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        name = settings.payment_gateway_name()
        if name != "fake":
            raise ValueError(f"Unknown payment gateway: {name}")
        _current_gateway = FakeGateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    global _current_gateway
    _current_gateway = None


__all__ = ["ChargeResult", "FakeGateway", "PaymentGateway", "get_gateway", "set_gateway", "reset_gateway"]
