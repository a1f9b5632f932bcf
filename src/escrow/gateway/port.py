"""Payment gateway port.

The escrow engine only ever charges the buyer once per attempt; refunds
and payouts are settled by the marketplace's finance tooling, so the port
stays narrow.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ChargeResult:
    """Result of a charge attempt."""

    success: bool
    gateway_reference: str | None = None
    gateway_status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    @abstractmethod
    def create_charge(
        self,
        amount: float,
        currency: str,
        payment_method: str,
        idempotency_key: str,
    ) -> ChargeResult:
        """Charge the buyer. Must not raise for a declined charge."""
        ...
