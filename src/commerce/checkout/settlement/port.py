"""Payment settlement port (abstract interface).

Checkout settles ``mock`` payments synchronously through this port. Every
other payment method is left pending for an out-of-band payment flow.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SettlementResult:
    """Result of a settlement attempt."""

    success: bool
    transaction_id: str | None = None
    payment_gateway: str | None = None
    paid_at: datetime | None = None
    failure_reason: str | None = None


class PaymentSettlement(ABC):
    @abstractmethod
    def settle(self, order_number: str, amount: float, payment_method: str) -> SettlementResult:
        """Settle ``amount`` for the order and report the outcome."""
        ...
