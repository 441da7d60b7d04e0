"""Configurable mock settlement for development and testing.

Succeeds by default and produces ``MOCK-<millis>-<order number>``
transaction ids; tests flip it to failure with ``configure``.
"""

import time
from datetime import UTC, datetime

from commerce.checkout.settlement.port import PaymentSettlement, SettlementResult

GATEWAY_NAME = "Mock Payment Gateway"


class MockSettlement(PaymentSettlement):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment declined"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Payment declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def settle(self, order_number: str, amount: float, payment_method: str) -> SettlementResult:
        self.calls.append({"order_number": order_number, "amount": amount, "payment_method": payment_method})

        if self.should_succeed:
            return SettlementResult(
                success=True,
                transaction_id=f"MOCK-{int(time.time() * 1000)}-{order_number}",
                payment_gateway=GATEWAY_NAME,
                paid_at=datetime.now(UTC),
            )
        return SettlementResult(
            success=False,
            payment_gateway=GATEWAY_NAME,
            failure_reason=self.failure_reason,
        )
