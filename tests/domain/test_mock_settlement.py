"""Tests for the mock payment settlement adapter."""

from commerce.checkout.settlement import get_settlement
from commerce.checkout.settlement.mock_adapter import GATEWAY_NAME, MockSettlement


class TestMockSettlement:
    def test_succeeds_by_default(self):
        result = MockSettlement().settle("ORD-20260101-0001", 132.0, "mock")
        assert result.success is True
        assert result.transaction_id.startswith("MOCK-")
        assert result.transaction_id.endswith("-ORD-20260101-0001")
        assert result.payment_gateway == GATEWAY_NAME
        assert result.paid_at is not None

    def test_configured_failure(self):
        settlement = MockSettlement()
        settlement.configure(should_succeed=False, failure_reason="Card expired")
        result = settlement.settle("ORD-20260101-0001", 132.0, "mock")
        assert result.success is False
        assert result.failure_reason == "Card expired"
        assert result.transaction_id is None

    def test_records_calls(self):
        settlement = MockSettlement()
        settlement.settle("ORD-20260101-0001", 132.0, "mock")
        assert settlement.calls == [{"order_number": "ORD-20260101-0001", "amount": 132.0, "payment_method": "mock"}]

    def test_factory_returns_installed_adapter(self, settlement):
        assert get_settlement() is settlement
