"""Payment settlement factory.

Provides get_settlement() / set_settlement() to swap implementations.
MockSettlement is the default.
"""

from commerce.checkout.settlement.mock_adapter import MockSettlement
from commerce.checkout.settlement.port import PaymentSettlement, SettlementResult

__all__ = ["MockSettlement", "PaymentSettlement", "SettlementResult", "get_settlement", "reset_settlement", "set_settlement"]

_current_settlement: PaymentSettlement | None = None


def get_settlement() -> PaymentSettlement:
    global _current_settlement
    if _current_settlement is None:
        _current_settlement = MockSettlement()
    return _current_settlement


def set_settlement(settlement: PaymentSettlement) -> None:
    """Override the active settlement adapter (useful for tests)."""
    global _current_settlement
    _current_settlement = settlement


def reset_settlement() -> None:
    global _current_settlement
    _current_settlement = None
