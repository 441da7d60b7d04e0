"""Pricing Engine: cart totals as a pure function of lines and coupons.

All arithmetic runs on ``Decimal``; values are rounded half-up to cents only
when they leave the engine. Coupon amounts are taken as recorded on the
cart at apply time and are never re-derived here.

Rates are read from the environment once, at import:

- ``COMMERCE_TAX_RATE`` (default 0.10)
- ``COMMERCE_FREE_SHIPPING_THRESHOLD`` (default 100): shipping is free when
  the subtotal is strictly above it
- ``COMMERCE_FLAT_SHIPPING`` (default 10)
"""

import os
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

TAX_RATE = Decimal(os.getenv("COMMERCE_TAX_RATE", "0.10"))
FREE_SHIPPING_THRESHOLD = Decimal(os.getenv("COMMERCE_FREE_SHIPPING_THRESHOLD", "100"))
FLAT_SHIPPING = Decimal(os.getenv("COMMERCE_FLAT_SHIPPING", "10"))

_CENT = Decimal("0.01")
_ZERO = Decimal("0")

PERCENTAGE = "percentage"
FIXED_AMOUNT = "fixed_amount"


def to_decimal(value) -> Decimal:
    if value is None:
        return _ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value) -> float:
    return float(to_decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CartTotals:
    subtotal: float = 0.0
    discount_total: float = 0.0
    tax_total: float = 0.0
    shipping_total: float = 0.0
    total: float = 0.0

    def as_dict(self) -> dict:
        return asdict(self)


def compute_totals(items: Iterable, coupons: Iterable = ()) -> CartTotals:
    """Compute cart totals.

    ``items`` expose ``price`` and ``quantity``; ``coupons`` expose
    ``discount_amount``. Shipping depends on the subtotal alone, so an empty
    cart still carries the flat fee.
    """
    subtotal = sum((to_decimal(item.price) * item.quantity for item in items), _ZERO)
    discount_total = sum((to_decimal(coupon.discount_amount) for coupon in coupons), _ZERO)

    tax_total = (subtotal - discount_total) * TAX_RATE
    shipping_total = _ZERO if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING

    total = subtotal - discount_total + tax_total + shipping_total

    return CartTotals(
        subtotal=to_money(subtotal),
        discount_total=to_money(discount_total),
        tax_total=to_money(tax_total),
        shipping_total=to_money(shipping_total),
        total=to_money(total),
    )


def coupon_discount(discount_type: str, value, subtotal) -> float:
    """Discount a coupon is worth against ``subtotal`` right now.

    Percentage coupons take ``value`` percent; fixed-amount coupons take
    ``value`` but never more than the subtotal; free shipping is worth 0.
    """
    subtotal = to_decimal(subtotal)
    value = to_decimal(value)

    if discount_type == PERCENTAGE:
        return to_money(subtotal * value / Decimal(100))
    if discount_type == FIXED_AMOUNT:
        return to_money(min(value, subtotal))
    return 0.0


def line_total(price, quantity) -> float:
    return to_money(to_decimal(price) * quantity)


def line_tax(price, quantity) -> float:
    return to_money(to_decimal(price) * quantity * TAX_RATE)
