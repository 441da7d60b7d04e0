"""Tests for the pricing engine: totals, coupon amounts and rounding."""

from types import SimpleNamespace

from commerce.pricing.engine import (
    CartTotals,
    compute_totals,
    coupon_discount,
    line_tax,
    line_total,
    to_money,
)


def _line(price, quantity):
    return SimpleNamespace(price=price, quantity=quantity)


def _coupon(amount, discount_type="percentage"):
    return SimpleNamespace(discount_amount=amount, discount_type=discount_type)


class TestComputeTotals:
    def test_empty_cart_still_pays_flat_shipping(self):
        totals = compute_totals([], [])
        assert totals == CartTotals(shipping_total=10.0, total=10.0)

    def test_subtotal_above_threshold_ships_free(self):
        totals = compute_totals([_line(60.0, 2)])
        assert totals.subtotal == 120.0
        assert totals.tax_total == 12.0
        assert totals.shipping_total == 0.0
        assert totals.total == 132.0

    def test_subtotal_below_threshold_pays_flat_shipping(self):
        totals = compute_totals([_line(25.0, 2)])
        assert totals.subtotal == 50.0
        assert totals.tax_total == 5.0
        assert totals.shipping_total == 10.0
        assert totals.total == 65.0

    def test_subtotal_exactly_at_threshold_pays_shipping(self):
        totals = compute_totals([_line(100.0, 1)])
        assert totals.shipping_total == 10.0
        assert totals.total == 120.0

    def test_coupon_reduces_taxable_amount(self):
        totals = compute_totals([_line(60.0, 2)], [_coupon(12.0)])
        assert totals.discount_total == 12.0
        assert totals.tax_total == 10.8
        assert totals.total == 118.8

    def test_free_shipping_coupon_leaves_flat_fee(self):
        totals = compute_totals([_line(20.0, 1)], [_coupon(0.0, "free_shipping")])
        assert totals.discount_total == 0.0
        assert totals.shipping_total == 10.0
        assert totals.total == 32.0

    def test_discounts_are_summed_as_recorded(self):
        totals = compute_totals([_line(60.0, 2)], [_coupon(12.0), _coupon(5.0, "fixed_amount")])
        assert totals.discount_total == 17.0
        assert totals.tax_total == 10.3
        assert totals.total == 113.3

    def test_binary_fractions_round_half_up(self):
        totals = compute_totals([_line(0.1, 3), _line(19.99, 1)])
        assert totals.subtotal == 20.29
        assert totals.tax_total == 2.03

    def test_as_dict(self):
        totals = compute_totals([_line(10.0, 1)])
        assert totals.as_dict() == {
            "subtotal": 10.0,
            "discount_total": 0.0,
            "tax_total": 1.0,
            "shipping_total": 10.0,
            "total": 21.0,
        }


class TestCouponDiscount:
    def test_percentage(self):
        assert coupon_discount("percentage", 10, 120.0) == 12.0

    def test_percentage_rounds_to_cents(self):
        assert coupon_discount("percentage", 15, 33.33) == 5.0

    def test_fixed_amount(self):
        assert coupon_discount("fixed_amount", 5, 120.0) == 5.0

    def test_fixed_amount_capped_at_subtotal(self):
        assert coupon_discount("fixed_amount", 50, 30.0) == 30.0

    def test_free_shipping_is_worth_nothing_against_subtotal(self):
        assert coupon_discount("free_shipping", 0, 120.0) == 0.0


class TestLineHelpers:
    def test_line_total(self):
        assert line_total(19.99, 3) == 59.97

    def test_line_tax(self):
        assert line_tax(19.99, 3) == 6.0

    def test_to_money_handles_none(self):
        assert to_money(None) == 0.0
