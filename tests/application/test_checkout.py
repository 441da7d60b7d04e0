"""Application tests for the checkout orchestrator."""

import re
from datetime import UTC, datetime
from types import SimpleNamespace

import pytest
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from commerce.cart.cart import CartStatus, ShoppingCart
from commerce.cart.coupons import ApplyCouponToCart
from commerce.cart.items import AddToCart
from commerce.cart.management import get_or_create_cart
from commerce.checkout import orchestrator
from commerce.checkout.numbering import next_order_number
from commerce.checkout.orchestrator import CheckoutOrchestrator, OrderInput, _allocate_discount, checkout
from commerce.discount import usage
from commerce.discount.discount import Discount
from commerce.errors import (
    CheckoutIncomplete,
    EmptyCart,
    InvalidCoupon,
    InvalidInput,
    InventoryInconsistency,
    OutOfStock,
)
from commerce.inventory import guard
from commerce.order.order import Order


def _cart_with(product_id, quantity=2, customer_id="cust-001", variant_id=None):
    cart = get_or_create_cart(customer_id=customer_id)
    current_domain.process(
        AddToCart(cart_id=cart.id, product_id=product_id, variant_id=variant_id, quantity=quantity),
        asynchronous=False,
    )
    return cart.id


def _input(customer_details, payment_method="mock", **overrides):
    return OrderInput(payment_method=payment_method, **customer_details, **overrides)


def _orders():
    return current_domain.repository_for(Order).list_all()


def _stock(product_id, variant_id=None):
    return guard.available(guard.resolve(product_id, variant_id, active_only=False))


class _CriticalRecorder:
    """Stands in for the module logger and keeps critical events only."""

    def __init__(self):
        self.events = []

    def critical(self, event, **kw):
        self.events.append((event, kw.get("steps")))

    def __getattr__(self, name):
        return lambda *args, **kw: None


class TestSuccessfulCheckout:
    def test_order_mirrors_the_cart(self, make_product, customer_details):
        product_id = make_product(base_price=60.0, initial_stock=10)
        cart_id = _cart_with(product_id, quantity=2)

        order = checkout(cart_id, _input(customer_details))

        assert re.fullmatch(r"ORD-\d{8}-0001", order.order_number)
        assert order.pricing.subtotal == 120.0
        assert order.pricing.tax_total == 12.0
        assert order.pricing.shipping_total == 0.0
        assert order.pricing.total == 132.0
        assert order.customer_id == "cust-001"
        assert order.customer.email == "jane@example.com"

        item = order.items[0]
        assert item.quantity == 2
        assert item.price == 60.0
        assert item.total == 120.0
        assert item.tax_amount == 12.0
        assert item.sku == f"PROD-{product_id}"

    def test_stock_is_decremented(self, make_product, customer_details):
        product_id = make_product(initial_stock=10)
        checkout(_cart_with(product_id, quantity=2), _input(customer_details))
        assert _stock(product_id) == 8

    def test_variant_stock_is_decremented(self, make_product, make_variant, customer_details):
        product_id = make_product(initial_stock=10)
        variant_id = make_variant(product_id, initial_stock=3)
        order = checkout(_cart_with(product_id, quantity=1, variant_id=variant_id), _input(customer_details))

        assert _stock(product_id, variant_id) == 2
        assert _stock(product_id) == 10
        assert order.items[0].sku == f"VAR-{variant_id}"

    def test_cart_is_converted(self, make_product, customer_details):
        cart_id = _cart_with(make_product())
        checkout(cart_id, _input(customer_details))

        cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        assert cart.status == CartStatus.CONVERTED.value
        assert cart.items == []

    def test_next_interaction_starts_a_fresh_cart(self, make_product, customer_details):
        cart_id = _cart_with(make_product())
        checkout(cart_id, _input(customer_details))
        assert get_or_create_cart(customer_id="cust-001").id != cart_id

    def test_mock_payment_confirms_the_order(self, make_product, customer_details, settlement):
        order = checkout(_cart_with(make_product()), _input(customer_details))
        assert order.status == "confirmed"
        assert order.payment_status == "paid"
        assert order.payment_details.payment_gateway == "Mock Payment Gateway"
        assert order.payment_details.transaction_id.endswith(order.order_number)
        assert settlement.calls[0]["amount"] == 132.0

    def test_declined_payment_still_records_the_order(self, make_product, customer_details, settlement):
        settlement.configure(should_succeed=False, failure_reason="Card declined")
        product_id = make_product(initial_stock=5)
        order = checkout(_cart_with(product_id, quantity=1), _input(customer_details))

        assert order.status == "payment_failed"
        assert order.payment_status == "failed"
        assert order.payment_details.failure_reason == "Card declined"
        assert _stock(product_id) == 4

    def test_other_payment_methods_stay_pending(self, make_product, customer_details, settlement):
        order = checkout(_cart_with(make_product()), _input(customer_details, payment_method="credit_card"))
        assert order.status == "pending_payment"
        assert order.payment_status == "pending"
        assert order.payment_details is None
        assert settlement.calls == []

    def test_billing_defaults_to_shipping(self, make_product, customer_details):
        order = checkout(_cart_with(make_product()), _input(customer_details))
        assert order.billing_address == order.shipping_address

    def test_guest_checkout(self, make_product, customer_details):
        cart = get_or_create_cart(session_id="sess-001")
        current_domain.process(AddToCart(cart_id=cart.id, product_id=make_product(), quantity=1), asynchronous=False)
        order = checkout(cart.id, _input(customer_details))
        assert order.customer_id is None
        assert order.session_id == "sess-001"

    def test_untracked_products_need_no_stock(self, make_product, customer_details):
        product_id = make_product(track_inventory=False, initial_stock=0)
        order = checkout(_cart_with(product_id, quantity=50), _input(customer_details))
        assert order.items[0].quantity == 50


class TestCheckoutWithCoupons:
    def test_coupon_flows_into_the_order(self, make_product, make_discount, customer_details):
        discount_id = make_discount(code="SAVE10", value=10.0)
        cart_id = _cart_with(make_product(base_price=60.0), quantity=2)
        current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code="SAVE10"), asynchronous=False)

        order = checkout(cart_id, _input(customer_details))

        assert order.pricing.discount_total == 12.0
        assert order.pricing.tax_total == 10.8
        assert order.pricing.total == 118.8
        assert order.items[0].discount_amount == 12.0
        applied = order.applied_discounts[0]
        assert applied.code == "SAVE10"
        assert applied.name == "Ten percent off"
        assert applied.amount == 12.0

        discount = current_domain.repository_for(Discount).get(discount_id)
        assert discount.usage_count == 1

    def test_discount_is_spread_over_lines(self, make_product, make_discount, customer_details):
        make_discount(code="FLAT", discount_type="fixed_amount", value=10.0)
        cart_id = _cart_with(make_product(base_price=30.0), quantity=1)
        current_domain.process(
            AddToCart(cart_id=cart_id, product_id=make_product(name="Sock", slug="sock", base_price=10.0), quantity=1),
            asynchronous=False,
        )
        current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code="FLAT"), asynchronous=False)

        order = checkout(cart_id, _input(customer_details))
        shares = sorted(item.discount_amount for item in order.items)
        assert shares == [2.5, 7.5]

    def test_per_customer_limit_blocks_a_second_use(self, make_product, make_discount, customer_details):
        make_discount(code="ONCE", usage_limit_per_customer=1)
        product_id = make_product(initial_stock=10)

        cart_id = _cart_with(product_id)
        current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code="ONCE"), asynchronous=False)
        checkout(cart_id, _input(customer_details))

        cart_id = _cart_with(product_id)
        with pytest.raises(InvalidCoupon) as exc:
            current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code="ONCE"), asynchronous=False)
        assert exc.value.messages == {"coupon_code": ["You have already used this coupon"]}

    def test_coupon_exhausted_between_apply_and_checkout(self, make_product, make_discount, customer_details):
        make_discount(code="LAST", usage_limit=1)
        product_id = make_product(initial_stock=10)

        first = _cart_with(product_id, customer_id="cust-001")
        second = _cart_with(product_id, customer_id="cust-002")
        for cart_id in (first, second):
            current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code="LAST"), asynchronous=False)

        checkout(first, _input(customer_details))
        with pytest.raises(InvalidCoupon):
            checkout(second, _input(customer_details))

        assert len(_orders()) == 1
        assert _stock(product_id) == 8


class TestCheckoutRejections:
    def test_empty_cart(self, customer_details):
        cart = get_or_create_cart(customer_id="cust-001")
        with pytest.raises(EmptyCart) as exc:
            checkout(cart.id, _input(customer_details))
        assert exc.value.messages == {"cart": ["Cart is empty"]}

    def test_converted_cart(self, make_product, customer_details):
        cart_id = _cart_with(make_product())
        checkout(cart_id, _input(customer_details))
        with pytest.raises(InvalidInput):
            checkout(cart_id, _input(customer_details))

    def test_unsupported_payment_method(self, make_product, customer_details):
        with pytest.raises(InvalidInput):
            checkout(_cart_with(make_product()), _input(customer_details, payment_method="barter"))

    def test_incomplete_address(self, make_product, customer_details):
        customer_details["shipping_address"].pop("city")
        with pytest.raises(ValidationError):
            checkout(_cart_with(make_product()), _input(customer_details))
        assert _orders() == []

    def test_out_of_stock_leaves_no_trace(self, make_product, customer_details):
        product_id = make_product(name="Trail Runner", initial_stock=2)
        cart_id = _cart_with(product_id, quantity=2)
        guard.set_stock(guard.resolve(product_id), 1)

        with pytest.raises(OutOfStock) as exc:
            checkout(cart_id, _input(customer_details))

        assert exc.value.messages == {"quantity": ["Insufficient stock for Trail Runner"]}
        assert _orders() == []
        assert _stock(product_id) == 1
        cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        assert cart.status == CartStatus.ACTIVE.value
        assert len(cart.items) == 1

    def test_losing_the_race_for_the_last_unit(self, make_product, customer_details, monkeypatch):
        product_id = make_product(initial_stock=1)
        cart_id = _cart_with(product_id, quantity=1)

        # Another checkout takes the unit after this one has verified stock
        guard.set_stock(guard.resolve(product_id), 0)
        monkeypatch.setattr(guard, "check_stock", lambda unit, quantity: True)

        with pytest.raises(OutOfStock):
            checkout(cart_id, _input(customer_details))
        assert _orders() == []
        assert _stock(product_id) == 0

    def test_partial_reservation_is_given_back(self, make_product, customer_details, monkeypatch):
        plenty = make_product(name="Plenty", slug="plenty", initial_stock=10)
        scarce = make_product(name="Scarce", slug="scarce", initial_stock=1)
        cart_id = _cart_with(plenty, quantity=3)
        current_domain.process(AddToCart(cart_id=cart_id, product_id=scarce, quantity=1), asynchronous=False)

        guard.set_stock(guard.resolve(scarce), 0)
        monkeypatch.setattr(guard, "check_stock", lambda unit, quantity: True)

        with pytest.raises(OutOfStock) as exc:
            checkout(cart_id, _input(customer_details))

        assert exc.value.messages == {"quantity": ["Insufficient stock for Scarce"]}
        assert _stock(plenty) == 10
        assert _stock(scarce) == 0

    def test_failure_after_reservation_gives_everything_back(
        self, make_product, make_discount, customer_details, monkeypatch
    ):
        discount_id = make_discount(code="SAVE10", usage_limit=5)
        product_id = make_product(initial_stock=5)
        cart_id = _cart_with(product_id, quantity=2)
        current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code="SAVE10"), asynchronous=False)

        def broken_settle(self, order_number, cart, payment_method):
            raise RuntimeError("settlement unavailable")

        monkeypatch.setattr(CheckoutOrchestrator, "_settle", broken_settle)

        with pytest.raises(RuntimeError):
            checkout(cart_id, _input(customer_details))

        discount = current_domain.repository_for(Discount).get(discount_id)
        assert _stock(product_id) == 5
        assert usage.global_usage(discount) == 0
        assert _orders() == []

    def test_unreturnable_stock_is_fatal(self, make_product, customer_details, monkeypatch):
        product_id = make_product(initial_stock=5)
        cart_id = _cart_with(product_id, quantity=2)

        def broken_settle(self, order_number, cart, payment_method):
            raise RuntimeError("settlement unavailable")

        def broken_increment(unit, quantity):
            raise ConnectionError("counter store unavailable")

        monkeypatch.setattr(CheckoutOrchestrator, "_settle", broken_settle)
        monkeypatch.setattr(guard, "increment_stock", broken_increment)

        with pytest.raises(InventoryInconsistency) as exc:
            checkout(cart_id, _input(customer_details))
        assert exc.value.units == [f"stock:product:{product_id}"]


class TestFailureAfterTheOrderIsPlaced:
    @pytest.fixture()
    def critical_events(self, monkeypatch):
        recorder = _CriticalRecorder()
        monkeypatch.setattr(orchestrator, "logger", recorder)
        return recorder.events

    def test_usage_not_recorded_leaves_the_cart_converted(
        self, make_product, make_discount, customer_details, monkeypatch, critical_events
    ):
        make_discount(code="SAVE10")
        cart_id = _cart_with(make_product(), quantity=2)
        current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code="SAVE10"), asynchronous=False)

        def broken_record(self, order, reservation):
            raise ConnectionError("database unavailable")

        monkeypatch.setattr(CheckoutOrchestrator, "_record_coupon_usage", broken_record)

        with pytest.raises(CheckoutIncomplete) as exc:
            checkout(cart_id, _input(customer_details))

        [order] = _orders()
        assert exc.value.order_number == order.order_number
        assert exc.value.steps == ["coupon_usage"]
        assert critical_events == [("checkout_finalize_failed", ["coupon_usage"])]
        assert current_domain.repository_for(ShoppingCart).get(cart_id).status == CartStatus.CONVERTED.value

        # The same cart cannot produce a second order
        with pytest.raises(InvalidInput):
            checkout(cart_id, _input(customer_details))
        assert len(_orders()) == 1

    def test_cart_not_converted_still_records_usage(
        self, make_product, make_discount, customer_details, monkeypatch, critical_events
    ):
        discount_id = make_discount(code="SAVE10")
        cart_id = _cart_with(make_product(), quantity=2)
        current_domain.process(ApplyCouponToCart(cart_id=cart_id, coupon_code="SAVE10"), asynchronous=False)

        def broken_convert(self, order_number):
            raise ConnectionError("database unavailable")

        monkeypatch.setattr(ShoppingCart, "convert_to_order", broken_convert)

        with pytest.raises(CheckoutIncomplete) as exc:
            checkout(cart_id, _input(customer_details))

        assert exc.value.steps == ["cart"]
        assert critical_events == [("checkout_finalize_failed", ["cart"])]
        assert len(_orders()) == 1
        assert current_domain.repository_for(Discount).get(discount_id).usage_count == 1


class TestDiscountAllocation:
    def _cart(self, discount_total, *line_values):
        items = [SimpleNamespace(price=value, quantity=1) for value in line_values]
        return SimpleNamespace(subtotal=float(sum(line_values)), discount_total=discount_total, items=items)

    def test_a_cent_over_equal_lines_never_goes_negative(self):
        shares = _allocate_discount(self._cart(0.01, 50.0, 50.0, 0.0))
        assert shares == [0.01, 0.0, 0.0]

    def test_shares_add_up_to_the_discount(self):
        shares = _allocate_discount(self._cart(10.0, 33.33, 33.33, 33.34))
        assert shares == [3.33, 3.34, 3.33]
        assert sum(shares) == pytest.approx(10.0)

    def test_no_discount(self):
        assert _allocate_discount(self._cart(0.0, 20.0, 30.0)) == [0.0, 0.0]


class TestOrderNumbers:
    def test_sequence_continues_within_the_day(self, make_product, customer_details):
        product_id = make_product(initial_stock=10)
        numbers = []
        for customer_id in ("cust-001", "cust-002", "cust-003", "cust-004"):
            cart_id = _cart_with(product_id, quantity=1, customer_id=customer_id)
            numbers.append(checkout(cart_id, _input(customer_details)).order_number)

        assert [n[-4:] for n in numbers] == ["0001", "0002", "0003", "0004"]

    def test_flushed_counter_never_reissues_a_number(self, make_product, customer_details, counters):
        product_id = make_product(initial_stock=10)
        for customer_id in ("cust-001", "cust-002", "cust-003"):
            checkout(_cart_with(product_id, quantity=1, customer_id=customer_id), _input(customer_details))

        counters.flush()
        assert next_order_number().endswith("-0004")

    def test_numbers_carry_the_utc_date(self):
        moment = datetime(2026, 2, 28, 23, 30, tzinfo=UTC)
        assert next_order_number(moment) == "ORD-20260228-0001"
