"""Checkout Orchestrator: converts an active cart into an immutable Order.

Flow:
    1. Cart must be active and non-empty; inputs are validated up front
    2. Every line is re-checked against the Inventory Guard
    3. Every applied coupon is re-validated against the current cart
    4. Reserve: atomic stock decrements, then atomic coupon-use claims;
       a failure part-way gives back everything already reserved
    5. Allocate the order number and snapshot lines and discounts
    6. Settle ``mock`` payments synchronously; other methods stay pending
    7. Persist the order; on failure give reservations back
    8. Convert the cart and record coupon usage; the order stays placed if
       either fails, which surfaces as CheckoutIncomplete

Nothing is written to any repository before step 7, and stock is only
touched through conditional decrements, so a checkout that loses a race for
the last unit fails with OutOfStock without leaving a trace.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from commerce.cart.cart import CartStatus, ShoppingCart
from commerce.cart.coupons import coupon_context_for
from commerce.checkout.numbering import next_order_number
from commerce.checkout.settlement import PaymentSettlement, get_settlement
from commerce.discount import usage
from commerce.discount.discount import Discount
from commerce.discount.validation import USAGE_LIMIT_REACHED, validate_coupon
from commerce.errors import (
    CheckoutIncomplete,
    EmptyCart,
    InvalidCoupon,
    InvalidInput,
    InventoryInconsistency,
    OutOfStock,
)
from commerce.inventory import guard
from commerce.order.order import Address, CustomerInfo, Order, OrderStatus, PaymentMethod, PaymentStatus
from commerce.pricing.engine import line_tax, line_total, to_decimal, to_money

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OrderInput:
    """Customer-supplied checkout data; billing defaults to the shipping address."""

    customer: dict
    shipping_address: dict
    payment_method: str
    billing_address: dict | None = None
    customer_note: str | None = None


@dataclass
class _Reservation:
    stock: list = field(default_factory=list)  # (StockUnit, quantity)
    coupons: list = field(default_factory=list)  # (Discount, used count)


def _sku(item) -> str:
    return f"VAR-{item.variant_id}" if item.variant_id else f"PROD-{item.product_id}"


def _allocate_discount(cart: ShoppingCart) -> list[float]:
    """Spread the cart discount over its lines in proportion to line value.

    Each share is the step between consecutive rounded running totals, so the
    shares add up to the discount exactly and none is negative.
    """
    subtotal = to_decimal(cart.subtotal)
    discount = to_decimal(cart.discount_total)
    if not discount or not subtotal:
        return [0.0 for _ in cart.items]

    shares = []
    running = allocated = to_decimal(0)
    for item in cart.items:
        running += to_decimal(item.price) * item.quantity
        reached = to_decimal(to_money(discount * running / subtotal))
        shares.append(to_money(reached - allocated))
        allocated = reached
    return shares


class CheckoutOrchestrator:
    def __init__(self, settlement: PaymentSettlement | None = None) -> None:
        self.settlement = settlement

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    def checkout(self, cart_id, order_input: OrderInput) -> Order:
        cart_repo = current_domain.repository_for(ShoppingCart)
        cart = cart_repo.get(cart_id)

        with structlog.contextvars.bound_contextvars(cart_id=str(cart.id)):
            self._assert_checkoutable(cart)
            payment_method = self._payment_method(order_input.payment_method)
            customer, shipping, billing = self._validated_parties(order_input)

            units = self._verify_stock(cart)
            self._recheck_coupons(cart)
            reservation = self._reserve(cart, units)

            try:
                order = self._place(cart, order_input, payment_method, customer, shipping, billing, reservation)
            except Exception:
                logger.exception("order_persist_failed")
                self._release(reservation, cart.customer_id)
                raise

            self._finalize(cart_repo, cart, order, reservation)

            logger.info(
                "checkout_completed",
                order_number=order.order_number,
                status=order.status,
                total=order.pricing.total,
            )
            return order

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def _assert_checkoutable(self, cart):
        if CartStatus(cart.status) != CartStatus.ACTIVE:
            raise InvalidInput({"cart": [f"Cannot check out a cart that is {cart.status}"]})
        if not cart.items:
            raise EmptyCart({"cart": ["Cart is empty"]})

    def _payment_method(self, value) -> PaymentMethod:
        try:
            return PaymentMethod(value)
        except ValueError:
            raise InvalidInput({"payment_method": [f"Unsupported payment method `{value}`"]}) from None

    def _validated_parties(self, order_input):
        # Value object construction validates required fields and lengths
        customer = CustomerInfo(**order_input.customer)
        shipping = Address(**order_input.shipping_address)
        billing = Address(**(order_input.billing_address or order_input.shipping_address))
        return customer, shipping, billing

    def _verify_stock(self, cart):
        units = []
        for item in cart.items:
            unit = guard.resolve(item.product_id, item.variant_id)
            if not guard.check_stock(unit, item.quantity):
                raise OutOfStock({"quantity": [f"Insufficient stock for {item.product_name}"]})
            units.append((unit, item))
        return units

    def _recheck_coupons(self, cart):
        if not cart.applied_coupons:
            return
        context = coupon_context_for(cart)
        for coupon in cart.applied_coupons:
            result = validate_coupon(coupon.code, context)
            if not result.valid:
                raise InvalidCoupon({"coupon_code": [f"{coupon.code}: {result.message}"]})

    # -------------------------------------------------------------------
    # Reservation
    # -------------------------------------------------------------------
    def _reserve(self, cart, units) -> _Reservation:
        reservation = _Reservation()
        customer_id = str(cart.customer_id) if cart.customer_id else None

        try:
            for unit, item in units:
                try:
                    guard.decrement_stock(unit, item.quantity)
                except OutOfStock:
                    raise OutOfStock({"quantity": [f"Insufficient stock for {item.product_name}"]}) from None
                reservation.stock.append((unit, item.quantity))

            discount_repo = current_domain.repository_for(Discount)
            for coupon in cart.applied_coupons:
                discount = discount_repo.get(coupon.discount_id)
                used = usage.claim_usage(discount, customer_id)
                if used is None:
                    raise InvalidCoupon({"coupon_code": [f"{coupon.code}: {USAGE_LIMIT_REACHED}"]})
                reservation.coupons.append((discount, used))
        except Exception:
            self._release(reservation, customer_id)
            raise

        return reservation

    def _release(self, reservation: _Reservation, customer_id) -> None:
        """Give back reserved stock and coupon uses.

        A unit that cannot be returned leaves counters out of step with the
        committed orders: that is fatal and surfaces as InventoryInconsistency.
        """
        customer_id = str(customer_id) if customer_id else None
        failed = []

        for unit, quantity in reservation.stock:
            try:
                guard.increment_stock(unit, quantity)
            except Exception:
                failed.append(unit.key)
        for discount, _ in reservation.coupons:
            usage.release_usage(discount, customer_id)

        reservation.stock.clear()
        reservation.coupons.clear()

        if failed:
            logger.critical("inventory_release_failed", units=failed)
            raise InventoryInconsistency("Reserved stock could not be released", units=failed)

    # -------------------------------------------------------------------
    # Order creation
    # -------------------------------------------------------------------
    def _settle(self, order_number, cart, payment_method):
        if payment_method != PaymentMethod.MOCK:
            return OrderStatus.PENDING_PAYMENT.value, PaymentStatus.PENDING.value, None

        settlement = self.settlement or get_settlement()
        result = settlement.settle(order_number, cart.total, payment_method.value)
        details = {
            "transaction_id": result.transaction_id,
            "payment_gateway": result.payment_gateway,
            "paid_at": result.paid_at,
            "failure_reason": result.failure_reason,
        }
        if result.success:
            return OrderStatus.CONFIRMED.value, PaymentStatus.PAID.value, details

        logger.warning("payment_settlement_failed", order_number=order_number, reason=result.failure_reason)
        return OrderStatus.PAYMENT_FAILED.value, PaymentStatus.FAILED.value, details

    def _place(self, cart, order_input, payment_method, customer, shipping, billing, reservation) -> Order:
        now = datetime.now(UTC)
        order_number = next_order_number(now)

        discount_shares = _allocate_discount(cart)
        items_data = [
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "product_name": item.product_name,
                "product_slug": item.product_slug,
                "product_image": item.product_image,
                "sku": _sku(item),
                "variant_options": item.option_map,
                "quantity": item.quantity,
                "price": item.price,
                "compare_at_price": item.compare_at_price,
                "discount_amount": share,
                "tax_amount": line_tax(item.price, item.quantity),
                "total": line_total(item.price, item.quantity),
            }
            for item, share in zip(cart.items, discount_shares, strict=True)
        ]

        names = {str(discount.id): discount.name for discount, _ in reservation.coupons}
        discounts_data = [
            {
                "discount_id": str(coupon.discount_id),
                "code": coupon.code,
                "name": names.get(str(coupon.discount_id), coupon.code),
                "discount_type": coupon.discount_type,
                "amount": coupon.discount_amount,
            }
            for coupon in cart.applied_coupons
        ]

        status, payment_status, payment_details = self._settle(order_number, cart, payment_method)

        order = Order.place(
            order_number=order_number,
            order_date=now,
            customer=customer.to_dict(),
            shipping_address=shipping.to_dict(),
            billing_address=billing.to_dict(),
            items_data=items_data,
            pricing={
                "subtotal": cart.subtotal,
                "discount_total": cart.discount_total,
                "tax_total": cart.tax_total,
                "shipping_total": cart.shipping_total,
                "total": cart.total,
            },
            payment_method=payment_method.value,
            status=status,
            payment_status=payment_status,
            payment_details=payment_details,
            discounts_data=discounts_data,
            customer_id=str(cart.customer_id) if cart.customer_id else None,
            session_id=cart.session_id,
            customer_note=order_input.customer_note,
        )
        current_domain.repository_for(Order).add(order)
        return order

    def _finalize(self, cart_repo, cart, order, reservation):
        """Convert the cart, then record coupon usage against the placed order.

        The order is already committed and stays placed. The cart goes first
        so that it can no longer be checked out, and both steps are attempted
        even if one of them fails.
        """
        failed = []
        try:
            cart.convert_to_order(order.order_number)
            cart_repo.add(cart)
        except Exception:
            logger.exception("cart_conversion_failed", order_number=order.order_number)
            failed.append("cart")

        try:
            self._record_coupon_usage(order, reservation)
        except Exception:
            logger.exception("coupon_usage_record_failed", order_number=order.order_number)
            failed.append("coupon_usage")

        if failed:
            logger.critical("checkout_finalize_failed", order_number=order.order_number, steps=failed)
            raise CheckoutIncomplete(
                f"Order {order.order_number} was placed but checkout could not be completed",
                order_number=order.order_number,
                steps=failed,
            )

    def _record_coupon_usage(self, order, reservation):
        if not reservation.coupons:
            return
        repo = current_domain.repository_for(Discount)
        for discount, used in reservation.coupons:
            discount.record_usage(used, order_number=order.order_number, customer_id=order.customer_id)
            repo.add(discount)


def checkout(cart_id, order_input: OrderInput) -> Order:
    return CheckoutOrchestrator().checkout(cart_id, order_input)
