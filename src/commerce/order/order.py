"""Order aggregate (CQRS): the immutable record of a checked-out cart.

Lines, prices and totals are written once, at checkout, and never change.
Afterwards only the status tracks (order status, payment status,
fulfillment status), tracking details and notes move.

Order status machine:
    pending_payment → confirmed | payment_failed | cancelled
    payment_failed  → cancelled
    confirmed       → processing | cancelled | refunded
    processing      → shipped | cancelled | refunded
    shipped         → delivered
    delivered, cancelled, refunded are terminal
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from commerce.domain import commerce
from commerce.errors import Forbidden, InvalidInput, InvalidTransition
from commerce.order.events import (
    OrderCancelled,
    OrderDelivered,
    OrderFulfillmentStatusChanged,
    OrderPaymentStatusChanged,
    OrderPlaced,
    OrderShipped,
    OrderStatusChanged,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING_PAYMENT = "pending_payment"
    PAYMENT_FAILED = "payment_failed"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"
    MOCK = "mock"


class PaymentStatus(Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class FulfillmentStatus(Enum):
    UNFULFILLED = "unfulfilled"
    PARTIALLY_FULFILLED = "partially_fulfilled"
    FULFILLED = "fulfilled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING_PAYMENT: {OrderStatus.CONFIRMED, OrderStatus.PAYMENT_FAILED, OrderStatus.CANCELLED},
    OrderStatus.PAYMENT_FAILED: {OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.REFUNDED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
}

_CANCELLABLE_STATES = {
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.PAYMENT_FAILED,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
}


def _enum_value(enum_cls, value, field_name):
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidInput({field_name: [f"`{value}` is not one of: {allowed}"]}) from None


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@commerce.value_object(part_of="Order")
class CustomerInfo:
    email = String(required=True, max_length=254)
    first_name = String(required=True, max_length=100)
    last_name = String(required=True, max_length=100)
    phone = String(max_length=30)


@commerce.value_object(part_of="Order")
class Address:
    """A delivery or billing address, frozen at checkout time."""

    full_name = String(required=True, max_length=200)
    phone = String(max_length=30)
    address_line1 = String(required=True, max_length=255)
    address_line2 = String(max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=100)


@commerce.value_object(part_of="Order")
class OrderPricing:
    subtotal = Float(default=0.0)
    discount_total = Float(default=0.0)
    tax_total = Float(default=0.0)
    shipping_total = Float(default=0.0)
    total = Float(default=0.0)
    currency = String(max_length=3, default="USD")


@commerce.value_object(part_of="Order")
class PaymentDetails:
    transaction_id = String(max_length=255)
    payment_gateway = String(max_length=100)
    paid_at = DateTime()
    failure_reason = String(max_length=500)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@commerce.entity(part_of="Order")
class OrderItem:
    line_number = Integer(required=True, min_value=1)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(required=True, max_length=255)
    product_slug = String(max_length=255)
    product_image = String(max_length=1000)
    sku = String(required=True, max_length=100)
    variant_options = Text()  # JSON object
    quantity = Integer(required=True, min_value=1)
    price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    discount_amount = Float(default=0.0)
    tax_amount = Float(default=0.0)
    total = Float(required=True, min_value=0.0)


@commerce.entity(part_of="Order")
class AppliedDiscount:
    discount_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    name = String(max_length=255)
    kind = String(max_length=50, default="coupon")
    discount_type = String(max_length=50)
    amount = Float(default=0.0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@commerce.aggregate
class Order:
    order_number = String(required=True, max_length=20)
    order_date = DateTime(required=True)
    order_date_key = String(required=True, max_length=8)  # YYYYMMDD, UTC
    customer_id = Identifier()
    session_id = String(max_length=255)
    customer = ValueObject(CustomerInfo)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    items = HasMany(OrderItem)
    applied_discounts = HasMany(AppliedDiscount)
    pricing = ValueObject(OrderPricing)
    payment_method = String(required=True, choices=PaymentMethod)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_details = ValueObject(PaymentDetails)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING_PAYMENT.value)
    fulfillment_status = String(choices=FulfillmentStatus, default=FulfillmentStatus.UNFULFILLED.value)
    shipping_method = String(max_length=100, default="Standard")
    shipping_carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    tracking_url = String(max_length=1000)
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)
    customer_note = Text()
    internal_note = Text()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_number,
        order_date,
        customer,
        shipping_address,
        billing_address,
        items_data,
        pricing,
        payment_method,
        status,
        payment_status,
        payment_details=None,
        discounts_data=None,
        customer_id=None,
        session_id=None,
        customer_note=None,
    ):
        """Create an order from checkout data.

        Args:
            customer: Dict with email, first_name, last_name, phone.
            shipping_address / billing_address: Dicts matching ``Address``.
            items_data: Line snapshots (product, price, quantity, tax, total ...).
            pricing: Dict with subtotal, discount_total, tax_total,
                     shipping_total and total.
            discounts_data: Dicts with discount_id, code, name, discount_type, amount.
        """
        order = cls(
            order_number=order_number,
            order_date=order_date,
            order_date_key=order_date.strftime("%Y%m%d"),
            customer_id=customer_id,
            session_id=session_id,
            customer=CustomerInfo(**customer),
            shipping_address=Address(**shipping_address),
            billing_address=Address(**billing_address),
            pricing=OrderPricing(**pricing),
            payment_method=_enum_value(PaymentMethod, payment_method, "payment_method"),
            payment_status=payment_status,
            payment_details=PaymentDetails(**payment_details) if payment_details else None,
            status=status,
            fulfillment_status=FulfillmentStatus.UNFULFILLED.value,
            shipping_method="Standard",
            customer_note=customer_note,
            created_at=order_date,
            updated_at=order_date,
        )

        for line_number, item in enumerate(items_data, start=1):
            item = dict(item)
            item["variant_options"] = json.dumps(dict(item.get("variant_options") or {}))
            order.add_items(OrderItem(line_number=line_number, **item))

        for discount in discounts_data or []:
            order.add_applied_discounts(AppliedDiscount(**discount))

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id) if customer_id else None,
                status=status,
                payment_status=payment_status,
                item_count=len(items_data),
                total=order.pricing.total,
                placed_at=order_date,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Ownership
    # -------------------------------------------------------------------
    def is_owned_by(self, user_id):
        return bool(user_id) and self.customer_id is not None and str(self.customer_id) == str(user_id)

    def assert_visible_to(self, requester_id, is_admin=False):
        if not is_admin and not self.is_owned_by(requester_id):
            raise Forbidden({"order": ["You do not have access to this order"]})

    # -------------------------------------------------------------------
    # Status tracks
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(
                {"status": [f"Cannot transition from {current.value} to {target_status.value}"]}
            )

    def _change_status(self, target, now):
        previous = self.status
        self._assert_can_transition(target)
        self.status = target.value

        if target == OrderStatus.SHIPPED and self.shipped_at is None:
            self.shipped_at = now
            self.raise_(
                OrderShipped(
                    order_id=str(self.id),
                    order_number=self.order_number,
                    shipping_carrier=self.shipping_carrier,
                    tracking_number=self.tracking_number,
                    shipped_at=now,
                )
            )
        if target == OrderStatus.DELIVERED and self.delivered_at is None:
            self.delivered_at = now
            self.raise_(OrderDelivered(order_id=str(self.id), order_number=self.order_number, delivered_at=now))

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=target.value,
                changed_at=now,
            )
        )

    def update_status(
        self,
        status=None,
        payment_status=None,
        fulfillment_status=None,
        tracking_number=None,
        tracking_url=None,
        shipping_carrier=None,
        internal_note=None,
    ):
        """Move any of the status tracks and record tracking details.

        Repeating the current order status is a no-op for the status track;
        shipped_at and delivered_at are stamped the first time only.
        """
        target = OrderStatus(_enum_value(OrderStatus, status, "status")) if status else None
        if target == OrderStatus.CANCELLED and self.status != OrderStatus.CANCELLED.value:
            raise InvalidInput({"status": ["Use the cancel operation to cancel an order"]})
        if target is not None and target.value != self.status:
            self._assert_can_transition(target)

        now = datetime.now(UTC)
        with atomic_change(self):
            if tracking_number is not None:
                self.tracking_number = tracking_number
            if tracking_url is not None:
                self.tracking_url = tracking_url
            if shipping_carrier is not None:
                self.shipping_carrier = shipping_carrier
            if internal_note is not None:
                self.internal_note = internal_note

            if payment_status:
                new_payment_status = _enum_value(PaymentStatus, payment_status, "payment_status")
                if new_payment_status != self.payment_status:
                    previous = self.payment_status
                    self.payment_status = new_payment_status
                    self.raise_(
                        OrderPaymentStatusChanged(
                            order_id=str(self.id), previous_status=previous, new_status=new_payment_status
                        )
                    )

            if fulfillment_status:
                new_fulfillment_status = _enum_value(FulfillmentStatus, fulfillment_status, "fulfillment_status")
                if new_fulfillment_status != self.fulfillment_status:
                    previous = self.fulfillment_status
                    self.fulfillment_status = new_fulfillment_status
                    self.raise_(
                        OrderFulfillmentStatusChanged(
                            order_id=str(self.id), previous_status=previous, new_status=new_fulfillment_status
                        )
                    )

            if target is not None and target.value != self.status:
                self._change_status(target, now)

            self.updated_at = now

    def cancel(self, requester_id=None, is_admin=False, reason=None):
        """Cancel the order; returning its stock is the caller's job."""
        if not is_admin and not self.is_owned_by(requester_id):
            raise Forbidden({"order": ["You can only cancel your own orders"]})

        current = OrderStatus(self.status)
        if current in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            raise InvalidTransition({"status": ["Cannot cancel order that has been shipped or delivered"]})
        if current not in _CANCELLABLE_STATES:
            raise InvalidTransition({"status": [f"Cannot cancel an order that is {current.value}"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.status = OrderStatus.CANCELLED.value
            self.cancelled_at = now
            self.cancellation_reason = reason
            self.updated_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                reason=reason,
                cancelled_by=str(requester_id) if requester_id else None,
                cancelled_at=now,
            )
        )


@commerce.repository(part_of=Order)
class OrderRepository:
    def find_by_number(self, order_number) -> Order | None:
        return self._dao.query.filter(order_number=order_number).all().first

    def count_for_date(self, date_key) -> int:
        return self._dao.query.filter(order_date_key=date_key).all().total

    def list_for_customer(self, customer_id) -> list[Order]:
        orders = self._dao.query.filter(customer_id=customer_id).limit(None).all().items
        return sorted(orders, key=lambda o: o.order_date, reverse=True)

    def list_all(self) -> list[Order]:
        orders = self._dao.query.limit(None).all().items
        return sorted(orders, key=lambda o: o.order_date, reverse=True)
