"""Shopping Cart aggregate (CQRS): mutable cart that converts to an Order at checkout.

A cart belongs to a registered customer or to an anonymous session. Each
line keeps a price snapshot taken when the product was added, and every
mutation re-runs the Pricing Engine over the lines and applied coupons so
the stored totals are never edited by hand.
"""

import json
import os
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from commerce.cart.events import (
    CartCleared,
    CartConverted,
    CartCouponApplied,
    CartCouponRemoved,
    CartItemAdded,
    CartItemRemoved,
    CartQuantityUpdated,
)
from commerce.discount.discount import normalize_code
from commerce.domain import commerce
from commerce.errors import DuplicateCoupon, InvalidInput
from commerce.pricing.engine import compute_totals

CART_TTL_DAYS = int(os.getenv("COMMERCE_CART_TTL_DAYS", "30"))


class CartStatus(Enum):
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CONVERTED = "converted"
    MERGED = "merged"


@commerce.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    product_name = String(required=True, max_length=255)
    product_slug = String(max_length=255)
    product_image = String(max_length=1000)
    price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    variant_options = Text()  # JSON object of option labels
    added_at = DateTime()

    @property
    def option_map(self):
        return json.loads(self.variant_options) if self.variant_options else {}

    def matches(self, product_id, variant_id):
        return str(self.product_id) == str(product_id) and (
            str(self.variant_id) if self.variant_id else None
        ) == (str(variant_id) if variant_id else None)


@commerce.entity(part_of="ShoppingCart")
class AppliedCoupon:
    discount_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    discount_type = String(required=True, max_length=50)
    discount_amount = Float(default=0.0, min_value=0.0)
    applied_at = DateTime()


@commerce.aggregate
class ShoppingCart:
    customer_id = Identifier()
    session_id = String(max_length=255)
    items = HasMany(CartItem)
    applied_coupons = HasMany(AppliedCoupon)
    subtotal = Float(default=0.0)
    discount_total = Float(default=0.0)
    tax_total = Float(default=0.0)
    shipping_total = Float(default=0.0)
    total = Float(default=0.0)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    last_activity_at = DateTime()
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_have_an_owner(self):
        if not self.customer_id and not self.session_id:
            raise ValidationError({"cart": ["A cart needs a customer or a session"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, customer_id=None, session_id=None):
        """Create an empty cart; a customer id wins over a session id."""
        now = datetime.now(UTC)
        return cls(
            customer_id=customer_id or None,
            session_id=None if customer_id else session_id,
            status=CartStatus.ACTIVE.value,
            last_activity_at=now,
            expires_at=now + timedelta(days=CART_TTL_DAYS),
            created_at=now,
            updated_at=now,
            **compute_totals((), ()).as_dict(),
        )

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _assert_active(self, action):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise InvalidInput({"status": [f"Cannot {action} a cart that is {self.status}"]})

    def _touch(self):
        now = datetime.now(UTC)
        self.last_activity_at = now
        self.updated_at = now

    def _reprice(self):
        totals = compute_totals(self.items, self.applied_coupons)
        with atomic_change(self):
            self.subtotal = totals.subtotal
            self.discount_total = totals.discount_total
            self.tax_total = totals.tax_total
            self.shipping_total = totals.shipping_total
            self.total = totals.total

    def find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ObjectNotFoundError({"item_id": [f"Item `{item_id}` not found in cart"]})
        return item

    def find_line(self, product_id, variant_id=None):
        return next((i for i in self.items if i.matches(product_id, variant_id)), None)

    def has_coupon(self, code):
        code = normalize_code(code)
        return any(c.code == code for c in self.applied_coupons)

    @property
    def product_ids(self):
        return list(dict.fromkeys(str(i.product_id) for i in self.items))

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(
        self,
        product_id,
        product_name,
        price,
        quantity,
        variant_id=None,
        product_slug=None,
        product_image=None,
        compare_at_price=None,
        variant_options=None,
    ):
        """Add a line, or grow the matching (product, variant) line."""
        self._assert_active("add items to")

        existing = self.find_line(product_id, variant_id)
        now = datetime.now(UTC)

        if existing:
            existing.quantity += quantity
            item = existing
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                product_name=product_name,
                product_slug=product_slug,
                product_image=product_image,
                price=price,
                compare_at_price=compare_at_price,
                quantity=quantity,
                variant_options=json.dumps(dict(variant_options or {})),
                added_at=now,
            )
            self.add_items(item)

        self._touch()
        self._reprice()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                line_quantity=item.quantity,
            )
        )
        return item

    def update_item_quantity(self, item_id, new_quantity):
        self._assert_active("update items in")
        if new_quantity is None or new_quantity < 1:
            raise InvalidInput({"quantity": ["Quantity must be at least 1"]})

        item = self.find_item(item_id)
        previous_quantity = item.quantity
        item.quantity = new_quantity

        self._touch()
        self._reprice()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                item_id=str(item_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, item_id):
        self._assert_active("remove items from")

        item = self.find_item(item_id)
        self.remove_items(item)

        self._touch()
        self._reprice()

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def _drop_contents(self):
        removed = len(self.items)
        for item in list(self.items):
            self.remove_items(item)
        for coupon in list(self.applied_coupons):
            self.remove_applied_coupons(coupon)
        return removed

    def clear(self):
        """Remove every line and every applied coupon."""
        self._assert_active("clear")

        removed = self._drop_contents()
        self._touch()
        self._reprice()

        self.raise_(CartCleared(cart_id=str(self.id), items_removed=removed))

    # -------------------------------------------------------------------
    # Coupon management
    # -------------------------------------------------------------------
    def apply_coupon(self, discount_id, code, discount_type, discount_amount):
        """Record a validated coupon; its amount stays fixed from here on."""
        self._assert_active("apply coupons to")

        code = normalize_code(code)
        if self.has_coupon(code):
            raise DuplicateCoupon({"coupon_code": ["Coupon already applied"]})

        self.add_applied_coupons(
            AppliedCoupon(
                discount_id=discount_id,
                code=code,
                discount_type=discount_type,
                discount_amount=discount_amount,
                applied_at=datetime.now(UTC),
            )
        )

        self._touch()
        self._reprice()

        self.raise_(CartCouponApplied(cart_id=str(self.id), coupon_code=code, discount_amount=discount_amount))

    def remove_coupon(self, code):
        self._assert_active("remove coupons from")

        code = normalize_code(code)
        coupon = next((c for c in self.applied_coupons if c.code == code), None)
        if coupon is None:
            raise ObjectNotFoundError({"coupon_code": [f"Coupon `{code}` is not applied to this cart"]})

        self.remove_applied_coupons(coupon)

        self._touch()
        self._reprice()

        self.raise_(CartCouponRemoved(cart_id=str(self.id), coupon_code=code))

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def convert_to_order(self, order_number):
        """Close the cart after a successful checkout.

        The checked-out lines travel with the CartConverted event; the cart
        itself is emptied and can never be reused.
        """
        self._assert_active("convert")
        if not self.items:
            raise InvalidInput({"cart": ["Cannot convert an empty cart"]})

        items_snapshot = [
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "quantity": item.quantity,
                "price": item.price,
            }
            for item in self.items
        ]

        self._drop_contents()
        self._reprice()
        self.status = CartStatus.CONVERTED.value
        self._touch()

        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                customer_id=str(self.customer_id) if self.customer_id else None,
                order_number=order_number,
                items=json.dumps(items_snapshot),
            )
        )


@commerce.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def find_active_for(self, customer_id=None, session_id=None) -> ShoppingCart | None:
        """Return the owner's active cart; a customer id takes precedence."""
        if customer_id:
            return self._dao.query.filter(customer_id=customer_id, status=CartStatus.ACTIVE.value).all().first
        if session_id:
            return self._dao.query.filter(session_id=session_id, status=CartStatus.ACTIVE.value).all().first
        return None
