"""Discount aggregate: coupon codes and promotions.

Codes are case-insensitive and stored upper case. A discount without a code
is an automatic promotion and can never be applied by a shopper.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from commerce.discount.events import (
    DiscountActivated,
    DiscountCreated,
    DiscountDeactivated,
    DiscountUpdated,
    DiscountUsageRecorded,
)
from commerce.domain import commerce


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    FREE_SHIPPING = "free_shipping"


class ApplicationType(Enum):
    ENTIRE_ORDER = "entire_order"
    SPECIFIC_PRODUCTS = "specific_products"
    SPECIFIC_CATEGORIES = "specific_categories"
    MINIMUM_PURCHASE = "minimum_purchase"


_LIST_FIELDS = ("applicable_products", "applicable_categories", "targeted_user_ids", "targeted_user_emails")

_UPDATABLE_FIELDS = (
    "name",
    "description",
    "value",
    "application_type",
    "minimum_purchase_amount",
    "minimum_quantity",
    "usage_limit",
    "usage_limit_per_customer",
    "start_date",
    "end_date",
    "is_public",
    "exclude_sale_items",
    "first_order_only",
    *_LIST_FIELDS,
)


def normalize_code(code):
    code = (code or "").strip().upper()
    return code or None


def as_utc(value):
    """Treat naive datetimes as UTC so window comparisons never mix the two."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


@commerce.aggregate
class Discount:
    name = String(required=True, max_length=255)
    description = Text()
    code = String(max_length=50)
    discount_type = String(required=True, choices=DiscountType)
    value = Float(required=True, min_value=0.0)
    application_type = String(choices=ApplicationType, default=ApplicationType.ENTIRE_ORDER.value)
    applicable_products = Text()  # JSON array of product ids
    applicable_categories = Text()  # JSON array of category ids
    minimum_purchase_amount = Float(min_value=0.0)
    minimum_quantity = Integer(min_value=0)
    usage_limit = Integer(min_value=0)
    usage_count = Integer(default=0, min_value=0)
    usage_limit_per_customer = Integer(default=1, min_value=0)
    start_date = DateTime()
    end_date = DateTime()
    is_active = Boolean(default=True)
    is_public = Boolean(default=True)
    targeted_user_ids = Text()  # JSON array
    targeted_user_emails = Text()  # JSON array
    exclude_sale_items = Boolean(default=False)
    first_order_only = Boolean(default=False)
    created_by = Identifier()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def percentage_cannot_exceed_100(self):
        if self.discount_type == DiscountType.PERCENTAGE.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100"]})

    @invariant.post
    def usage_count_within_limit(self):
        if self.usage_limit is not None and (self.usage_count or 0) > self.usage_limit:
            raise ValidationError({"usage_count": ["Usage count cannot exceed the usage limit"]})

    @invariant.post
    def end_date_after_start_date(self):
        if self.start_date and self.end_date and as_utc(self.end_date) <= as_utc(self.start_date):
            raise ValidationError({"end_date": ["End date must be after start date"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, name, discount_type, value, code=None, created_by=None, **attributes):
        now = datetime.now(UTC)
        for field_name in _LIST_FIELDS:
            attributes[field_name] = json.dumps(list(attributes.get(field_name) or []))

        discount = cls(
            name=name,
            code=normalize_code(code),
            discount_type=discount_type,
            value=value,
            usage_count=0,
            created_by=created_by,
            created_at=now,
            updated_at=now,
            **attributes,
        )
        discount.raise_(
            DiscountCreated(
                discount_id=str(discount.id),
                code=discount.code,
                discount_type=discount.discount_type,
                value=discount.value,
            )
        )
        return discount

    # -------------------------------------------------------------------
    # List accessors
    # -------------------------------------------------------------------
    def _list(self, field_name):
        raw = getattr(self, field_name)
        return json.loads(raw) if raw else []

    @property
    def product_list(self):
        return self._list("applicable_products")

    @property
    def category_list(self):
        return self._list("applicable_categories")

    @property
    def targeted_user_id_list(self):
        return self._list("targeted_user_ids")

    @property
    def targeted_user_email_list(self):
        return self._list("targeted_user_emails")

    # -------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------
    def update(self, **changes):
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError({field: ["Field cannot be updated"] for field in sorted(unknown)})

        with atomic_change(self):
            for field_name, value in changes.items():
                if field_name in _LIST_FIELDS:
                    value = json.dumps(list(value or []))
                setattr(self, field_name, value)
            self.updated_at = datetime.now(UTC)

        self.raise_(DiscountUpdated(discount_id=str(self.id), changed_fields=",".join(sorted(changes))))

    def activate(self):
        if self.is_active:
            return
        self.is_active = True
        self.updated_at = datetime.now(UTC)
        self.raise_(DiscountActivated(discount_id=str(self.id)))

    def deactivate(self):
        if not self.is_active:
            return
        self.is_active = False
        self.updated_at = datetime.now(UTC)
        self.raise_(DiscountDeactivated(discount_id=str(self.id)))

    def record_usage(self, usage_count, order_number=None, customer_id=None):
        """Sync the usage count with the atomic usage counter.

        The counter is authoritative; the stored count only ever moves up.
        """
        self.usage_count = max(self.usage_count or 0, usage_count)
        self.updated_at = datetime.now(UTC)
        self.raise_(
            DiscountUsageRecorded(
                discount_id=str(self.id),
                order_number=order_number,
                customer_id=customer_id,
                usage_count=self.usage_count,
            )
        )


@commerce.repository(part_of=Discount)
class DiscountRepository:
    def find_by_code(self, code) -> Discount | None:
        code = normalize_code(code)
        if not code:
            return None
        return self._dao.query.filter(code=code).all().first

    def list_all(self, active_only=False) -> list[Discount]:
        query = self._dao.query
        if active_only:
            query = query.filter(is_active=True)
        discounts = query.limit(None).all().items
        return sorted(discounts, key=lambda d: d.created_at or datetime.min.replace(tzinfo=UTC), reverse=True)
