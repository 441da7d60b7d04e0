"""Discount Validator: is a coupon code usable against a cart right now?

Checks run in a fixed order and stop at the first failure, so the message a
shopper sees is always the most fundamental problem with the code:

1. the code exists
2. the discount is active
3. ``now`` falls inside the start/end window
4. global and per-customer usage caps
5. minimum purchase amount
6. account targeting (non-public discounts)
7. product / category applicability
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.utils.globals import current_domain

from commerce.discount.discount import ApplicationType, Discount, as_utc
from commerce.discount.usage import customer_usage, global_usage
from commerce.pricing.engine import to_decimal

logger = structlog.get_logger(__name__)

INVALID_CODE = "Invalid coupon code"
INACTIVE = "This coupon is inactive"
NOT_YET_ACTIVE = "This coupon is not yet active"
EXPIRED = "This coupon has expired"
USAGE_LIMIT_REACHED = "This coupon has reached its usage limit"
CUSTOMER_LIMIT_REACHED = "You have already used this coupon"
NOT_AVAILABLE_FOR_ACCOUNT = "This coupon is not available for your account"
NOT_APPLICABLE = "This coupon is not applicable to your cart items"


@dataclass(frozen=True)
class CouponContext:
    """What the validator knows about the cart a code is being applied to."""

    cart_total: float = 0.0
    user_id: str | None = None
    product_ids: tuple = field(default_factory=tuple)
    category_ids: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class DiscountProjection:
    id: str
    code: str
    name: str
    discount_type: str
    value: float
    application_type: str

    @classmethod
    def of(cls, discount: Discount) -> "DiscountProjection":
        return cls(
            id=str(discount.id),
            code=discount.code,
            name=discount.name,
            discount_type=discount.discount_type,
            value=discount.value,
            application_type=discount.application_type,
        )


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    message: str | None = None
    discount: DiscountProjection | None = None


def _format_amount(amount) -> str:
    return f"{to_decimal(amount):.2f}"


def _rejection(discount: Discount, context: CouponContext, now: datetime) -> str | None:
    if not discount.is_active:
        return INACTIVE

    if discount.start_date and now < as_utc(discount.start_date):
        return NOT_YET_ACTIVE
    if discount.end_date and now > as_utc(discount.end_date):
        return EXPIRED

    if discount.usage_limit is not None and global_usage(discount) >= discount.usage_limit:
        return USAGE_LIMIT_REACHED
    if (
        context.user_id
        and discount.usage_limit_per_customer
        and customer_usage(discount, context.user_id) >= discount.usage_limit_per_customer
    ):
        return CUSTOMER_LIMIT_REACHED

    if discount.minimum_purchase_amount and to_decimal(context.cart_total) < to_decimal(
        discount.minimum_purchase_amount
    ):
        return f"Minimum purchase of {_format_amount(discount.minimum_purchase_amount)} required"

    if not discount.is_public:
        targeted_ids = [str(user_id) for user_id in discount.targeted_user_id_list]
        targeted_emails = discount.targeted_user_email_list
        # Untargeted private coupons stay open to everyone
        if targeted_ids or targeted_emails:
            if not context.user_id or str(context.user_id) not in targeted_ids:
                return NOT_AVAILABLE_FOR_ACCOUNT

    if discount.application_type == ApplicationType.SPECIFIC_PRODUCTS.value:
        applicable = {str(product_id) for product_id in discount.product_list}
        if not applicable.intersection(str(product_id) for product_id in context.product_ids):
            return NOT_APPLICABLE

    if discount.application_type == ApplicationType.SPECIFIC_CATEGORIES.value:
        applicable = {str(category_id) for category_id in discount.category_list}
        if not applicable.intersection(str(category_id) for category_id in context.category_ids):
            return NOT_APPLICABLE

    return None


def validate_coupon(code: str, context: CouponContext, now: datetime | None = None) -> ValidationResult:
    now = as_utc(now) if now else datetime.now(UTC)

    discount = current_domain.repository_for(Discount).find_by_code(code)
    if discount is None:
        return ValidationResult(valid=False, message=INVALID_CODE)

    message = _rejection(discount, context, now)
    if message:
        logger.debug("coupon_rejected", code=discount.code, reason=message)
        return ValidationResult(valid=False, message=message)

    return ValidationResult(valid=True, discount=DiscountProjection.of(discount))
