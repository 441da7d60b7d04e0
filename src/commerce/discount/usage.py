"""Atomic coupon usage counters.

Global and per-customer usage live in the counter store so that claiming a
use is one conditional increment bounded by the limit. The ``usage_count``
field on the Discount aggregate trails these counters.
"""

import structlog

from commerce.inventory.counters import get_counter_store

logger = structlog.get_logger(__name__)


def _usage_key(discount_id) -> str:
    return f"coupon:usage:{discount_id}"


def _customer_key(discount_id, customer_id) -> str:
    return f"coupon:usage:{discount_id}:customer:{customer_id}"


def global_usage(discount) -> int:
    counted = get_counter_store().get(_usage_key(discount.id))
    return max(counted or 0, discount.usage_count or 0)


def customer_usage(discount, customer_id) -> int:
    return get_counter_store().get(_customer_key(discount.id, customer_id)) or 0


def claim_usage(discount, customer_id=None) -> int | None:
    """Claim one use of the discount; return the new global count or None when exhausted."""
    store = get_counter_store()
    key = _usage_key(discount.id)

    used = store.increment(key, 1, ceiling=discount.usage_limit)
    if used is None:
        logger.info("coupon_usage_limit_reached", discount_id=str(discount.id))
        return None

    if customer_id and discount.usage_limit_per_customer:
        claimed = store.increment(
            _customer_key(discount.id, customer_id),
            1,
            ceiling=discount.usage_limit_per_customer,
        )
        if claimed is None:
            store.decrement(key, 1, floor=None)
            logger.info("coupon_customer_limit_reached", discount_id=str(discount.id), customer_id=customer_id)
            return None

    return used


def release_usage(discount, customer_id=None) -> None:
    """Give back a use claimed by ``claim_usage``."""
    store = get_counter_store()
    store.decrement(_usage_key(discount.id), 1, floor=0)
    if customer_id and discount.usage_limit_per_customer:
        store.decrement(_customer_key(discount.id, customer_id), 1, floor=0)
