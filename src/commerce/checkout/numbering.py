"""Human-readable order numbers: ``ORD-YYYYMMDD-NNNN``.

The daily sequence comes from an atomic counter, floored at the number of
orders already stored for that day so a flushed counter never reissues a
number.
"""

from datetime import UTC, datetime

from protean.utils.globals import current_domain

from commerce.inventory.counters import get_counter_store
from commerce.order.order import Order


def date_key(moment: datetime) -> str:
    return moment.strftime("%Y%m%d")


def next_order_number(now: datetime | None = None) -> str:
    now = now or datetime.now(UTC)
    key = date_key(now)

    existing = current_domain.repository_for(Order).count_for_date(key)
    sequence = get_counter_store().next_in_sequence(f"order:sequence:{key}", floor=existing)
    return f"ORD-{key}-{sequence:04d}"
