"""Inventory Guard: the only writer of stock quantities.

A sellable unit is a variant when one is given, otherwise the product
itself. ``resolve`` reads the unit's inventory policy from the catalogue
once; every counter operation afterwards works on the returned
``StockUnit`` and touches nothing but the counter store.

Decrements are single conditional operations in the store (refused when
the result would drop below zero), never a read followed by a write, so two
concurrent checkouts for the last unit cannot both succeed.
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from commerce.catalogue.lookup import find_product, find_variant
from commerce.errors import InvalidReference, OutOfStock
from commerce.inventory.counters import get_counter_store

logger = structlog.get_logger(__name__)


class UnitKind(Enum):
    PRODUCT = "product"
    VARIANT = "variant"


@dataclass(frozen=True)
class StockUnit:
    """Inventory policy of one sellable unit, captured at resolve time."""

    kind: str
    id: str
    label: str
    tracked: bool = True
    backorder: bool = False

    @property
    def key(self) -> str:
        return f"stock:{self.kind}:{self.id}"


def unit_for(product, variant=None) -> StockUnit:
    """Build the stock unit for already-loaded catalogue records."""
    if variant is not None:
        return StockUnit(
            kind=UnitKind.VARIANT.value,
            id=str(variant.id),
            label=product.name,
            tracked=bool(variant.track_inventory),
        )

    return StockUnit(
        kind=UnitKind.PRODUCT.value,
        id=str(product.id),
        label=product.name,
        tracked=bool(product.track_inventory),
        backorder=bool(product.allow_backorder),
    )


def resolve(product_id, variant_id=None, active_only=True) -> StockUnit:
    """Resolve the stock unit for a product/variant pair.

    Raises ObjectNotFoundError for unknown ids and InvalidReference when the
    variant belongs to another product. Pass ``active_only=False`` to reach
    units that are no longer on sale (restocking cancelled orders).
    """
    product = find_product(product_id, active_only=active_only)
    if not variant_id:
        return unit_for(product)

    variant = find_variant(variant_id, active_only=active_only)
    if str(variant.product_id) != str(product.id):
        raise InvalidReference({"variant_id": ["Variant does not belong to this product"]})
    return unit_for(product, variant)


def available(unit: StockUnit) -> int:
    return get_counter_store().get(unit.key) or 0


def check_stock(unit: StockUnit, quantity: int) -> bool:
    if not unit.tracked or unit.backorder:
        return True
    return available(unit) >= quantity


def decrement_stock(unit: StockUnit, quantity: int) -> int | None:
    """Take ``quantity`` out of stock, raising OutOfStock when it is not there.

    Returns the remaining stock, or None for non-tracked units (never touched).
    """
    if not unit.tracked:
        return None

    floor = None if unit.backorder else 0
    remaining = get_counter_store().decrement(unit.key, quantity, floor=floor)
    if remaining is None:
        logger.info("stock_decrement_refused", unit=unit.key, quantity=quantity)
        raise OutOfStock({"quantity": [f"Insufficient stock for {unit.label}"]})

    logger.debug("stock_decremented", unit=unit.key, quantity=quantity, remaining=remaining)
    return remaining


def increment_stock(unit: StockUnit, quantity: int) -> int | None:
    if not unit.tracked:
        return None

    remaining = get_counter_store().increment(unit.key, quantity)
    logger.debug("stock_incremented", unit=unit.key, quantity=quantity, remaining=remaining)
    return remaining


def set_stock(unit: StockUnit, quantity: int) -> None:
    get_counter_store().set(unit.key, quantity)
    logger.info("stock_set", unit=unit.key, quantity=quantity)
