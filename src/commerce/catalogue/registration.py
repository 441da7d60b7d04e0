"""Catalogue registration and stock administration: commands and handlers."""

import json

from protean import handle
from protean.fields import Boolean, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from commerce.catalogue.product import Product, ProductVariant
from commerce.domain import commerce
from commerce.errors import InvalidInput
from commerce.inventory import guard


@commerce.command(part_of="Product")
class RegisterProduct:
    name = String(required=True, max_length=255)
    slug = String(required=True, max_length=255)
    description = Text()
    base_price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    images = Text()  # JSON array
    category_ids = Text()  # JSON array
    track_inventory = Boolean(default=True)
    allow_backorder = Boolean(default=False)
    initial_stock = Integer(default=0, min_value=0)


@commerce.command(part_of="Product")
class SetStockLevel:
    """Overwrite the stock counter of a unit (stock take)."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=0)


@commerce.command(part_of="Product")
class ReceiveStock:
    """Add received goods to a unit's stock counter."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)


@commerce.command(part_of="ProductVariant")
class AddProductVariant:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=100)
    price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    options = Text()  # JSON object
    track_inventory = Boolean(default=True)
    initial_stock = Integer(default=0, min_value=0)


def _load_json(value, default):
    if not value:
        return default
    return json.loads(value) if isinstance(value, str) else value


@commerce.command_handler(part_of=Product)
class ProductRegistrationHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            name=command.name,
            slug=command.slug,
            description=command.description,
            base_price=command.base_price,
            compare_at_price=command.compare_at_price,
            images=_load_json(command.images, []),
            category_ids=_load_json(command.category_ids, []),
            track_inventory=command.track_inventory,
            allow_backorder=command.allow_backorder,
        )
        current_domain.repository_for(Product).add(product)

        if product.track_inventory:
            guard.set_stock(guard.unit_for(product), command.initial_stock or 0)

        return str(product.id)

    @handle(SetStockLevel)
    def set_stock_level(self, command):
        unit = guard.resolve(command.product_id, command.variant_id)
        if not unit.tracked:
            raise InvalidInput({"product_id": [f"Inventory is not tracked for {unit.label}"]})
        guard.set_stock(unit, command.quantity)
        return guard.available(unit)

    @handle(ReceiveStock)
    def receive_stock(self, command):
        unit = guard.resolve(command.product_id, command.variant_id)
        if not unit.tracked:
            raise InvalidInput({"product_id": [f"Inventory is not tracked for {unit.label}"]})
        return guard.increment_stock(unit, command.quantity)


@commerce.command_handler(part_of=ProductVariant)
class VariantRegistrationHandler:
    @handle(AddProductVariant)
    def add_variant(self, command):
        product_repo = current_domain.repository_for(Product)
        product = product_repo.get(command.product_id)

        variant = ProductVariant.create(
            product_id=product.id,
            sku=command.sku,
            price=command.price,
            compare_at_price=command.compare_at_price,
            options=_load_json(command.options, {}),
            track_inventory=command.track_inventory,
        )
        current_domain.repository_for(ProductVariant).add(variant)

        if not product.has_variants:
            product.enable_variants()
            product_repo.add(product)

        if variant.track_inventory:
            guard.set_stock(guard.unit_for(product, variant), command.initial_stock or 0)

        return str(variant.id)
