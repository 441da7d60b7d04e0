"""Sellable units: Product and ProductVariant aggregates.

The transaction core only needs a narrow slice of the catalogue: prices,
names, images, category membership and the inventory policy of each unit.
Stock quantities are deliberately absent; the Inventory Guard owns them.
"""

import json
from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Float, Identifier, String, Text

from commerce.catalogue.events import ProductRegistered, VariantAdded
from commerce.domain import commerce


@commerce.aggregate
class Product:
    name = String(required=True, max_length=255)
    slug = String(required=True, max_length=255)
    description = Text()
    base_price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    images = Text()  # JSON array of image URLs
    category_ids = Text()  # JSON array of category identifiers
    track_inventory = Boolean(default=True)
    allow_backorder = Boolean(default=False)
    has_variants = Boolean(default=False)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @classmethod
    def register(
        cls,
        name,
        slug,
        base_price,
        compare_at_price=None,
        images=None,
        category_ids=None,
        track_inventory=True,
        allow_backorder=False,
        description=None,
    ):
        product = cls(
            name=name,
            slug=slug,
            description=description,
            base_price=base_price,
            compare_at_price=compare_at_price,
            images=json.dumps(list(images or [])),
            category_ids=json.dumps([str(c) for c in category_ids or []]),
            track_inventory=track_inventory,
            allow_backorder=allow_backorder,
            created_at=datetime.now(UTC),
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                name=name,
                base_price=base_price,
                track_inventory=track_inventory,
            )
        )
        return product

    @property
    def image_list(self):
        return json.loads(self.images) if self.images else []

    @property
    def primary_image(self):
        images = self.image_list
        return images[0] if images else None

    @property
    def category_list(self):
        return json.loads(self.category_ids) if self.category_ids else []

    def enable_variants(self):
        self.has_variants = True


@commerce.aggregate
class ProductVariant:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=100)
    price = Float(required=True, min_value=0.0)
    compare_at_price = Float(min_value=0.0)
    options = Text()  # JSON object, e.g. {"size": "M", "color": "Black"}
    track_inventory = Boolean(default=True)
    is_active = Boolean(default=True)
    created_at = DateTime()

    @invariant.post
    def options_must_be_a_json_object(self):
        if not self.options:
            return
        try:
            parsed = json.loads(self.options)
        except (json.JSONDecodeError, TypeError):
            raise ValidationError({"options": ["Variant options must be valid JSON"]}) from None
        if not isinstance(parsed, dict):
            raise ValidationError({"options": ["Variant options must be a JSON object"]})

    @classmethod
    def create(cls, product_id, sku, price, options=None, compare_at_price=None, track_inventory=True):
        variant = cls(
            product_id=product_id,
            sku=sku,
            price=price,
            compare_at_price=compare_at_price,
            options=json.dumps(dict(options or {})),
            track_inventory=track_inventory,
            created_at=datetime.now(UTC),
        )
        variant.raise_(
            VariantAdded(
                product_id=str(product_id),
                variant_id=str(variant.id),
                sku=sku,
                price=price,
            )
        )
        return variant

    @property
    def option_map(self):
        return json.loads(self.options) if self.options else {}
