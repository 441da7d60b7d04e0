"""Domain events for catalogue registration."""

from protean.fields import Boolean, Float, Identifier, String

from commerce.domain import commerce


@commerce.event(part_of="Product")
class ProductRegistered:
    """A sellable product was added to the catalogue."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    base_price = Float(required=True)
    track_inventory = Boolean()


@commerce.event(part_of="ProductVariant")
class VariantAdded:
    """A purchasable variant was attached to a product."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(required=True)
    price = Float(required=True)
