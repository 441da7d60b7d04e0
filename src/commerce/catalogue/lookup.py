"""Read-only catalogue lookups used by the cart, inventory and checkout."""

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from commerce.catalogue.product import Product, ProductVariant


def find_product(product_id, active_only=True) -> Product:
    """Return the product, raising ObjectNotFoundError when absent or inactive."""
    product = current_domain.repository_for(Product).get(product_id)
    if active_only and not product.is_active:
        raise ObjectNotFoundError({"product_id": [f"Product `{product_id}` is not available"]})
    return product


def find_variant(variant_id, active_only=True) -> ProductVariant:
    variant = current_domain.repository_for(ProductVariant).get(variant_id)
    if active_only and not variant.is_active:
        raise ObjectNotFoundError({"variant_id": [f"Variant `{variant_id}` is not available"]})
    return variant


def category_ids_for(product_ids) -> list[str]:
    """Union of category identifiers of the given products, in first-seen order."""
    categories: list[str] = []
    for product_id in product_ids:
        try:
            product = find_product(product_id, active_only=False)
        except ObjectNotFoundError:
            continue
        for category_id in product.category_list:
            if category_id not in categories:
                categories.append(category_id)
    return categories
