"""Cart item management: commands and handler.

Prices are snapshotted from the catalogue when a line is added: the
variant's price and option labels when a variant is given, the product's
base price otherwise. Quantities are checked against the Inventory Guard
for the whole resulting line.
"""

from protean import handle
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.catalogue.lookup import find_product, find_variant
from commerce.domain import commerce
from commerce.errors import InvalidReference, OutOfStock
from commerce.inventory import guard


@commerce.command(part_of="ShoppingCart")
class AddToCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)


@commerce.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1)


@commerce.command(part_of="ShoppingCart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


def _ensure_in_stock(unit, quantity):
    if not guard.check_stock(unit, quantity):
        raise OutOfStock({"quantity": [f"Insufficient stock for {unit.label}"]})


@commerce.command_handler(part_of=ShoppingCart)
class ManageCartItemsHandler:
    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)

        product = find_product(command.product_id)
        variant = None
        if command.variant_id:
            variant = find_variant(command.variant_id)
            if str(variant.product_id) != str(product.id):
                raise InvalidReference({"variant_id": ["Variant does not belong to this product"]})

        existing = cart.find_line(product.id, command.variant_id)
        line_quantity = command.quantity + (existing.quantity if existing else 0)
        _ensure_in_stock(guard.unit_for(product, variant), line_quantity)

        item = cart.add_item(
            product_id=product.id,
            variant_id=variant.id if variant else None,
            product_name=product.name,
            product_slug=product.slug,
            product_image=product.primary_image,
            price=variant.price if variant else product.base_price,
            compare_at_price=variant.compare_at_price if variant else product.compare_at_price,
            variant_options=variant.option_map if variant else None,
            quantity=command.quantity,
        )
        repo.add(cart)
        return str(item.id)

    @handle(UpdateCartQuantity)
    def update_cart_quantity(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)

        item = cart.find_item(command.item_id)
        if command.new_quantity > item.quantity:
            _ensure_in_stock(guard.resolve(item.product_id, item.variant_id), command.new_quantity)

        cart.update_item_quantity(
            item_id=command.item_id,
            new_quantity=command.new_quantity,
        )
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.remove_item(item_id=command.item_id)
        repo.add(cart)
