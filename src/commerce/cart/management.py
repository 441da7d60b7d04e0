"""Cart management: creation, lookup and clearing."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.domain import commerce
from commerce.errors import InvalidInput


@commerce.command(part_of="ShoppingCart")
class CreateCart:
    """Create a new shopping cart for a registered customer or guest session."""

    customer_id = Identifier()
    session_id = String(max_length=255)


@commerce.command(part_of="ShoppingCart")
class ClearCart:
    cart_id = Identifier(required=True)


@commerce.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        if not command.customer_id and not command.session_id:
            raise InvalidInput({"cart": ["A customer id or a session id is required"]})

        cart = ShoppingCart.create(
            customer_id=command.customer_id,
            session_id=command.session_id,
        )
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.clear()
        repo.add(cart)


def get_or_create_cart(customer_id=None, session_id=None) -> ShoppingCart:
    """Return the owner's active cart, creating it lazily on first interaction."""
    if not customer_id and not session_id:
        raise InvalidInput({"cart": ["A customer id or a session id is required"]})

    repo = current_domain.repository_for(ShoppingCart)
    cart = repo.find_active_for(customer_id=customer_id, session_id=session_id)
    if cart is not None:
        return cart

    cart_id = current_domain.process(
        CreateCart(customer_id=customer_id, session_id=session_id),
        asynchronous=False,
    )
    return repo.get(cart_id)
