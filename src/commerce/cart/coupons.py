"""Cart coupon management: commands and handler."""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.cart.cart import ShoppingCart
from commerce.catalogue.lookup import category_ids_for
from commerce.discount.validation import CouponContext, validate_coupon
from commerce.domain import commerce
from commerce.errors import InvalidCoupon
from commerce.pricing.engine import coupon_discount


@commerce.command(part_of="ShoppingCart")
class ApplyCouponToCart:
    cart_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


@commerce.command(part_of="ShoppingCart")
class RemoveCouponFromCart:
    cart_id = Identifier(required=True)
    coupon_code = String(required=True, max_length=50)


def coupon_context_for(cart: ShoppingCart) -> CouponContext:
    product_ids = cart.product_ids
    return CouponContext(
        cart_total=cart.subtotal or 0.0,
        user_id=str(cart.customer_id) if cart.customer_id else None,
        product_ids=tuple(product_ids),
        category_ids=tuple(category_ids_for(product_ids)),
    )


@commerce.command_handler(part_of=ShoppingCart)
class CartCouponsHandler:
    @handle(ApplyCouponToCart)
    def apply_coupon(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)

        result = validate_coupon(command.coupon_code, coupon_context_for(cart))
        if not result.valid:
            raise InvalidCoupon({"coupon_code": [result.message]})

        discount = result.discount
        amount = coupon_discount(discount.discount_type, discount.value, cart.subtotal)
        cart.apply_coupon(
            discount_id=discount.id,
            code=discount.code,
            discount_type=discount.discount_type,
            discount_amount=amount,
        )
        repo.add(cart)
        return amount

    @handle(RemoveCouponFromCart)
    def remove_coupon(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.remove_coupon(command.coupon_code)
        repo.add(cart)
