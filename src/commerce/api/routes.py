"""FastAPI endpoints for carts, orders, discounts and the catalogue."""

import json

from fastapi import APIRouter, Depends
from protean.utils.globals import current_domain

from commerce.api.identity import Requester, get_requester, require_admin
from commerce.api.schemas import (
    AddCartItemRequest,
    AddVariantRequest,
    AppliedCouponResponse,
    AppliedDiscountResponse,
    ApplyCouponRequest,
    CancelOrderRequest,
    CartItemResponse,
    CartResponse,
    CheckoutRequest,
    CreateDiscountRequest,
    DiscountResponse,
    IdResponse,
    OrderItemResponse,
    OrderResponse,
    PaymentDetailsResponse,
    PricingResponse,
    ReceiveStockRequest,
    RegisterProductRequest,
    SetStockRequest,
    StatusResponse,
    StockLevelResponse,
    UpdateCartItemRequest,
    UpdateDiscountRequest,
    UpdateOrderStatusRequest,
    ValidateCouponRequest,
    ValidateCouponResponse,
)
from commerce.cart.coupons import ApplyCouponToCart, RemoveCouponFromCart
from commerce.cart.items import AddToCart, RemoveFromCart, UpdateCartQuantity
from commerce.cart.management import ClearCart, get_or_create_cart
from commerce.catalogue.lookup import find_variant
from commerce.catalogue.registration import AddProductVariant, ReceiveStock, RegisterProduct, SetStockLevel
from commerce.checkout.orchestrator import OrderInput, checkout
from commerce.discount.discount import Discount
from commerce.discount.management import (
    ActivateDiscount,
    CreateDiscount,
    DeactivateDiscount,
    DeleteDiscount,
    UpdateDiscount,
)
from commerce.discount.validation import CouponContext, validate_coupon
from commerce.errors import InvalidInput
from commerce.inventory import guard
from commerce.order import status as order_status
from commerce.order.queries import find_order, list_orders


# ---------------------------------------------------------------------------
# Response builders
# ---------------------------------------------------------------------------
def _cart_response(cart) -> CartResponse:
    return CartResponse(
        id=str(cart.id),
        customer_id=str(cart.customer_id) if cart.customer_id else None,
        session_id=cart.session_id,
        status=cart.status,
        items=[
            CartItemResponse(
                id=str(item.id),
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                product_name=item.product_name,
                product_slug=item.product_slug,
                product_image=item.product_image,
                price=item.price,
                compare_at_price=item.compare_at_price,
                quantity=item.quantity,
                variant_options=item.option_map,
            )
            for item in cart.items
        ],
        applied_coupons=[
            AppliedCouponResponse(
                discount_id=str(coupon.discount_id),
                code=coupon.code,
                discount_type=coupon.discount_type,
                discount_amount=coupon.discount_amount,
            )
            for coupon in cart.applied_coupons
        ],
        subtotal=cart.subtotal,
        discount_total=cart.discount_total,
        tax_total=cart.tax_total,
        shipping_total=cart.shipping_total,
        total=cart.total,
        expires_at=cart.expires_at,
    )


def _order_response(order) -> OrderResponse:
    details = order.payment_details
    return OrderResponse(
        id=str(order.id),
        order_number=order.order_number,
        order_date=order.order_date,
        customer_id=str(order.customer_id) if order.customer_id else None,
        customer=order.customer.to_dict(),
        shipping_address=order.shipping_address.to_dict(),
        billing_address=order.billing_address.to_dict(),
        items=[
            OrderItemResponse(
                line_number=item.line_number,
                product_id=str(item.product_id),
                variant_id=str(item.variant_id) if item.variant_id else None,
                product_name=item.product_name,
                sku=item.sku,
                variant_options=json.loads(item.variant_options) if item.variant_options else {},
                quantity=item.quantity,
                price=item.price,
                discount_amount=item.discount_amount,
                tax_amount=item.tax_amount,
                total=item.total,
            )
            for item in sorted(order.items, key=lambda i: i.line_number)
        ],
        applied_discounts=[
            AppliedDiscountResponse(
                discount_id=str(discount.discount_id),
                code=discount.code,
                name=discount.name,
                kind=discount.kind,
                amount=discount.amount,
            )
            for discount in order.applied_discounts
        ],
        pricing=PricingResponse(**order.pricing.to_dict()),
        payment_method=order.payment_method,
        payment_status=order.payment_status,
        payment_details=PaymentDetailsResponse(**details.to_dict()) if details else None,
        status=order.status,
        fulfillment_status=order.fulfillment_status,
        shipping_method=order.shipping_method,
        shipping_carrier=order.shipping_carrier,
        tracking_number=order.tracking_number,
        tracking_url=order.tracking_url,
        shipped_at=order.shipped_at,
        delivered_at=order.delivered_at,
        cancelled_at=order.cancelled_at,
        customer_note=order.customer_note,
    )


def _discount_response(discount) -> DiscountResponse:
    return DiscountResponse(
        id=str(discount.id),
        name=discount.name,
        code=discount.code,
        discount_type=discount.discount_type,
        value=discount.value,
        application_type=discount.application_type,
        usage_limit=discount.usage_limit,
        usage_count=discount.usage_count or 0,
        usage_limit_per_customer=discount.usage_limit_per_customer,
        minimum_purchase_amount=discount.minimum_purchase_amount,
        start_date=discount.start_date,
        end_date=discount.end_date,
        is_active=discount.is_active,
        is_public=discount.is_public,
    )


def _stock_response(unit) -> StockLevelResponse:
    return StockLevelResponse(
        kind=unit.kind,
        unit_id=unit.id,
        tracked=unit.tracked,
        backorder=unit.backorder,
        available=guard.available(unit),
    )


def _requester_cart(requester: Requester):
    return get_or_create_cart(customer_id=requester.user_id, session_id=requester.session_id)


def _process(command):
    return current_domain.process(command, asynchronous=False)


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/cart", tags=["cart"])


@cart_router.get("", response_model=CartResponse)
async def get_cart(requester: Requester = Depends(get_requester)) -> CartResponse:
    return _cart_response(_requester_cart(requester))


@cart_router.post("/items", response_model=CartResponse)
async def add_cart_item(body: AddCartItemRequest, requester: Requester = Depends(get_requester)) -> CartResponse:
    cart = _requester_cart(requester)
    _process(
        AddToCart(
            cart_id=cart.id,
            product_id=body.product_id,
            variant_id=body.variant_id,
            quantity=body.quantity,
        )
    )
    return _cart_response(_requester_cart(requester))


@cart_router.put("/items/{item_id}", response_model=CartResponse)
async def update_cart_item(
    item_id: str, body: UpdateCartItemRequest, requester: Requester = Depends(get_requester)
) -> CartResponse:
    cart = _requester_cart(requester)
    _process(UpdateCartQuantity(cart_id=cart.id, item_id=item_id, new_quantity=body.quantity))
    return _cart_response(_requester_cart(requester))


@cart_router.delete("/items/{item_id}", response_model=CartResponse)
async def remove_cart_item(item_id: str, requester: Requester = Depends(get_requester)) -> CartResponse:
    cart = _requester_cart(requester)
    _process(RemoveFromCart(cart_id=cart.id, item_id=item_id))
    return _cart_response(_requester_cart(requester))


@cart_router.delete("", response_model=CartResponse)
async def clear_cart(requester: Requester = Depends(get_requester)) -> CartResponse:
    cart = _requester_cart(requester)
    _process(ClearCart(cart_id=cart.id))
    return _cart_response(_requester_cart(requester))


@cart_router.post("/coupons", response_model=CartResponse)
async def apply_cart_coupon(body: ApplyCouponRequest, requester: Requester = Depends(get_requester)) -> CartResponse:
    cart = _requester_cart(requester)
    _process(ApplyCouponToCart(cart_id=cart.id, coupon_code=body.code))
    return _cart_response(_requester_cart(requester))


@cart_router.delete("/coupons/{code}", response_model=CartResponse)
async def remove_cart_coupon(code: str, requester: Requester = Depends(get_requester)) -> CartResponse:
    cart = _requester_cart(requester)
    _process(RemoveCouponFromCart(cart_id=cart.id, coupon_code=code))
    return _cart_response(_requester_cart(requester))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("/checkout", status_code=201, response_model=OrderResponse)
async def checkout_cart(body: CheckoutRequest, requester: Requester = Depends(get_requester)) -> OrderResponse:
    cart = _requester_cart(requester)
    order = checkout(
        cart.id,
        OrderInput(
            customer=body.customer.model_dump(),
            shipping_address=body.shipping_address.model_dump(),
            billing_address=body.billing_address.model_dump() if body.billing_address else None,
            payment_method=body.payment_method,
            customer_note=body.customer_note,
        ),
    )
    return _order_response(order)


@order_router.get("", response_model=list[OrderResponse])
async def get_orders(requester: Requester = Depends(get_requester)) -> list[OrderResponse]:
    orders = list_orders(requester_id=requester.user_id, is_admin=requester.is_admin)
    return [_order_response(order) for order in orders]


@order_router.get("/{order_number}", response_model=OrderResponse)
async def get_order(order_number: str, requester: Requester = Depends(get_requester)) -> OrderResponse:
    order = find_order(order_number, requester_id=requester.user_id, is_admin=requester.is_admin)
    return _order_response(order)


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str, body: UpdateOrderStatusRequest, requester: Requester = Depends(get_requester)
) -> OrderResponse:
    require_admin(requester)
    return _order_response(order_status.update_order_status(order_id, **body.model_dump(exclude_none=True)))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: str, body: CancelOrderRequest | None = None, requester: Requester = Depends(get_requester)
) -> OrderResponse:
    order = order_status.cancel_order(
        order_id,
        requester_id=requester.user_id,
        is_admin=requester.is_admin,
        reason=body.reason if body else None,
    )
    return _order_response(order)


# ---------------------------------------------------------------------------
# Discount Router
# ---------------------------------------------------------------------------
discount_router = APIRouter(prefix="/discounts", tags=["discounts"])


@discount_router.post("", status_code=201, response_model=IdResponse)
async def create_discount(body: CreateDiscountRequest, requester: Requester = Depends(get_requester)) -> IdResponse:
    require_admin(requester)
    data = body.model_dump()
    for field_name in ("applicable_products", "applicable_categories", "targeted_user_ids", "targeted_user_emails"):
        data[field_name] = json.dumps(data[field_name])
    discount_id = _process(CreateDiscount(created_by=requester.user_id, **data))
    return IdResponse(id=discount_id)


@discount_router.get("", response_model=list[DiscountResponse])
async def get_discounts(requester: Requester = Depends(get_requester)) -> list[DiscountResponse]:
    require_admin(requester)
    return [_discount_response(d) for d in current_domain.repository_for(Discount).list_all()]


@discount_router.get("/{discount_id}", response_model=DiscountResponse)
async def get_discount(discount_id: str, requester: Requester = Depends(get_requester)) -> DiscountResponse:
    require_admin(requester)
    return _discount_response(current_domain.repository_for(Discount).get(discount_id))


@discount_router.put("/{discount_id}", response_model=DiscountResponse)
async def update_discount(
    discount_id: str, body: UpdateDiscountRequest, requester: Requester = Depends(get_requester)
) -> DiscountResponse:
    require_admin(requester)
    data = body.model_dump(exclude_none=True)
    for field_name in ("applicable_products", "applicable_categories", "targeted_user_ids", "targeted_user_emails"):
        if field_name in data:
            data[field_name] = json.dumps(data[field_name])
    _process(UpdateDiscount(discount_id=discount_id, **data))
    return _discount_response(current_domain.repository_for(Discount).get(discount_id))


@discount_router.put("/{discount_id}/deactivate", response_model=DiscountResponse)
async def deactivate_discount(discount_id: str, requester: Requester = Depends(get_requester)) -> DiscountResponse:
    require_admin(requester)
    _process(DeactivateDiscount(discount_id=discount_id))
    return _discount_response(current_domain.repository_for(Discount).get(discount_id))


@discount_router.put("/{discount_id}/activate", response_model=DiscountResponse)
async def activate_discount(discount_id: str, requester: Requester = Depends(get_requester)) -> DiscountResponse:
    require_admin(requester)
    _process(ActivateDiscount(discount_id=discount_id))
    return _discount_response(current_domain.repository_for(Discount).get(discount_id))


@discount_router.delete("/{discount_id}", response_model=StatusResponse)
async def delete_discount(discount_id: str, requester: Requester = Depends(get_requester)) -> StatusResponse:
    require_admin(requester)
    _process(DeleteDiscount(discount_id=discount_id))
    return StatusResponse()


@discount_router.post("/validate", response_model=ValidateCouponResponse)
async def validate_discount(
    body: ValidateCouponRequest, requester: Requester = Depends(get_requester)
) -> ValidateCouponResponse:
    result = validate_coupon(
        body.code,
        CouponContext(
            cart_total=body.cart_total,
            user_id=requester.user_id,
            product_ids=tuple(body.product_ids),
            category_ids=tuple(body.category_ids),
        ),
    )
    if not result.valid:
        return ValidateCouponResponse(valid=False, message=result.message)

    discount = result.discount
    return ValidateCouponResponse(
        valid=True,
        discount_id=discount.id,
        code=discount.code,
        name=discount.name,
        discount_type=discount.discount_type,
        value=discount.value,
        application_type=discount.application_type,
    )


# ---------------------------------------------------------------------------
# Catalogue / Inventory Router
# ---------------------------------------------------------------------------
catalogue_router = APIRouter(tags=["catalogue"])


@catalogue_router.post("/products", status_code=201, response_model=IdResponse)
async def register_product(body: RegisterProductRequest, requester: Requester = Depends(get_requester)) -> IdResponse:
    require_admin(requester)
    data = body.model_dump()
    data["images"] = json.dumps(data["images"])
    data["category_ids"] = json.dumps(data["category_ids"])
    return IdResponse(id=_process(RegisterProduct(**data)))


@catalogue_router.post("/products/{product_id}/variants", status_code=201, response_model=IdResponse)
async def add_variant(
    product_id: str, body: AddVariantRequest, requester: Requester = Depends(get_requester)
) -> IdResponse:
    require_admin(requester)
    data = body.model_dump()
    data["options"] = json.dumps(data["options"])
    return IdResponse(id=_process(AddProductVariant(product_id=product_id, **data)))


def _unit_ids(kind: str, unit_id: str):
    """Map an inventory path onto the ``(product_id, variant_id)`` pair it names."""
    if kind == guard.UnitKind.PRODUCT.value:
        return unit_id, None
    if kind == guard.UnitKind.VARIANT.value:
        return str(find_variant(unit_id, active_only=False).product_id), unit_id
    raise InvalidInput({"kind": ["Stock kind must be `product` or `variant`"]})


@catalogue_router.get("/inventory/{kind}/{unit_id}", response_model=StockLevelResponse)
async def get_stock_level(kind: str, unit_id: str) -> StockLevelResponse:
    product_id, variant_id = _unit_ids(kind, unit_id)
    return _stock_response(guard.resolve(product_id, variant_id, active_only=False))


@catalogue_router.put("/inventory/{kind}/{unit_id}", response_model=StockLevelResponse)
async def set_stock_level(
    kind: str, unit_id: str, body: SetStockRequest, requester: Requester = Depends(get_requester)
) -> StockLevelResponse:
    require_admin(requester)
    product_id, variant_id = _unit_ids(kind, unit_id)
    _process(SetStockLevel(product_id=product_id, variant_id=variant_id, quantity=body.quantity))
    return _stock_response(guard.resolve(product_id, variant_id, active_only=False))


@catalogue_router.put("/inventory/{kind}/{unit_id}/receive", response_model=StockLevelResponse)
async def receive_stock(
    kind: str, unit_id: str, body: ReceiveStockRequest, requester: Requester = Depends(get_requester)
) -> StockLevelResponse:
    require_admin(requester)
    product_id, variant_id = _unit_ids(kind, unit_id)
    _process(ReceiveStock(product_id=product_id, variant_id=variant_id, quantity=body.quantity))
    return _stock_response(guard.resolve(product_id, variant_id, active_only=False))
