"""Pydantic request/response schemas for the commerce API.

These are external contracts, kept apart from the internal Protean commands.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    full_name: str
    phone: str | None = None
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str


class CustomerSchema(BaseModel):
    email: str
    first_name: str
    last_name: str
    phone: str | None = None


class IdResponse(BaseModel):
    id: str


class StatusResponse(BaseModel):
    status: str = "ok"


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------
class AddCartItemRequest(BaseModel):
    product_id: str
    variant_id: str | None = None
    quantity: int = Field(ge=1, default=1)


class UpdateCartItemRequest(BaseModel):
    quantity: int = Field(ge=1)


class ApplyCouponRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)


class CartItemResponse(BaseModel):
    id: str
    product_id: str
    variant_id: str | None = None
    product_name: str
    product_slug: str | None = None
    product_image: str | None = None
    price: float
    compare_at_price: float | None = None
    quantity: int
    variant_options: dict = {}


class AppliedCouponResponse(BaseModel):
    discount_id: str
    code: str
    discount_type: str
    discount_amount: float


class CartResponse(BaseModel):
    id: str
    customer_id: str | None = None
    session_id: str | None = None
    status: str
    items: list[CartItemResponse]
    applied_coupons: list[AppliedCouponResponse]
    subtotal: float
    discount_total: float
    tax_total: float
    shipping_total: float
    total: float
    expires_at: datetime | None = None


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    customer: CustomerSchema
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: str
    customer_note: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "customer": {
                        "email": "jane@example.com",
                        "first_name": "Jane",
                        "last_name": "Doe",
                        "phone": "+1-555-0100",
                    },
                    "shipping_address": {
                        "full_name": "Jane Doe",
                        "address_line1": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "postal_code": "62701",
                        "country": "US",
                    },
                    "payment_method": "mock",
                }
            ]
        }
    }


class UpdateOrderStatusRequest(BaseModel):
    status: str | None = None
    payment_status: str | None = None
    fulfillment_status: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    shipping_carrier: str | None = None
    internal_note: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str | None = None


class OrderItemResponse(BaseModel):
    line_number: int
    product_id: str
    variant_id: str | None = None
    product_name: str
    sku: str
    variant_options: dict = {}
    quantity: int
    price: float
    discount_amount: float
    tax_amount: float
    total: float


class AppliedDiscountResponse(BaseModel):
    discount_id: str
    code: str
    name: str | None = None
    kind: str
    amount: float


class PricingResponse(BaseModel):
    subtotal: float
    discount_total: float
    tax_total: float
    shipping_total: float
    total: float
    currency: str


class PaymentDetailsResponse(BaseModel):
    transaction_id: str | None = None
    payment_gateway: str | None = None
    paid_at: datetime | None = None
    failure_reason: str | None = None


class OrderResponse(BaseModel):
    id: str
    order_number: str
    order_date: datetime
    customer_id: str | None = None
    customer: CustomerSchema
    shipping_address: AddressSchema
    billing_address: AddressSchema
    items: list[OrderItemResponse]
    applied_discounts: list[AppliedDiscountResponse]
    pricing: PricingResponse
    payment_method: str
    payment_status: str
    payment_details: PaymentDetailsResponse | None = None
    status: str
    fulfillment_status: str
    shipping_method: str | None = None
    shipping_carrier: str | None = None
    tracking_number: str | None = None
    tracking_url: str | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    customer_note: str | None = None


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------
class CreateDiscountRequest(BaseModel):
    name: str
    description: str | None = None
    code: str | None = None
    discount_type: str
    value: float = Field(ge=0)
    application_type: str = "entire_order"
    applicable_products: list[str] = []
    applicable_categories: list[str] = []
    minimum_purchase_amount: float | None = Field(default=None, ge=0)
    minimum_quantity: int | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=0)
    usage_limit_per_customer: int = Field(default=1, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = True
    is_public: bool = True
    targeted_user_ids: list[str] = []
    targeted_user_emails: list[str] = []


class UpdateDiscountRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    value: float | None = Field(default=None, ge=0)
    application_type: str | None = None
    applicable_products: list[str] | None = None
    applicable_categories: list[str] | None = None
    minimum_purchase_amount: float | None = Field(default=None, ge=0)
    usage_limit: int | None = Field(default=None, ge=0)
    usage_limit_per_customer: int | None = Field(default=None, ge=0)
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_public: bool | None = None
    targeted_user_ids: list[str] | None = None
    targeted_user_emails: list[str] | None = None


class DiscountResponse(BaseModel):
    id: str
    name: str
    code: str | None = None
    discount_type: str
    value: float
    application_type: str
    usage_limit: int | None = None
    usage_count: int
    usage_limit_per_customer: int | None = None
    minimum_purchase_amount: float | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool
    is_public: bool


class ValidateCouponRequest(BaseModel):
    code: str
    cart_total: float = Field(ge=0, default=0.0)
    product_ids: list[str] = []
    category_ids: list[str] = []


class ValidateCouponResponse(BaseModel):
    valid: bool
    message: str | None = None
    discount_id: str | None = None
    code: str | None = None
    name: str | None = None
    discount_type: str | None = None
    value: float | None = None
    application_type: str | None = None


# ---------------------------------------------------------------------------
# Catalogue and inventory
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    name: str
    slug: str
    description: str | None = None
    base_price: float = Field(ge=0)
    compare_at_price: float | None = Field(default=None, ge=0)
    images: list[str] = []
    category_ids: list[str] = []
    track_inventory: bool = True
    allow_backorder: bool = False
    initial_stock: int = Field(default=0, ge=0)


class AddVariantRequest(BaseModel):
    sku: str
    price: float = Field(ge=0)
    compare_at_price: float | None = Field(default=None, ge=0)
    options: dict[str, str] = {}
    track_inventory: bool = True
    initial_stock: int = Field(default=0, ge=0)


class SetStockRequest(BaseModel):
    quantity: int = Field(ge=0)


class ReceiveStockRequest(BaseModel):
    quantity: int = Field(ge=1)


class StockLevelResponse(BaseModel):
    kind: str
    unit_id: str
    tracked: bool
    backorder: bool
    available: int
