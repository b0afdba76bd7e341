"""Pydantic request/response schemas for the storefront API.

These are external contracts (anti-corruption layer), separate from the
internal commands and services.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    first_name: str
    last_name: str | None = None
    street: str
    apartment: str | None = None
    city: str
    state: str | None = None
    postal_code: str
    country: str = Field(min_length=2, max_length=2)
    phone: str | None = None


class CheckoutItemSchema(BaseModel):
    product_id: str
    variant_id: str
    quantity: int = Field(ge=1)
    price: Decimal | None = Field(default=None, ge=0)


class PickupPointSchema(BaseModel):
    id: str
    name: str | None = None
    address: str | None = None


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequest(BaseModel):
    email: str = Field(min_length=3, max_length=254)
    phone: str | None = None
    customer_name: str | None = None
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    items: list[CheckoutItemSchema] = Field(min_length=1)
    shipping_method: str
    payment_method: str
    promo_code: str | None = None
    pickup_point: PickupPointSchema | None = None
    notes: str | None = Field(default=None, max_length=2000)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "email": "jane@example.com",
                    "shipping_address": {
                        "first_name": "Jane",
                        "last_name": "Doe",
                        "street": "Gedimino pr. 1",
                        "city": "Vilnius",
                        "postal_code": "01103",
                        "country": "LT",
                    },
                    "items": [{"product_id": "prod-1", "variant_id": "var-1", "quantity": 1, "price": "90.00"}],
                    "shipping_method": "venipak-courier",
                    "payment_method": "stripe",
                    "promo_code": "WELCOME2026",
                }
            ]
        }
    }


class CheckoutResponse(BaseModel):
    order_id: str
    payment_reference: str
    redirect_url: str
    total: Decimal
    currency: str


# ---------------------------------------------------------------------------
# Promotional codes
# ---------------------------------------------------------------------------
class ValidatePromoCodeRequest(BaseModel):
    code: str
    subtotal: Decimal = Field(ge=0)
    email: str | None = None


class ValidatePromoCodeResponse(BaseModel):
    valid: bool
    code: str | None = None
    discount_amount: Decimal | None = None
    formatted_value: str | None = None
    reason: str | None = None
    message: str | None = None


class CreatePromotionalCodeRequest(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    discount_type: str
    value: Decimal = Field(gt=0)
    min_order_amount: Decimal | None = Field(default=None, ge=0)
    max_discount_amount: Decimal | None = Field(default=None, gt=0)
    usage_limit: int | None = Field(default=None, ge=1)
    per_user_limit: int | None = Field(default=None, ge=1)
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    is_active: bool = True


class PromotionalCodeIdResponse(BaseModel):
    code_id: str


# ---------------------------------------------------------------------------
# Catalog discounts
# ---------------------------------------------------------------------------
class CreateCatalogDiscountRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    discount_type: str
    value: Decimal = Field(gt=0)
    scope: str = "all"
    target_ids: list[str] = Field(default_factory=list)
    priority: int = 0
    is_active: bool = True
    starts_at: datetime | None = None
    ends_at: datetime | None = None


class UpdateCatalogDiscountRequest(BaseModel):
    name: str | None = None
    discount_type: str | None = None
    value: Decimal | None = Field(default=None, gt=0)
    scope: str | None = None
    target_ids: list[str] | None = None
    priority: int | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None


class DiscountIdResponse(BaseModel):
    discount_id: str


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class OverrideRequest(BaseModel):
    override: bool = False


class ShipOrderRequest(BaseModel):
    tracking_number: str = Field(min_length=1, max_length=255)
    carrier: str | None = None
    override: bool = False


class CancelOrderRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class OrderStatusResponse(BaseModel):
    order_id: str
    status: str
    payment_status: str


class ConfirmationLineSchema(BaseModel):
    product_name: str
    sku: str
    variant_label: str | None = None
    quantity: int
    unit_price: Decimal
    unit_discount: Decimal
    total: Decimal


class ConfirmationResponse(BaseModel):
    reference: str
    order_number: str | None = None
    invoice_number: str | None = None
    status: str
    payment_status: str
    lines: list[ConfirmationLineSchema]
    original_subtotal: Decimal
    product_discount: Decimal
    subtotal: Decimal
    subtotal_excl_vat: Decimal
    vat_amount: Decimal
    discount: Decimal
    shipping_cost: Decimal
    total: Decimal
    currency: str
    promo_code: str | None = None
    tracking_number: str | None = None
    text: str


# ---------------------------------------------------------------------------
# Maintenance / webhooks
# ---------------------------------------------------------------------------
class ExpireDraftsRequest(BaseModel):
    older_than_minutes: int | None = Field(default=None, ge=1)


class ExpireDraftsResponse(BaseModel):
    expired_count: int


class WebhookResponse(BaseModel):
    status: str = "ok"
    result: str | None = None


class StatusResponse(BaseModel):
    status: str = "ok"
