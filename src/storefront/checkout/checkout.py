"""Checkout orchestration.

Turns a cart submission into a persisted draft order and hands it to the
selected payment gateway:

1. validate the submission and load catalog snapshots for every line
2. price the cart (catalog discounts, VAT, promotional code, shipping)
3. reserve the promotional code, then persist the order with its items
4. ask the gateway for a payment redirect and move the order to ``pending``

A failure while starting the payment leaves the order in ``draft``; the
expiry sweep releases its reservation later.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from storefront.catalog import get_catalog
from storefront.catalog.port import ProductCatalog
from storefront.domain import logger
from storefront.gateway import get_gateway, supported_gateways
from storefront.order.mutation import mutate_order
from storefront.order.order import Address, Order, OrderItem, OrderPricing, OrderStatus
from storefront.pricing.engine import CartLine, PriceBreakdown, PricedLine, PricingEngine
from storefront.pricing.money import CENT, to_cents, to_money
from storefront.pricing.shipping import ShippingMethod
from storefront.promotion import ledger
from storefront.promotion.usage import customer_key
from storefront.utils.settings import get_settings

PRICE_TOLERANCE = CENT


@dataclass(frozen=True)
class CheckoutLine:
    product_id: str
    variant_id: str
    quantity: int
    client_price: Decimal | None = None


@dataclass
class CheckoutSubmission:
    email: str
    shipping_address: dict
    items: list[CheckoutLine]
    shipping_method: str
    payment_method: str
    customer_name: str | None = None
    phone: str | None = None
    billing_address: dict | None = None
    promo_code: str | None = None
    user_id: str | None = None
    session_token: str | None = None
    pickup_point: dict | None = None
    notes: str | None = None


@dataclass(frozen=True)
class CheckoutResult:
    order_id: str
    payment_reference: str
    redirect_url: str
    total: Decimal
    currency: str


def _address(data: dict, field_name: str) -> Address:
    try:
        return Address(**data)
    except ValidationError as exc:
        raise ValidationError({field_name: exc.messages}) from exc
    except TypeError as exc:
        raise ValidationError({field_name: [str(exc)]}) from exc


def _order_item(line: PricedLine) -> OrderItem:
    return OrderItem(
        product_id=line.product.product_id,
        variant_id=line.product.variant_id,
        product_name=line.product.name,
        sku=line.product.sku,
        variant_label=line.product.variant_label,
        quantity=line.quantity,
        unit_price=to_cents(line.unit_price),
        unit_discount=to_cents(line.unit_discount),
        catalog_discount_id=line.applied_discount.discount_id if line.applied_discount else None,
        subtotal=to_cents(line.total_excl_vat),
        tax=to_cents(line.vat_amount),
        total=to_cents(line.total),
    )


class CheckoutOrchestrator:
    def __init__(self, catalog: ProductCatalog | None = None, engine: PricingEngine | None = None) -> None:
        self.catalog = catalog or get_catalog()
        self.engine = engine or PricingEngine()

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def _validate(self, submission: CheckoutSubmission) -> None:
        errors: dict[str, list[str]] = {}
        if not submission.items:
            errors["items"] = ["Cart is empty"]
        if not submission.email or "@" not in submission.email:
            errors["email"] = ["A valid email address is required"]
        if submission.payment_method not in supported_gateways():
            errors["payment_method"] = [f"Unsupported payment method {submission.payment_method!r}"]
        if submission.shipping_method == ShippingMethod.VENIPAK_PICKUP.value and not submission.pickup_point:
            errors["pickup_point"] = ["Choose a pickup point for parcel locker delivery"]
        if errors:
            raise ValidationError(errors)

    def _cart_lines(self, submission: CheckoutSubmission) -> list[CartLine]:
        lines = []
        errors = []
        for index, item in enumerate(submission.items):
            if item.quantity < 1:
                errors.append(f"Line {index + 1}: quantity must be at least 1")
                continue
            product = self.catalog.get_variant(item.product_id, item.variant_id)
            if product is None:
                errors.append(f"Line {index + 1}: product is no longer available")
                continue
            lines.append(CartLine(product=product, quantity=item.quantity))
        if errors:
            raise ValidationError({"items": errors})
        return lines

    @staticmethod
    def _cross_check_prices(submission: CheckoutSubmission, breakdown: PriceBreakdown) -> None:
        """Reject a cart whose displayed prices no longer match the server's."""
        errors = []
        for index, (item, priced) in enumerate(zip(submission.items, breakdown.lines, strict=True)):
            if item.client_price is None:
                continue
            server_price = priced.unit_price - priced.unit_discount
            if abs(to_money(item.client_price) - server_price) > PRICE_TOLERANCE:
                errors.append(
                    f"Line {index + 1}: price changed from {to_money(item.client_price)} to {server_price}"
                )
        if errors:
            raise ValidationError({"items": errors})

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def place_order(self, submission: CheckoutSubmission, at: datetime | None = None) -> Order:
        """Price the submission and persist a draft order. Raises ValidationError or DiscountRejected."""
        self._validate(submission)
        lines = self._cart_lines(submission)

        shipping_address = _address(submission.shipping_address, "shipping_address")
        billing_address = (
            _address(submission.billing_address, "billing_address") if submission.billing_address else shipping_address
        )

        breakdown = self.engine.price(
            lines,
            country=shipping_address.country,
            shipping_method=submission.shipping_method,
            promo_code=submission.promo_code,
            user_id=submission.user_id,
            email=submission.email,
            at=at,
        )
        self._cross_check_prices(submission, breakdown)

        order = Order.place(
            customer_name=submission.customer_name or shipping_address.full_name,
            customer_email=submission.email.strip().lower(),
            customer_phone=submission.phone or shipping_address.phone,
            shipping_address=shipping_address,
            billing_address=billing_address,
            pricing=OrderPricing.from_breakdown(breakdown, get_settings().currency),
            items=[_order_item(line) for line in breakdown.lines],
            shipping_method=submission.shipping_method,
            payment_method=submission.payment_method,
            user_id=submission.user_id,
            session_token=submission.session_token,
            promo_code=breakdown.promo.code if breakdown.promo else None,
            promo_code_id=breakdown.promo.code_id if breakdown.promo else None,
            pickup_point=json.dumps(submission.pickup_point) if submission.pickup_point else None,
            notes=submission.notes,
        )

        if breakdown.promo:
            ledger.reserve(breakdown.promo, str(order.id), customer_key(submission.user_id, submission.email))
        try:
            current_domain.repository_for(Order).add(order)
        except Exception:
            if breakdown.promo:
                ledger.release(str(order.id))
            raise

        logger.info(
            "Order placed",
            order_id=str(order.id),
            payment_reference=order.payment_reference,
            total=str(breakdown.total),
            promo_code=order.promo_code,
            items=len(order.items),
        )
        return order

    def start_payment(self, order_id: str) -> CheckoutResult:
        """Request a payment redirect and move the draft order to ``pending``.

        Raises PaymentInitiationFailed when the gateway refuses; the order stays
        in draft.
        """
        order = current_domain.repository_for(Order).get_live(order_id)
        gateway = get_gateway(order.payment_method)
        redirect = gateway.create_payment_redirect(order)

        def change(current: Order) -> bool:
            if current.order_status != OrderStatus.DRAFT:
                return False
            current.submit_for_payment(gateway.name)
            return True

        order, _ = mutate_order(order_id, change)
        logger.info(
            "Payment started",
            order_id=str(order.id),
            gateway=gateway.name,
            gateway_session_id=redirect.gateway_session_id,
        )
        return CheckoutResult(
            order_id=str(order.id),
            payment_reference=order.payment_reference,
            redirect_url=redirect.url,
            total=order.pricing.amount("total"),
            currency=order.pricing.currency,
        )

    def checkout(self, submission: CheckoutSubmission, at: datetime | None = None) -> CheckoutResult:
        order = self.place_order(submission, at=at)
        return self.start_payment(str(order.id))
