"""Pricing engine.

Applies, in this order and never another:

1. catalog discount per line → ``original_subtotal``, ``product_discount``,
   ``subtotal``
2. VAT split of the (VAT-inclusive) subtotal → ``subtotal_excl_vat``,
   ``vat_amount``
3. promotional code against ``subtotal`` → ``discount``
4. shipping → ``total = subtotal - discount + shipping_cost``

Every derived amount is rounded half-up to the cent exactly once, and the
VAT amount is taken as the remainder so the split always adds back up.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from protean.exceptions import ValidationError

from storefront.catalog.port import ProductSnapshot
from storefront.discount.resolver import AppliedDiscount, resolve_discount
from storefront.pricing.money import ZERO, to_money
from storefront.pricing.shipping import shipping_rate
from storefront.promotion.validator import PromoQuote, validate_code
from storefront.utils.clock import utcnow
from storefront.utils.settings import get_settings


@dataclass(frozen=True)
class CartLine:
    product: ProductSnapshot
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    product: ProductSnapshot
    quantity: int
    unit_price: Decimal
    unit_discount: Decimal
    original_total: Decimal
    discount_total: Decimal
    total: Decimal
    total_excl_vat: Decimal
    vat_amount: Decimal
    applied_discount: AppliedDiscount | None = None


@dataclass(frozen=True)
class PriceBreakdown:
    lines: list[PricedLine]
    original_subtotal: Decimal
    product_discount: Decimal
    subtotal: Decimal
    subtotal_excl_vat: Decimal
    vat_amount: Decimal
    discount: Decimal
    shipping_cost: Decimal
    total: Decimal
    promo: PromoQuote | None = field(default=None)


class PricingEngine:
    def __init__(self, vat_rate: Decimal | None = None) -> None:
        self.vat_rate = Decimal(vat_rate if vat_rate is not None else get_settings().vat_rate)

    def split_vat(self, gross: Decimal) -> tuple[Decimal, Decimal]:
        """Split a VAT-inclusive amount into (net, vat)."""
        net = to_money(gross / (1 + self.vat_rate))
        return net, to_money(gross) - net

    def price_line(self, line: CartLine, at: datetime) -> PricedLine:
        if line.quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        unit_price = to_money(line.product.price)
        applied = resolve_discount(line.product, at)
        unit_discount = applied.unit_amount if applied else ZERO

        original_total = unit_price * line.quantity
        discount_total = unit_discount * line.quantity
        total = original_total - discount_total
        net, vat = self.split_vat(total)

        return PricedLine(
            product=line.product,
            quantity=line.quantity,
            unit_price=unit_price,
            unit_discount=unit_discount,
            original_total=original_total,
            discount_total=discount_total,
            total=total,
            total_excl_vat=net,
            vat_amount=vat,
            applied_discount=applied,
        )

    def price(
        self,
        lines: list[CartLine],
        *,
        shipping_cost: Decimal | None = None,
        country: str | None = None,
        shipping_method: str | None = None,
        promo_code: str | None = None,
        user_id: str | None = None,
        email: str | None = None,
        at: datetime | None = None,
    ) -> PriceBreakdown:
        """Price a cart.

        ``shipping_cost`` overrides the rate table; otherwise ``country`` and
        ``shipping_method`` are looked up against the discounted subtotal.
        Raises DiscountRejected when ``promo_code`` is given but invalid.
        """
        if not lines:
            raise ValidationError({"items": ["Cart is empty"]})
        at = at or utcnow()

        # 1. catalog discounts
        priced = [self.price_line(line, at) for line in lines]
        original_subtotal = sum((p.original_total for p in priced), ZERO)
        product_discount = sum((p.discount_total for p in priced), ZERO)
        subtotal = original_subtotal - product_discount

        # 2. VAT, included in catalog prices
        subtotal_excl_vat, vat_amount = self.split_vat(subtotal)

        # 3. promotional code
        promo = None
        discount = ZERO
        if promo_code and promo_code.strip():
            promo = validate_code(promo_code, subtotal, user_id=user_id, email=email, at=at)
            discount = min(promo.discount, subtotal)

        # 4. shipping
        if shipping_cost is None:
            shipping_cost = shipping_rate(country or "", shipping_method or "", subtotal)
        shipping_cost = to_money(shipping_cost)

        return PriceBreakdown(
            lines=priced,
            original_subtotal=original_subtotal,
            product_discount=product_discount,
            subtotal=subtotal,
            subtotal_excl_vat=subtotal_excl_vat,
            vat_amount=vat_amount,
            discount=discount,
            shipping_cost=shipping_cost,
            total=subtotal - discount + shipping_cost,
            promo=promo,
        )
