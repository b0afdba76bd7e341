"""CatalogDiscount aggregate: automatic, scoped markdowns.

A catalog discount applies without customer action to every item its scope
matches while it is active and inside its validity window. Discounts never
stack: when several match one item, the resolver picks exactly one.

Amounts are stored as ``value_minor``: cents for fixed discounts, hundredths
of a percent for percentage discounts (``1000`` is 10%).
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String, Text

from storefront.catalog.port import ProductSnapshot
from storefront.domain import storefront
from storefront.pricing.money import ZERO, from_cents, to_cents, to_money
from storefront.utils.clock import as_utc, utcnow


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class DiscountScope(Enum):
    ALL = "all"
    CATEGORIES = "categories"
    BRANDS = "brands"
    PRODUCTS = "products"


def _validate_terms(
    discount_type: str,
    value: Decimal,
    scope: str,
    target_ids: list[str],
    starts_at: datetime | None,
    ends_at: datetime | None,
) -> None:
    if value <= 0:
        raise ValidationError({"value": ["Discount value must be positive"]})
    if discount_type == DiscountType.PERCENTAGE.value and value > 100:
        raise ValidationError({"value": ["Percentage discount cannot exceed 100%"]})
    if scope != DiscountScope.ALL.value and not target_ids:
        raise ValidationError({"target_ids": [f"Scope '{scope}' needs at least one target id"]})
    if starts_at and ends_at and as_utc(ends_at) <= as_utc(starts_at):
        raise ValidationError({"ends_at": ["End date must be after start date"]})


@storefront.aggregate
class CatalogDiscount:
    name = String(required=True, max_length=255)
    discount_type = String(choices=DiscountType, required=True)
    value_minor = Integer(required=True, min_value=1)
    scope = String(choices=DiscountScope, default=DiscountScope.ALL.value)
    target_ids = Text()  # JSON list of product/brand/category ids
    priority = Integer(default=0)
    is_active = Boolean(default=True)
    starts_at = DateTime()
    ends_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        name: str,
        discount_type: str,
        value,
        scope: str = DiscountScope.ALL.value,
        target_ids: list[str] | None = None,
        priority: int = 0,
        is_active: bool = True,
        starts_at: datetime | None = None,
        ends_at: datetime | None = None,
    ) -> "CatalogDiscount":
        value = to_money(value)
        target_ids = [str(t) for t in target_ids or []]
        _validate_terms(discount_type, value, scope, target_ids, starts_at, ends_at)

        now = utcnow()
        return cls(
            name=name,
            discount_type=discount_type,
            value_minor=to_cents(value),
            scope=scope,
            target_ids=json.dumps(sorted(set(target_ids))),
            priority=priority,
            is_active=is_active,
            starts_at=starts_at,
            ends_at=ends_at,
            created_at=now,
            updated_at=now,
        )

    def update_terms(
        self,
        name: str | None = None,
        discount_type: str | None = None,
        value=None,
        scope: str | None = None,
        target_ids: list[str] | None = None,
        priority: int | None = None,
        starts_at: datetime | None = None,
        ends_at: datetime | None = None,
    ) -> None:
        discount_type = discount_type or self.discount_type
        new_value = to_money(value) if value is not None else self.value
        scope = scope or self.scope
        ids = [str(t) for t in target_ids] if target_ids is not None else self.targets
        starts_at = starts_at if starts_at is not None else self.starts_at
        ends_at = ends_at if ends_at is not None else self.ends_at
        _validate_terms(discount_type, new_value, scope, ids, starts_at, ends_at)

        if name:
            self.name = name
        self.discount_type = discount_type
        self.value_minor = to_cents(new_value)
        self.scope = scope
        self.target_ids = json.dumps(sorted(set(ids)))
        if priority is not None:
            self.priority = priority
        self.starts_at = starts_at
        self.ends_at = ends_at
        self.updated_at = utcnow()

    def activate(self) -> None:
        self.is_active = True
        self.updated_at = utcnow()

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = utcnow()

    @property
    def value(self) -> Decimal:
        return from_cents(self.value_minor)

    @property
    def targets(self) -> list[str]:
        return json.loads(self.target_ids) if self.target_ids else []

    def is_live(self, at: datetime) -> bool:
        """Active and inside the validity window at ``at``."""
        if not self.is_active:
            return False
        if self.starts_at and as_utc(self.starts_at) > at:
            return False
        if self.ends_at and as_utc(self.ends_at) < at:
            return False
        return True

    def matches(self, product: ProductSnapshot) -> bool:
        scope = DiscountScope(self.scope)
        if scope is DiscountScope.ALL:
            return True

        targets = set(self.targets)
        if scope is DiscountScope.PRODUCTS:
            return product.product_id in targets
        if scope is DiscountScope.BRANDS:
            return bool(targets & product.brand_ids)
        return bool(targets & product.category_ids)

    def amount_off(self, unit_price: Decimal) -> Decimal:
        """Per-unit discount, never more than the unit price."""
        if self.discount_type == DiscountType.PERCENTAGE.value:
            amount = to_money(unit_price * self.value / 100)
        else:
            amount = self.value
        return max(ZERO, min(amount, to_money(unit_price)))
