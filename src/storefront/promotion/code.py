"""PromotionalCode aggregate: customer-entered, usage-limited discounts.

``times_used`` is never written directly by application code; the usage
ledger owns it and changes it only through an atomic conditional update.
``revision`` is bumped on every write and checked before the next one, so a
counter change made by another process surfaces as a conflict instead of
being overwritten.

Money amounts are stored in cents; percentage values in hundredths of a
percent, the same convention as catalog discounts.
"""

from datetime import datetime
from decimal import Decimal

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Integer, String

from storefront.discount.discount import DiscountType
from storefront.domain import storefront
from storefront.pricing.money import ZERO, format_money, from_cents, to_cents, to_money
from storefront.utils.clock import as_utc, utcnow

WELCOME_PREFIX = "WELCOME"


def normalize_code(raw: str | None) -> str:
    return (raw or "").strip().upper()


@storefront.aggregate
class PromotionalCode:
    code = String(required=True, max_length=50, unique=True)
    discount_type = String(choices=DiscountType, required=True)
    value_minor = Integer(required=True, min_value=1)
    min_order_minor = Integer()
    max_discount_minor = Integer()
    usage_limit = Integer(min_value=1)
    per_user_limit = Integer(min_value=1)
    times_used = Integer(default=0, min_value=0)
    starts_at = DateTime()
    expires_at = DateTime()
    is_active = Boolean(default=True)
    revision = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        code: str,
        discount_type: str,
        value,
        min_order_amount=None,
        max_discount_amount=None,
        usage_limit: int | None = None,
        per_user_limit: int | None = None,
        starts_at: datetime | None = None,
        expires_at: datetime | None = None,
        is_active: bool = True,
    ) -> "PromotionalCode":
        code = normalize_code(code)
        if not code:
            raise ValidationError({"code": ["Code cannot be blank"]})

        value = to_money(value)
        if value <= 0:
            raise ValidationError({"value": ["Discount value must be positive"]})
        if discount_type == DiscountType.PERCENTAGE.value and value > 100:
            raise ValidationError({"value": ["Percentage discount cannot exceed 100%"]})
        if starts_at and expires_at and as_utc(expires_at) <= as_utc(starts_at):
            raise ValidationError({"expires_at": ["Expiry must be after the start date"]})

        now = utcnow()
        return cls(
            code=code,
            discount_type=discount_type,
            value_minor=to_cents(value),
            min_order_minor=to_cents(to_money(min_order_amount)) if min_order_amount is not None else None,
            max_discount_minor=to_cents(to_money(max_discount_amount)) if max_discount_amount is not None else None,
            usage_limit=usage_limit,
            per_user_limit=per_user_limit,
            starts_at=starts_at,
            expires_at=expires_at,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )

    @property
    def value(self) -> Decimal:
        return from_cents(self.value_minor)

    @property
    def min_order_amount(self) -> Decimal | None:
        return from_cents(self.min_order_minor) if self.min_order_minor is not None else None

    @property
    def max_discount_amount(self) -> Decimal | None:
        return from_cents(self.max_discount_minor) if self.max_discount_minor is not None else None

    @property
    def requires_login(self) -> bool:
        return self.code.startswith(WELCOME_PREFIX)

    def is_not_yet_active(self, at: datetime) -> bool:
        return self.starts_at is not None and as_utc(self.starts_at) > at

    def is_expired(self, at: datetime) -> bool:
        return self.expires_at is not None and as_utc(self.expires_at) < at

    def usage_limit_reached(self) -> bool:
        return self.usage_limit is not None and (self.times_used or 0) >= self.usage_limit

    def meets_minimum(self, subtotal: Decimal) -> bool:
        minimum = self.min_order_amount
        return minimum is None or subtotal >= minimum

    def calculate_discount(self, subtotal: Decimal) -> Decimal:
        """Discount for ``subtotal``: capped, and never more than the subtotal itself."""
        if self.discount_type == DiscountType.PERCENTAGE.value:
            amount = to_money(subtotal * self.value / 100)
            cap = self.max_discount_amount
            if cap is not None:
                amount = min(amount, cap)
        else:
            amount = self.value
        return max(ZERO, min(amount, to_money(subtotal)))

    def formatted_value(self, currency: str = "EUR") -> str:
        if self.discount_type == DiscountType.PERCENTAGE.value:
            return f"{self.value.normalize():f}%"
        return format_money(self.value, currency)

    def deactivate(self) -> None:
        self.is_active = False
        self.updated_at = utcnow()
