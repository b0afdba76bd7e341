"""PromotionalCodeUsage aggregate: one row per reservation against a code.

State Machine:
    PENDING → CONFIRMED
    PENDING → RELEASED
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront
from storefront.pricing.money import from_cents, to_cents
from storefront.utils.clock import utcnow


class UsageStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    RELEASED = "released"


_VALID_TRANSITIONS = {
    UsageStatus.PENDING: {UsageStatus.CONFIRMED, UsageStatus.RELEASED},
    UsageStatus.CONFIRMED: set(),
    UsageStatus.RELEASED: set(),
}


def customer_key(user_id: str | None, email: str | None) -> str:
    """Identity used for per-customer limits: the user when logged in, else the email."""
    if user_id:
        return f"user:{user_id}"
    return f"guest:{(email or '').strip().lower()}"


@storefront.aggregate
class PromotionalCodeUsage:
    code_id = Identifier(required=True)
    code = String(required=True, max_length=50)
    order_id = Identifier(required=True)
    customer_key = String(required=True, max_length=320)
    discount_minor = Integer(required=True, min_value=0)
    status = String(choices=UsageStatus, default=UsageStatus.PENDING.value)
    reserved_at = DateTime()
    confirmed_at = DateTime()
    released_at = DateTime()

    @classmethod
    def reserve(cls, code_id, code: str, order_id, customer_key: str, discount) -> "PromotionalCodeUsage":
        return cls(
            code_id=code_id,
            code=code,
            order_id=order_id,
            customer_key=customer_key,
            discount_minor=to_cents(discount),
            status=UsageStatus.PENDING.value,
            reserved_at=utcnow(),
        )

    @property
    def discount(self):
        return from_cents(self.discount_minor)

    def _assert_can_transition(self, target: UsageStatus) -> None:
        current = UsageStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot move usage from {current.value} to {target.value}"]})

    def confirm(self) -> None:
        self._assert_can_transition(UsageStatus.CONFIRMED)
        self.status = UsageStatus.CONFIRMED.value
        self.confirmed_at = utcnow()

    def release(self) -> None:
        self._assert_can_transition(UsageStatus.RELEASED)
        self.status = UsageStatus.RELEASED.value
        self.released_at = utcnow()
