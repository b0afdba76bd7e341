"""Promotional code validation.

Checks run in a fixed order and stop at the first failure, so the shopper
always sees the most fundamental reason a code was refused.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from protean.utils.globals import current_domain

from storefront.domain import logger
from storefront.errors import DiscountRejected, RejectionReason
from storefront.promotion.code import PromotionalCode
from storefront.promotion.usage import PromotionalCodeUsage, customer_key
from storefront.utils.clock import utcnow


@dataclass(frozen=True)
class PromoQuote:
    """A validated code and the discount it grants on a given subtotal."""

    code_id: str
    code: str
    discount_type: str
    value: Decimal
    discount: Decimal
    formatted_value: str


def validate_code(
    raw_code: str,
    subtotal: Decimal,
    user_id: str | None = None,
    email: str | None = None,
    at: datetime | None = None,
) -> PromoQuote:
    """Validate ``raw_code`` against ``subtotal`` for one customer.

    Raises DiscountRejected with a distinct reason on the first failed check.
    """
    at = at or utcnow()
    promo = current_domain.repository_for(PromotionalCode).find_by_code(raw_code)

    if promo is None:
        _reject(RejectionReason.INVALID, raw_code)
    if promo.requires_login and not user_id:
        _reject(RejectionReason.LOGIN_REQUIRED, promo.code)
    if not promo.is_active:
        _reject(RejectionReason.INACTIVE, promo.code)
    if promo.is_not_yet_active(at):
        _reject(RejectionReason.NOT_YET_ACTIVE, promo.code)
    if promo.is_expired(at):
        _reject(RejectionReason.EXPIRED, promo.code)
    if not promo.meets_minimum(subtotal):
        _reject(
            RejectionReason.MINIMUM_NOT_MET,
            promo.code,
            f"Minimum order amount for this code is €{promo.min_order_amount:.2f}",
        )
    if promo.usage_limit_reached():
        _reject(RejectionReason.USAGE_LIMIT_REACHED, promo.code)
    if promo.per_user_limit is not None:
        used = current_domain.repository_for(PromotionalCodeUsage).confirmed_count(
            str(promo.id), customer_key(user_id, email)
        )
        if used >= promo.per_user_limit:
            _reject(RejectionReason.PER_USER_LIMIT_REACHED, promo.code)

    return PromoQuote(
        code_id=str(promo.id),
        code=promo.code,
        discount_type=promo.discount_type,
        value=promo.value,
        discount=promo.calculate_discount(subtotal),
        formatted_value=promo.formatted_value(),
    )


def _reject(reason: RejectionReason, code: str, message: str | None = None) -> None:
    logger.info("Promotional code rejected", code=code, reason=reason.value)
    raise DiscountRejected(reason, message)
