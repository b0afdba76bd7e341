"""Error taxonomy for the storefront core.

Checkout payload problems are reported with Protean's own ``ValidationError``;
everything below is specific to pricing, payment and order lifecycle.
"""

from enum import Enum

from protean.exceptions import ValidationError


class StorefrontError(Exception):
    """Base class for storefront domain errors."""


class RejectionReason(Enum):
    INVALID = "promo_code.invalid"
    LOGIN_REQUIRED = "promo_code.login_required"
    INACTIVE = "promo_code.inactive"
    NOT_YET_ACTIVE = "promo_code.not_yet_active"
    EXPIRED = "promo_code.expired"
    MINIMUM_NOT_MET = "promo_code.minimum_not_met"
    USAGE_LIMIT_REACHED = "promo_code.usage_limit_reached"
    PER_USER_LIMIT_REACHED = "promo_code.per_user_limit_reached"


_REJECTION_MESSAGES = {
    RejectionReason.INVALID: "This promo code does not exist",
    RejectionReason.LOGIN_REQUIRED: "Please log in to use this promo code",
    RejectionReason.INACTIVE: "This promo code is no longer active",
    RejectionReason.NOT_YET_ACTIVE: "This promo code is not active yet",
    RejectionReason.EXPIRED: "This promo code has expired",
    RejectionReason.MINIMUM_NOT_MET: "Order total is below the minimum for this promo code",
    RejectionReason.USAGE_LIMIT_REACHED: "This promo code has been fully redeemed",
    RejectionReason.PER_USER_LIMIT_REACHED: "You have already used this promo code",
}


class DiscountRejected(StorefrontError):
    """A promotional code cannot be applied, for a user-facing reason."""

    def __init__(self, reason: RejectionReason, message: str | None = None) -> None:
        self.reason = reason
        self.message = message or _REJECTION_MESSAGES[reason]
        super().__init__(self.message)


class GatewaySignatureInvalid(StorefrontError):
    """A gateway callback failed signature or payload verification."""


class OrderNotFound(StorefrontError):
    """No live order matches the given reference."""

    def __init__(self, reference: str) -> None:
        self.reference = reference
        super().__init__(f"Order {reference} not found")


class InvalidTransition(ValidationError):
    """An order status change is not allowed from the current state."""

    def __init__(self, current: str, target: str, detail: str | None = None) -> None:
        self.current = current
        self.target = target
        message = detail or f"Cannot transition from {current} to {target}"
        super().__init__({"status": [message]})


class PersistenceConflict(StorefrontError):
    """A concurrent writer changed the record between read and write."""


class PaymentInitiationFailed(StorefrontError):
    """The gateway could not start a payment; the order stays a draft."""
