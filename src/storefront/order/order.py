"""Order aggregate: the durable record of a checkout.

The order captures addresses, item snapshots and totals at checkout time and
never recalculates them afterwards. Its lifecycle is carried by two explicit
enums, ``status`` and ``payment_status``, moved only through the methods
below.

State Machine:
    DRAFT → PENDING → CONFIRMED → PROCESSING → SHIPPED → COMPLETED
    DRAFT, PENDING, CONFIRMED, PROCESSING, SHIPPED → CANCELLED
    COMPLETED and CANCELLED are terminal.

Payment status:
    PENDING → PAID → REFUNDED
    PENDING → FAILED

``revision`` is bumped on every persisted change and used for optimistic
concurrency checks in the repository.
"""

import secrets
import string
from datetime import datetime
from decimal import Decimal
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from storefront.domain import storefront
from storefront.errors import InvalidTransition
from storefront.order.events import (
    OrderCancelled,
    OrderCompleted,
    OrderConfirmed,
    OrderPaymentFailed,
    OrderPlaced,
    OrderProcessing,
    OrderRefunded,
    OrderShipped,
    OrderSubmittedForPayment,
)
from storefront.pricing.money import from_cents, to_cents
from storefront.utils.clock import utcnow


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    DRAFT = "draft"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class CancellationActor(Enum):
    OPERATOR = "operator"
    GATEWAY = "gateway"
    SYSTEM = "system"


_VALID_TRANSITIONS = {
    OrderStatus.DRAFT: {OrderStatus.PENDING, OrderStatus.CANCELLED},
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

TERMINAL_STATES = {OrderStatus.COMPLETED, OrderStatus.CANCELLED}

PAYMENT_REFERENCE_PREFIX = "PAY-"
_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def generate_payment_reference() -> str:
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(10))
    return f"{PAYMENT_REFERENCE_PREFIX}{suffix}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@storefront.value_object(part_of="Order")
class Address:
    """A shipping or billing address captured at checkout time.

    Once recorded on an Order, the address never changes, whatever happens
    to the customer's saved addresses later.
    """

    first_name = String(required=True, max_length=100)
    last_name = String(max_length=100)
    street = String(required=True, max_length=255)
    apartment = String(max_length=100)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    postal_code = String(required=True, max_length=20)
    country = String(required=True, max_length=2)
    phone = String(max_length=30)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


@storefront.value_object(part_of="Order")
class OrderPricing:
    """Order totals in cents, locked at checkout.

    The three equations below hold for every persisted order.
    """

    original_subtotal = Integer(required=True, min_value=0)
    product_discount = Integer(default=0, min_value=0)
    subtotal = Integer(required=True, min_value=0)
    subtotal_excl_vat = Integer(required=True, min_value=0)
    vat_amount = Integer(required=True, min_value=0)
    discount = Integer(default=0, min_value=0)
    shipping_cost = Integer(default=0, min_value=0)
    total = Integer(required=True, min_value=0)
    currency = String(max_length=3, default="EUR")

    @invariant.post
    def totals_must_reconcile(self):
        if self.subtotal != self.original_subtotal - self.product_discount:
            raise ValidationError({"subtotal": ["Subtotal must equal original subtotal minus product discount"]})
        if self.subtotal != self.subtotal_excl_vat + self.vat_amount:
            raise ValidationError({"vat_amount": ["Subtotal must equal net subtotal plus VAT"]})
        if self.total != self.subtotal - self.discount + self.shipping_cost:
            raise ValidationError({"total": ["Total must equal subtotal minus discount plus shipping"]})
        if self.discount > self.subtotal:
            raise ValidationError({"discount": ["Discount cannot exceed the subtotal"]})

    @classmethod
    def from_breakdown(cls, breakdown, currency: str = "EUR") -> "OrderPricing":
        return cls(
            original_subtotal=to_cents(breakdown.original_subtotal),
            product_discount=to_cents(breakdown.product_discount),
            subtotal=to_cents(breakdown.subtotal),
            subtotal_excl_vat=to_cents(breakdown.subtotal_excl_vat),
            vat_amount=to_cents(breakdown.vat_amount),
            discount=to_cents(breakdown.discount),
            shipping_cost=to_cents(breakdown.shipping_cost),
            total=to_cents(breakdown.total),
            currency=currency,
        )

    def amount(self, name: str) -> Decimal:
        """Return one of the cent fields as a Decimal."""
        return from_cents(getattr(self, name))


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@storefront.entity(part_of="Order")
class OrderItem:
    """Snapshot of one purchased line, priced at order time.

    ``subtotal`` excludes VAT, ``tax`` is the VAT share and ``total`` is what
    the shopper pays for the line after the catalog discount.
    """

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    sku = String(required=True, max_length=100)
    variant_label = String(max_length=100)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)
    unit_discount = Integer(default=0, min_value=0)
    catalog_discount_id = Identifier()
    subtotal = Integer(required=True, min_value=0)
    tax = Integer(required=True, min_value=0)
    total = Integer(required=True, min_value=0)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Order:
    order_number = String(max_length=20)
    payment_reference = String(required=True, max_length=20, unique=True)
    invoice_number = String(max_length=20)

    user_id = Identifier()
    session_token = String(max_length=100)
    customer_name = String(required=True, max_length=200)
    customer_email = String(required=True, max_length=254)
    customer_phone = String(max_length=30)

    status = String(choices=OrderStatus, default=OrderStatus.DRAFT.value)
    payment_status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    payment_method = String(max_length=50)
    payment_gateway = String(max_length=20)
    gateway_transaction_id = String(max_length=255)

    items = HasMany(OrderItem)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    pricing = ValueObject(OrderPricing)

    promo_code = String(max_length=50)
    promo_code_id = Identifier()

    shipping_method = String(max_length=50)
    pickup_point = Text()  # JSON, parcel locker chosen at checkout
    carrier = String(max_length=50)
    tracking_number = String(max_length=255)
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=20)
    notes = Text()

    revision = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()
    submitted_at = DateTime()
    paid_at = DateTime()
    confirmed_at = DateTime()
    shipped_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    refunded_at = DateTime()
    notified_at = DateTime()
    deleted_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        customer_name: str,
        customer_email: str,
        shipping_address: Address,
        billing_address: Address,
        pricing: OrderPricing,
        items: list[OrderItem],
        shipping_method: str,
        payment_method: str,
        user_id: str | None = None,
        session_token: str | None = None,
        customer_phone: str | None = None,
        promo_code: str | None = None,
        promo_code_id: str | None = None,
        pickup_point: str | None = None,
        notes: str | None = None,
    ) -> "Order":
        """Create a draft order from a priced checkout."""
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = utcnow()
        order = cls(
            payment_reference=generate_payment_reference(),
            user_id=user_id,
            session_token=session_token,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            shipping_address=shipping_address,
            billing_address=billing_address,
            pricing=pricing,
            promo_code=promo_code,
            promo_code_id=promo_code_id,
            shipping_method=shipping_method,
            payment_method=payment_method,
            pickup_point=pickup_point,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        for item in items:
            order.add_items(item)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                payment_reference=order.payment_reference,
                customer_email=customer_email,
                total=str(pricing.amount("total")),
                promo_code=promo_code,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Guards
    # -------------------------------------------------------------------
    @property
    def order_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID.value

    @property
    def is_terminal(self) -> bool:
        return self.order_status in TERMINAL_STATES

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def can_transition_to(self, target: OrderStatus) -> bool:
        return target in _VALID_TRANSITIONS[self.order_status]

    def _assert_can_transition(self, target: OrderStatus) -> None:
        if not self.can_transition_to(target):
            raise InvalidTransition(self.status, target.value)

    def _assert_payment_settled(self, target: OrderStatus, override: bool) -> None:
        """Operator moves past confirmation need a paid order unless explicitly overridden."""
        if override or self.is_paid:
            return
        raise InvalidTransition(
            self.status,
            target.value,
            f"Cannot mark order {target.value} while payment is {self.payment_status}",
        )

    def _touch(self) -> datetime:
        now = utcnow()
        self.updated_at = now
        return now

    # -------------------------------------------------------------------
    # Payment lifecycle
    # -------------------------------------------------------------------
    def submit_for_payment(self, gateway: str) -> None:
        """Hand the order to a gateway; the shopper is redirected next."""
        self._assert_can_transition(OrderStatus.PENDING)
        now = self._touch()
        self.status = OrderStatus.PENDING.value
        self.payment_gateway = gateway
        self.submitted_at = now

        self.raise_(
            OrderSubmittedForPayment(
                order_id=str(self.id),
                payment_reference=self.payment_reference,
                gateway=gateway,
                submitted_at=now,
            )
        )

    def record_payment_success(
        self,
        order_number: str,
        invoice_number: str,
        gateway_transaction_id: str | None = None,
    ) -> None:
        """Confirm the order. Numbers already assigned are kept as they are."""
        self._assert_can_transition(OrderStatus.CONFIRMED)
        if self.payment_status != PaymentStatus.PENDING.value:
            raise InvalidTransition(
                self.payment_status,
                PaymentStatus.PAID.value,
                f"Payment is already {self.payment_status}",
            )

        now = self._touch()
        self.status = OrderStatus.CONFIRMED.value
        self.payment_status = PaymentStatus.PAID.value
        self.order_number = self.order_number or order_number
        self.invoice_number = self.invoice_number or invoice_number
        if gateway_transaction_id:
            self.gateway_transaction_id = gateway_transaction_id
        self.paid_at = now
        self.confirmed_at = now

        self.raise_(
            OrderConfirmed(
                order_id=str(self.id),
                order_number=self.order_number,
                invoice_number=self.invoice_number,
                gateway_transaction_id=gateway_transaction_id,
                total=str(self.pricing.amount("total")),
                confirmed_at=now,
            )
        )

    def record_payment_failure(self, reason: str | None = None) -> None:
        """Cancel an unpaid order whose payment failed."""
        if self.is_paid:
            raise InvalidTransition(
                self.payment_status,
                PaymentStatus.FAILED.value,
                "A paid order cannot fail",
            )
        self._assert_can_transition(OrderStatus.CANCELLED)

        now = self._touch()
        previous = self.status
        self.status = OrderStatus.CANCELLED.value
        self.payment_status = PaymentStatus.FAILED.value
        self.cancellation_reason = reason or "Payment failed"
        self.cancelled_by = CancellationActor.GATEWAY.value
        self.cancelled_at = now

        self.raise_(OrderPaymentFailed(order_id=str(self.id), reason=reason, failed_at=now))
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=self.cancellation_reason,
                cancelled_by=self.cancelled_by,
                previous_status=previous,
                cancelled_at=now,
            )
        )

    def refund(self, gateway_transaction_id: str | None = None) -> None:
        """A refund settles the order as cancelled."""
        if not self.is_paid:
            raise InvalidTransition(
                self.payment_status,
                PaymentStatus.REFUNDED.value,
                f"Cannot refund an order whose payment is {self.payment_status}",
            )
        self._assert_can_transition(OrderStatus.CANCELLED)

        now = self._touch()
        previous = self.status
        self.status = OrderStatus.CANCELLED.value
        self.payment_status = PaymentStatus.REFUNDED.value
        self.cancellation_reason = "Refunded"
        self.cancelled_by = CancellationActor.GATEWAY.value
        self.cancelled_at = now
        self.refunded_at = now

        self.raise_(
            OrderRefunded(
                order_id=str(self.id),
                gateway_transaction_id=gateway_transaction_id,
                amount=str(self.pricing.amount("total")),
                refunded_at=now,
            )
        )
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason="Refunded",
                cancelled_by=self.cancelled_by,
                previous_status=previous,
                cancelled_at=now,
            )
        )

    def mark_notified(self) -> None:
        self.notified_at = self._touch()

    # -------------------------------------------------------------------
    # Operator lifecycle
    # -------------------------------------------------------------------
    def mark_processing(self, override: bool = False) -> None:
        self._assert_can_transition(OrderStatus.PROCESSING)
        self._assert_payment_settled(OrderStatus.PROCESSING, override)
        now = self._touch()
        self.status = OrderStatus.PROCESSING.value

        self.raise_(OrderProcessing(order_id=str(self.id), started_at=now))

    def ship(self, tracking_number: str, carrier: str | None = None, override: bool = False) -> None:
        if not tracking_number or not tracking_number.strip():
            raise ValidationError({"tracking_number": ["A tracking number is required to ship an order"]})
        self._assert_can_transition(OrderStatus.SHIPPED)
        self._assert_payment_settled(OrderStatus.SHIPPED, override)

        now = self._touch()
        self.status = OrderStatus.SHIPPED.value
        self.tracking_number = tracking_number.strip()
        self.carrier = carrier
        self.shipped_at = now

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                tracking_number=self.tracking_number,
                carrier=carrier,
                shipped_at=now,
            )
        )

    def complete(self, override: bool = False) -> None:
        self._assert_can_transition(OrderStatus.COMPLETED)
        self._assert_payment_settled(OrderStatus.COMPLETED, override)

        now = self._touch()
        self.status = OrderStatus.COMPLETED.value
        self.delivered_at = now

        self.raise_(OrderCompleted(order_id=str(self.id), delivered_at=now))

    def cancel(self, reason: str | None = None, actor: CancellationActor = CancellationActor.OPERATOR) -> None:
        """Cancel before completion; a paid order is marked refunded."""
        self._assert_can_transition(OrderStatus.CANCELLED)

        now = self._touch()
        previous = self.status
        was_paid = self.is_paid
        self.status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.cancelled_by = actor.value
        self.cancelled_at = now
        if was_paid:
            self.payment_status = PaymentStatus.REFUNDED.value
            self.refunded_at = now

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_by=actor.value,
                previous_status=previous,
                cancelled_at=now,
            )
        )

    def soft_delete(self) -> None:
        if self.deleted_at is None:
            self.deleted_at = self._touch()

    # -------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------
    def is_owned_by(self, user_id: str | None = None, session_token: str | None = None) -> bool:
        """The placing user, or the guest session that placed it, owns the order."""
        if user_id and self.user_id:
            return str(self.user_id) == str(user_id)
        if session_token and self.session_token:
            return secrets.compare_digest(session_token, self.session_token)
        return False

    @property
    def public_reference(self) -> str:
        return self.order_number or self.payment_reference
