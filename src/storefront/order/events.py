"""Domain events for the Order aggregate.

Versioned, immutable facts about order lifecycle changes. Money travels as
decimal strings.
"""

from protean.fields import DateTime, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A draft order was created from a checkout submission."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_reference = String(required=True)
    customer_email = String(required=True)
    total = String(required=True)
    promo_code = String()
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderSubmittedForPayment:
    """The shopper was handed off to a payment gateway."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_reference = String(required=True)
    gateway = String(required=True)
    submitted_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderConfirmed:
    """Payment succeeded and the order received its public numbers."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    invoice_number = String(required=True)
    gateway_transaction_id = String()
    total = String(required=True)
    confirmed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderPaymentFailed:
    """Payment failed and the order was cancelled."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    failed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderProcessing:
    __version__ = 1

    order_id = Identifier(required=True)
    started_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderShipped:
    __version__ = 1

    order_id = Identifier(required=True)
    tracking_number = String(required=True)
    carrier = String()
    shipped_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCompleted:
    __version__ = 1

    order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled by an operator, by expiry or by a refund."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String()
    cancelled_by = String(required=True)
    previous_status = String(required=True)
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderRefunded:
    __version__ = 1

    order_id = Identifier(required=True)
    gateway_transaction_id = String()
    amount = String(required=True)
    refunded_at = DateTime(required=True)
