"""Gateway A (Stripe) webhook adapter.

Verifies the ``Stripe-Signature`` header over the raw request body, parses
the event into typed models and maps the event types we act on to a
canonical PaymentEvent. Other event types are acknowledged and ignored.
"""

import json
from dataclasses import replace

import stripe
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from storefront.domain import logger
from storefront.errors import GatewaySignatureInvalid
from storefront.payment.event import LookupKind, PaymentEvent, PaymentOutcome, lookups
from storefront.utils.settings import Settings, get_settings

GATEWAY = "stripe"


class StripeObject(BaseModel):
    """The subset of session, payment intent and charge fields we read."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    object: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)
    client_reference_id: str | None = None
    payment_intent: str | None = None
    payment_status: str | None = None
    amount: int | None = None
    amount_total: int | None = None
    amount_refunded: int | None = None
    refunded: bool | None = None
    last_payment_error: dict | None = None


class StripeEventData(BaseModel):
    object: StripeObject


class StripeEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    data: StripeEventData


def verify_and_parse(payload: bytes, signature_header: str, settings: Settings | None = None) -> StripeEvent:
    """Check the signature and decode the event. Raises GatewaySignatureInvalid."""
    settings = settings or get_settings()
    if not settings.stripe_webhook_secret:
        logger.error("Stripe webhook secret is not configured")
        raise GatewaySignatureInvalid("Webhook secret is not configured")
    try:
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            body,
            signature_header or "",
            settings.stripe_webhook_secret,
            settings.stripe_webhook_tolerance,
        )
    except UnicodeDecodeError as exc:
        raise GatewaySignatureInvalid("Webhook body is not UTF-8") from exc
    except stripe.SignatureVerificationError as exc:
        raise GatewaySignatureInvalid(str(exc)) from exc

    try:
        return StripeEvent.model_validate(json.loads(body))
    except (json.JSONDecodeError, ValidationError) as exc:
        raise GatewaySignatureInvalid("Invalid webhook payload") from exc


def _session_event(event: StripeEvent, outcome: PaymentOutcome, reason: str | None = None) -> PaymentEvent:
    session = event.data.object
    return PaymentEvent(
        gateway=GATEWAY,
        outcome=outcome,
        lookups=lookups(
            (LookupKind.PAYMENT_REFERENCE, session.metadata.get("payment_reference")),
            (LookupKind.PAYMENT_REFERENCE, session.client_reference_id),
            (LookupKind.ORDER_NUMBER, session.metadata.get("order_number")),
        ),
        gateway_transaction_id=session.payment_intent,
        event_id=event.id,
        reason=reason,
    )


def to_payment_event(event: StripeEvent) -> PaymentEvent | None:
    """Map a verified Stripe event to a PaymentEvent, or None when we do not act on it."""
    obj = event.data.object

    if event.type == "checkout.session.completed":
        # Delayed methods (bank debits) complete the session unpaid first.
        outcome = PaymentOutcome.SUCCEEDED if obj.payment_status in ("paid", "no_payment_required") else PaymentOutcome.PENDING
        return _session_event(event, outcome)

    if event.type == "checkout.session.async_payment_succeeded":
        return _session_event(event, PaymentOutcome.SUCCEEDED)

    if event.type == "checkout.session.async_payment_failed":
        return _session_event(event, PaymentOutcome.FAILED, "Asynchronous payment failed")

    if event.type == "checkout.session.expired":
        return _session_event(event, PaymentOutcome.FAILED, "Checkout session expired")

    if event.type == "payment_intent.payment_failed":
        error = obj.last_payment_error or {}
        return PaymentEvent(
            gateway=GATEWAY,
            outcome=PaymentOutcome.FAILED,
            lookups=lookups(
                (LookupKind.PAYMENT_REFERENCE, obj.metadata.get("payment_reference")),
                (LookupKind.TRANSACTION_ID, obj.id),
            ),
            gateway_transaction_id=obj.id,
            event_id=event.id,
            reason=error.get("message") or "Payment failed",
        )

    if event.type == "charge.refunded":
        fully_refunded = bool(obj.refunded) or (
            obj.amount is not None and obj.amount_refunded is not None and obj.amount_refunded >= obj.amount
        )
        if not fully_refunded:
            logger.info(
                "Partial refund acknowledged without order change",
                gateway=GATEWAY,
                event_id=event.id,
                charge_id=obj.id,
                amount_refunded=obj.amount_refunded,
            )
            return None
        return PaymentEvent(
            gateway=GATEWAY,
            outcome=PaymentOutcome.REFUNDED,
            lookups=lookups(
                (LookupKind.ORDER_NUMBER, obj.metadata.get("order_number")),
                (LookupKind.PAYMENT_REFERENCE, obj.metadata.get("payment_reference")),
                (LookupKind.TRANSACTION_ID, obj.payment_intent),
                (LookupKind.TRANSACTION_FRAGMENT, obj.payment_intent),
            ),
            gateway_transaction_id=obj.payment_intent,
            event_id=event.id,
        )

    logger.info("Unhandled Stripe event type", gateway=GATEWAY, event_type=event.type, event_id=event.id)
    return None


def parse_webhook(payload: bytes, signature_header: str, settings: Settings | None = None) -> PaymentEvent | None:
    event = verify_and_parse(payload, signature_header, settings)
    payment_event = to_payment_event(event)
    if payment_event is None:
        return None
    return replace(payment_event, raw=event.model_dump())
