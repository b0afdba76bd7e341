"""Gateway B (Paysera) callback adapter.

Paysera posts ``data`` and ``ss1`` form fields. ``ss1`` is the md5 of the
encoded data with the project password appended. The decoded payload is
validated and mapped to a PaymentEvent keyed by ``orderid``, which carries
our payment reference.
"""

from pydantic import BaseModel, ConfigDict, ValidationError

from storefront.domain import logger
from storefront.errors import GatewaySignatureInvalid
from storefront.gateway import paysera_codec
from storefront.payment.event import LookupKind, PaymentEvent, PaymentOutcome, lookups
from storefront.utils.settings import Settings, get_settings

GATEWAY = "paysera"

STATUS_PAID = "1"
PENDING_STATUSES = {
    "0": "Payment not executed",
    "2": "Payment order accepted, not yet executed",
    "3": "Additional payment information",
}


class PayseraCallback(BaseModel):
    model_config = ConfigDict(extra="ignore")

    projectid: str
    orderid: str
    status: str
    requestid: str | None = None
    amount: str | None = None
    currency: str | None = None
    payamount: str | None = None
    paycurrency: str | None = None
    payment: str | None = None
    test: str | None = None


def decode_signed(fields: dict, settings: Settings | None = None) -> dict[str, str]:
    """Verify ``ss1`` (or ``sign``) over ``data`` and return the decoded parameters."""
    settings = settings or get_settings()
    if not settings.paysera_sign_password:
        logger.error("Paysera sign password is not configured")
        raise GatewaySignatureInvalid("Sign password is not configured")
    data = fields.get("data") or ""
    signature = fields.get("ss1") or fields.get("sign") or ""
    if not data or not paysera_codec.verify(data, signature, settings.paysera_sign_password):
        raise GatewaySignatureInvalid("Paysera signature mismatch")
    return paysera_codec.decode_data(data)


def parse_callback(fields: dict, settings: Settings | None = None) -> PayseraCallback:
    settings = settings or get_settings()
    params = decode_signed(fields, settings)
    try:
        callback = PayseraCallback.model_validate(params)
    except ValidationError as exc:
        raise GatewaySignatureInvalid("Invalid Paysera callback payload") from exc

    if callback.projectid != str(settings.paysera_project_id):
        raise GatewaySignatureInvalid("Paysera project id mismatch")
    return callback


def to_payment_event(callback: PayseraCallback) -> PaymentEvent:
    if callback.status == STATUS_PAID:
        outcome, reason = PaymentOutcome.SUCCEEDED, None
    elif callback.status in PENDING_STATUSES:
        outcome, reason = PaymentOutcome.PENDING, PENDING_STATUSES[callback.status]
    else:
        outcome, reason = PaymentOutcome.FAILED, f"Paysera status {callback.status}"

    return PaymentEvent(
        gateway=GATEWAY,
        outcome=outcome,
        lookups=lookups(
            (LookupKind.PAYMENT_REFERENCE, callback.orderid),
            (LookupKind.ORDER_NUMBER, callback.orderid),
        ),
        gateway_transaction_id=callback.requestid,
        event_id=callback.requestid,
        reason=reason,
        raw=callback.model_dump(),
    )


def parse_webhook(fields: dict, settings: Settings | None = None) -> PaymentEvent:
    callback = parse_callback(fields, settings)
    event = to_payment_event(callback)
    logger.info("Paysera callback verified", **event.log_context(), status=callback.status)
    return event


def cancellation_event(fields: dict, settings: Settings | None = None) -> PaymentEvent:
    """Build a FAILED event from the signed parameters of a cancel redirect."""
    params = decode_signed(fields, settings)
    reference = params.get("orderid")
    if not reference:
        raise GatewaySignatureInvalid("Paysera redirect without orderid")
    return PaymentEvent(
        gateway=GATEWAY,
        outcome=PaymentOutcome.FAILED,
        lookups=lookups((LookupKind.PAYMENT_REFERENCE, reference)),
        reason="Cancelled by shopper",
    )
