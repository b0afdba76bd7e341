"""Tests for gateway payload verification and mapping to PaymentEvent."""

import hashlib
import hmac
import json
import time

import pytest
from storefront.errors import GatewaySignatureInvalid
from storefront.gateway import paysera_codec
from storefront.payment import paysera_callback, stripe_webhook
from storefront.payment.event import LookupKind, OrderLookup, PaymentOutcome, lookups
from storefront.utils.settings import Settings

SETTINGS = Settings(
    stripe_webhook_secret="whsec_unit",
    paysera_project_id="12345",
    paysera_sign_password="secret-pass",
)


def _stripe_header(payload: str, secret: str = "whsec_unit", timestamp: int | None = None) -> str:
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def _stripe_event(event_type: str, obj: dict) -> str:
    return json.dumps({"id": "evt_1", "type": event_type, "data": {"object": obj}})


def _paysera_fields(**params):
    values = {"projectid": "12345", "orderid": "PAY-ABCDEFGHIJ", "status": "1", "requestid": "req-9"}
    values.update(params)
    data = paysera_codec.encode_data(values)
    return {"data": data, "ss1": paysera_codec.sign(data, "secret-pass"), "ss2": "unused"}


class TestLookupChain:
    def test_skips_empty_and_duplicate_values(self):
        chain = lookups(
            (LookupKind.PAYMENT_REFERENCE, "PAY-1"),
            (LookupKind.PAYMENT_REFERENCE, "PAY-1"),
            (LookupKind.ORDER_NUMBER, None),
            (LookupKind.TRANSACTION_ID, "pi_1"),
        )
        assert chain == (
            OrderLookup(LookupKind.PAYMENT_REFERENCE, "PAY-1"),
            OrderLookup(LookupKind.TRANSACTION_ID, "pi_1"),
        )


class TestStripeVerification:
    def test_valid_signature(self):
        payload = _stripe_event("checkout.session.completed", {"id": "cs_1", "payment_status": "paid"})
        event = stripe_webhook.verify_and_parse(payload.encode(), _stripe_header(payload), SETTINGS)
        assert event.type == "checkout.session.completed"

    def test_tampered_body_rejected(self):
        payload = _stripe_event("checkout.session.completed", {"id": "cs_1"})
        header = _stripe_header(payload)
        with pytest.raises(GatewaySignatureInvalid):
            stripe_webhook.verify_and_parse(payload.replace("cs_1", "cs_2").encode(), header, SETTINGS)

    def test_wrong_secret_rejected(self):
        payload = _stripe_event("checkout.session.completed", {"id": "cs_1"})
        with pytest.raises(GatewaySignatureInvalid):
            stripe_webhook.verify_and_parse(payload.encode(), _stripe_header(payload, "whsec_other"), SETTINGS)

    def test_stale_timestamp_rejected(self):
        payload = _stripe_event("checkout.session.completed", {"id": "cs_1"})
        header = _stripe_header(payload, timestamp=int(time.time()) - 3600)
        with pytest.raises(GatewaySignatureInvalid):
            stripe_webhook.verify_and_parse(payload.encode(), header, SETTINGS)

    def test_missing_header_rejected(self):
        payload = _stripe_event("checkout.session.completed", {"id": "cs_1"})
        with pytest.raises(GatewaySignatureInvalid):
            stripe_webhook.verify_and_parse(payload.encode(), "", SETTINGS)

    def test_unconfigured_secret_rejects_everything(self):
        payload = _stripe_event("checkout.session.completed", {"id": "cs_1", "payment_status": "paid"})
        unconfigured = SETTINGS.model_copy(update={"stripe_webhook_secret": ""})
        with pytest.raises(GatewaySignatureInvalid):
            stripe_webhook.verify_and_parse(payload.encode(), _stripe_header(payload, ""), unconfigured)


class TestStripeMapping:
    def _map(self, event_type, obj):
        payload = _stripe_event(event_type, obj)
        return stripe_webhook.parse_webhook(payload.encode(), _stripe_header(payload), SETTINGS)

    def test_paid_session_succeeds(self):
        event = self._map(
            "checkout.session.completed",
            {
                "id": "cs_1",
                "payment_status": "paid",
                "payment_intent": "pi_1",
                "client_reference_id": "PAY-ABCDEFGHIJ",
                "metadata": {"payment_reference": "PAY-ABCDEFGHIJ"},
            },
        )
        assert event.outcome == PaymentOutcome.SUCCEEDED
        assert event.order_reference == "PAY-ABCDEFGHIJ"
        assert event.gateway_transaction_id == "pi_1"
        assert event.raw["id"] == "evt_1"

    def test_unpaid_session_is_pending(self):
        event = self._map("checkout.session.completed", {"id": "cs_1", "payment_status": "unpaid"})
        assert event.outcome == PaymentOutcome.PENDING

    def test_async_outcomes(self):
        assert self._map("checkout.session.async_payment_succeeded", {"id": "cs_1"}).outcome == PaymentOutcome.SUCCEEDED
        assert self._map("checkout.session.async_payment_failed", {"id": "cs_1"}).outcome == PaymentOutcome.FAILED

    def test_payment_intent_failed_uses_error_message(self):
        event = self._map(
            "payment_intent.payment_failed",
            {"id": "pi_9", "last_payment_error": {"message": "Your card was declined."}},
        )
        assert event.outcome == PaymentOutcome.FAILED
        assert event.reason == "Your card was declined."
        assert event.lookups == (OrderLookup(LookupKind.TRANSACTION_ID, "pi_9"),)

    def test_full_refund_lookup_order(self):
        event = self._map(
            "charge.refunded",
            {
                "id": "ch_1",
                "refunded": True,
                "payment_intent": "pi_1",
                "metadata": {"order_number": "6002", "payment_reference": "PAY-ABCDEFGHIJ"},
            },
        )
        assert event.outcome == PaymentOutcome.REFUNDED
        assert [lookup.kind for lookup in event.lookups] == [
            LookupKind.ORDER_NUMBER,
            LookupKind.PAYMENT_REFERENCE,
            LookupKind.TRANSACTION_ID,
            LookupKind.TRANSACTION_FRAGMENT,
        ]

    def test_partial_refund_is_ignored(self):
        event = self._map(
            "charge.refunded",
            {"id": "ch_1", "refunded": False, "amount": 8519, "amount_refunded": 1000, "payment_intent": "pi_1"},
        )
        assert event is None

    def test_unsupported_type_is_ignored(self):
        assert self._map("customer.created", {"id": "cus_1"}) is None


class TestPayseraCodec:
    def test_decode_returns_parameters(self):
        data = paysera_codec.encode_data({"orderid": "PAY-1", "amount": 8519, "skip": None})
        assert paysera_codec.decode_data(data) == {"orderid": "PAY-1", "amount": "8519"}

    def test_verify(self):
        data = paysera_codec.encode_data({"orderid": "PAY-1"})
        assert paysera_codec.verify(data, paysera_codec.sign(data, "pw"), "pw")
        assert not paysera_codec.verify(data, paysera_codec.sign(data, "pw"), "other")
        assert not paysera_codec.verify(data, None, "pw")

    def test_verify_non_ascii_signature(self):
        data = paysera_codec.encode_data({"orderid": "PAY-1"})
        assert not paysera_codec.verify(data, "\u00e9" * 32, "pw")

    def test_verify_without_password(self):
        data = paysera_codec.encode_data({"orderid": "PAY-1"})
        assert not paysera_codec.verify(data, paysera_codec.sign(data, ""), "")


class TestPayseraCallback:
    def test_paid_status_succeeds(self):
        event = paysera_callback.parse_webhook(_paysera_fields(), SETTINGS)
        assert event.outcome == PaymentOutcome.SUCCEEDED
        assert event.lookups[0] == OrderLookup(LookupKind.PAYMENT_REFERENCE, "PAY-ABCDEFGHIJ")
        assert event.gateway_transaction_id == "req-9"

    @pytest.mark.parametrize("status", ["0", "2", "3"])
    def test_pending_statuses(self, status):
        event = paysera_callback.parse_webhook(_paysera_fields(status=status), SETTINGS)
        assert event.outcome == PaymentOutcome.PENDING
        assert event.reason == paysera_callback.PENDING_STATUSES[status]

    def test_other_status_fails(self):
        event = paysera_callback.parse_webhook(_paysera_fields(status="4"), SETTINGS)
        assert event.outcome == PaymentOutcome.FAILED

    def test_bad_signature(self):
        fields = _paysera_fields()
        fields["ss1"] = "0" * 32
        with pytest.raises(GatewaySignatureInvalid):
            paysera_callback.parse_webhook(fields, SETTINGS)

    def test_non_ascii_signature_rejected(self):
        fields = _paysera_fields()
        fields["ss1"] = "\u00e9" * 32
        with pytest.raises(GatewaySignatureInvalid):
            paysera_callback.parse_webhook(fields, SETTINGS)

    def test_unconfigured_password_rejects_everything(self):
        unconfigured = SETTINGS.model_copy(update={"paysera_sign_password": ""})
        values = {"projectid": "12345", "orderid": "PAY-ABCDEFGHIJ", "status": "1"}
        data = paysera_codec.encode_data(values)
        fields = {"data": data, "ss1": paysera_codec.sign(data, "")}
        with pytest.raises(GatewaySignatureInvalid):
            paysera_callback.parse_webhook(fields, unconfigured)

    def test_foreign_project_rejected(self):
        with pytest.raises(GatewaySignatureInvalid):
            paysera_callback.parse_webhook(_paysera_fields(projectid="999"), SETTINGS)

    def test_missing_fields_rejected(self):
        data = paysera_codec.encode_data({"projectid": "12345"})
        fields = {"data": data, "ss1": paysera_codec.sign(data, "secret-pass")}
        with pytest.raises(GatewaySignatureInvalid):
            paysera_callback.parse_webhook(fields, SETTINGS)

    def test_cancellation_event(self):
        event = paysera_callback.cancellation_event(_paysera_fields(status="0"), SETTINGS)
        assert event.outcome == PaymentOutcome.FAILED
        assert event.reason == "Cancelled by shopper"
