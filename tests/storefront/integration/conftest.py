import hashlib
import hmac
import json
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from storefront.gateway import paysera_codec

STRIPE_SECRET = "whsec_test"
PAYSERA_PROJECT = "0"
PAYSERA_PASSWORD = "paysera-test-password"


@pytest.fixture()
def client(catalog):
    from storefront.api import admin_router, checkout_router, payments_router, promo_router

    app = FastAPI()
    app.include_router(checkout_router)
    app.include_router(promo_router)
    app.include_router(admin_router)
    app.include_router(payments_router)
    return TestClient(app)


@pytest.fixture()
def checkout_payload(shipping_address):
    def _payload(**overrides):
        payload = {
            "email": "jane@example.com",
            "shipping_address": dict(shipping_address),
            "items": [{"product_id": "prod-shirt", "variant_id": "var-shirt-m", "quantity": 1}],
            "shipping_method": "venipak-courier",
            "payment_method": "stripe",
        }
        payload.update(overrides)
        return payload

    return _payload


@pytest.fixture()
def place_via_api(client, checkout_payload):
    """POST /checkout as a logged-in shopper and return the response body."""

    def _place(headers=None, **overrides):
        headers = headers or {"X-User-Id": "user-1", "X-Session-Token": "session-token-1"}
        response = client.post("/checkout", json=checkout_payload(**overrides), headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _place


@pytest.fixture()
def stripe_delivery():
    return _stripe_delivery


@pytest.fixture()
def paysera_fields():
    return _paysera_fields


def _stripe_delivery(event_type: str, obj: dict, secret: str = STRIPE_SECRET) -> tuple[bytes, dict]:
    """A signed Stripe webhook body and its headers."""
    payload = json.dumps({"id": f"evt_{int(time.time() * 1000)}", "type": event_type, "data": {"object": obj}})
    timestamp = int(time.time())
    signature = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    headers = {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}
    return payload.encode(), headers


def _paysera_fields(orderid: str, status: str = "1", password: str = PAYSERA_PASSWORD, **params) -> dict:
    """Signed Paysera callback fields."""
    values = {"projectid": PAYSERA_PROJECT, "orderid": orderid, "status": status, "requestid": "req-1"}
    values.update(params)
    data = paysera_codec.encode_data(values)
    return {"data": data, "ss1": paysera_codec.sign(data, password), "ss2": "unchecked"}
