"""Integration tests for checkout, confirmation and promo code endpoints."""

from decimal import Decimal


class TestCheckoutEndpoint:
    def test_checkout_returns_redirect(self, place_via_api):
        body = place_via_api()
        assert body["payment_reference"].startswith("PAY-")
        assert body["redirect_url"].startswith("https://pay.example.test/stripe/")
        assert Decimal(body["total"]) == Decimal("100.00")
        assert body["currency"] == "EUR"

    def test_empty_cart_is_422(self, client, checkout_payload):
        response = client.post("/checkout", json=checkout_payload(items=[]))
        assert response.status_code == 422

    def test_unknown_variant_is_422(self, client, checkout_payload):
        items = [{"product_id": "prod-shirt", "variant_id": "var-gone", "quantity": 1}]
        response = client.post("/checkout", json=checkout_payload(items=items))
        assert response.status_code == 422
        assert "items" in response.json()["detail"]

    def test_rejected_promo_reports_reason(self, client, checkout_payload, create_promo):
        create_promo(code="WELCOME2026")
        response = client.post("/checkout", json=checkout_payload(promo_code="WELCOME2026"))
        assert response.status_code == 422
        assert response.json()["detail"]["reason"] == "promo_code.login_required"

    def test_gateway_outage_is_502(self, client, checkout_payload):
        from storefront.gateway import get_gateway

        get_gateway("stripe").configure(False, "Stripe unreachable")
        response = client.post("/checkout", json=checkout_payload())
        assert response.status_code == 502


class TestConfirmationEndpoint:
    def test_owner_sees_document(self, client, place_via_api):
        order_id = place_via_api()["order_id"]
        response = client.get(f"/orders/{order_id}/confirmation", headers={"X-User-Id": "user-1"})

        assert response.status_code == 200
        body = response.json()
        assert body["lines"][0]["sku"] == "SHIRT-LIN-M"
        assert Decimal(body["total"]) == Decimal("100.00")
        assert body["order_number"] is None

    def test_guest_uses_session_token_query(self, client, place_via_api):
        order_id = place_via_api(headers={"X-Session-Token": "guest-token"})["order_id"]
        assert client.get(f"/orders/{order_id}/confirmation?token=guest-token").status_code == 200

    def test_stranger_gets_404(self, client, place_via_api):
        order_id = place_via_api()["order_id"]
        response = client.get(f"/orders/{order_id}/confirmation", headers={"X-User-Id": "user-2"})
        assert response.status_code == 404

    def test_unknown_order_is_404(self, client):
        assert client.get("/orders/does-not-exist/confirmation").status_code == 404


class TestPromoValidateEndpoint:
    def test_valid_code(self, client, create_promo):
        create_promo(code="SPRING", value="10")
        response = client.post("/promo-codes/validate", json={"code": "spring", "subtotal": "90.00"})
        body = response.json()
        assert body["valid"] is True
        assert Decimal(body["discount_amount"]) == Decimal("9.00")
        assert body["formatted_value"] == "10%"

    def test_invalid_code_is_not_an_error(self, client):
        response = client.post("/promo-codes/validate", json={"code": "NOPE", "subtotal": "90.00"})
        assert response.status_code == 200
        assert response.json() == {
            "valid": False,
            "code": None,
            "discount_amount": None,
            "formatted_value": None,
            "reason": "promo_code.invalid",
            "message": "This promo code does not exist",
        }
