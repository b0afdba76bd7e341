"""Configurable fake payment gateway for development and testing.

Simulates a hosted payment page without any external calls. It can be
configured at runtime to fail, which leaves the order in draft for the
expiry sweep to reclaim.
"""

from uuid import uuid4

from storefront.errors import PaymentInitiationFailed
from storefront.gateway.port import PaymentGateway, PaymentRedirect
from storefront.order.order import Order


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self, name: str = "fake") -> None:
        self.name = name
        self.should_succeed: bool = True
        self.failure_reason: str = "Gateway unavailable"
        self.calls: list[dict] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def create_payment_redirect(self, order: Order) -> PaymentRedirect:
        self.calls.append(
            {
                "method": "create_payment_redirect",
                "order_id": str(order.id),
                "payment_reference": order.payment_reference,
                "amount": order.pricing.total,
                "currency": order.pricing.currency,
            }
        )

        if not self.should_succeed:
            raise PaymentInitiationFailed(self.failure_reason)

        session_id = f"fake_sess_{uuid4().hex[:12]}"
        return PaymentRedirect(
            url=f"https://pay.example.test/{self.name}/{session_id}",
            gateway_session_id=session_id,
        )
