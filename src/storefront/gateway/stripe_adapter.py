"""Stripe Checkout gateway: starts a hosted checkout session.

The session is charged the order total as a single line so that the amount
collected always equals the amount the pricing engine computed. The
payment reference travels in ``client_reference_id`` and in metadata on both
the session and its payment intent, so webhooks can be matched back.
"""

import stripe

from storefront.domain import logger
from storefront.errors import PaymentInitiationFailed
from storefront.gateway.port import PaymentGateway, PaymentRedirect
from storefront.order.order import Order
from storefront.utils.settings import Settings, get_settings


class StripeGateway(PaymentGateway):
    name = "stripe"

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def _session_params(self, order: Order) -> dict:
        settings = self.settings
        metadata = {
            "payment_reference": order.payment_reference,
            "order_id": str(order.id),
        }
        success_path = settings.payment_success_path.format(reference=order.payment_reference)
        return {
            "mode": "payment",
            "customer_email": order.customer_email,
            "client_reference_id": order.payment_reference,
            "line_items": [
                {
                    "price_data": {
                        "currency": order.pricing.currency.lower(),
                        "product_data": {"name": f"Order {order.payment_reference}"},
                        "unit_amount": order.pricing.total,
                    },
                    "quantity": 1,
                }
            ],
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
            "success_url": f"{settings.base_url}{success_path}",
            "cancel_url": f"{settings.base_url}{settings.payment_cancel_path}",
        }

    def create_payment_redirect(self, order: Order) -> PaymentRedirect:
        try:
            session = stripe.checkout.Session.create(
                api_key=self.settings.stripe_secret_key,
                idempotency_key=f"checkout-{order.payment_reference}",
                **self._session_params(order),
            )
        except stripe.StripeError as exc:
            logger.error(
                "Stripe checkout session failed",
                order_id=str(order.id),
                payment_reference=order.payment_reference,
                error=str(exc),
            )
            raise PaymentInitiationFailed("Card payments are temporarily unavailable") from exc

        logger.info(
            "Stripe checkout session created",
            order_id=str(order.id),
            session_id=session.id,
        )
        return PaymentRedirect(url=session.url, gateway_session_id=session.id)
