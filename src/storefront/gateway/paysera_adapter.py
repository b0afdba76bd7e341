"""Paysera gateway: builds a signed redirect to the Paysera payment page.

No API call is involved: the request is a signed URL the shopper's browser
follows. ``orderid`` carries the payment reference.
"""

from urllib.parse import urlencode

from storefront.domain import logger
from storefront.errors import PaymentInitiationFailed
from storefront.gateway import paysera_codec
from storefront.gateway.port import PaymentGateway, PaymentRedirect
from storefront.order.order import Order
from storefront.utils.settings import Settings, get_settings


class PayseraGateway(PaymentGateway):
    name = "paysera"

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def request_params(self, order: Order) -> dict:
        settings = self.settings
        address = order.billing_address or order.shipping_address
        return {
            "projectid": settings.paysera_project_id,
            "orderid": order.payment_reference,
            "amount": order.pricing.total,
            "currency": order.pricing.currency,
            "accepturl": f"{settings.base_url}/payments/paysera/accept",
            "cancelurl": f"{settings.base_url}/payments/paysera/cancel",
            "callbackurl": f"{settings.base_url}/payments/paysera/callback",
            "version": paysera_codec.PROTOCOL_VERSION,
            "test": 1 if settings.paysera_test_mode else 0,
            "p_email": order.customer_email,
            "p_firstname": address.first_name if address else None,
            "p_lastname": address.last_name if address else None,
            "p_countrycode": address.country if address else None,
            "country": "LT",
            "paytext": f"Order {order.payment_reference}",
        }

    def create_payment_redirect(self, order: Order) -> PaymentRedirect:
        if not self.settings.paysera_sign_password:
            raise PaymentInitiationFailed("Paysera payments are not configured")
        data = paysera_codec.encode_data(self.request_params(order))
        signature = paysera_codec.sign(data, self.settings.paysera_sign_password)
        url = f"{self.settings.paysera_pay_url}?{urlencode({'data': data, 'sign': signature})}"

        logger.info("Paysera redirect built", order_id=str(order.id), payment_reference=order.payment_reference)
        return PaymentRedirect(url=url)
