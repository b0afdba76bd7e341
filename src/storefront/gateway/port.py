"""Payment gateway port (abstract interface).

Defines the contract for starting a payment: given a placed order, produce
the URL of the gateway-hosted payment page. Incoming webhooks and callbacks
are parsed separately, in ``storefront.payment``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from storefront.order.order import Order


@dataclass(frozen=True)
class PaymentRedirect:
    """Where to send the shopper to pay."""

    url: str
    gateway_session_id: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    name: str

    @abstractmethod
    def create_payment_redirect(self, order: Order) -> PaymentRedirect:
        """Create a hosted payment page for ``order`` and return its URL."""
        ...
