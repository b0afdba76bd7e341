"""Payment gateway registry.

Provides get_gateway() / set_gateway() to swap implementations per gateway
name:
- StripeGateway ("stripe") and PayseraGateway ("paysera") by default
- FakeGateway for development and testing
"""

from storefront.gateway.fake_adapter import FakeGateway
from storefront.gateway.paysera_adapter import PayseraGateway
from storefront.gateway.port import PaymentGateway, PaymentRedirect
from storefront.gateway.stripe_adapter import StripeGateway

__all__ = [
    "FakeGateway",
    "PaymentGateway",
    "PaymentRedirect",
    "PayseraGateway",
    "StripeGateway",
    "get_gateway",
    "reset_gateways",
    "set_gateway",
    "supported_gateways",
]

_DEFAULTS = {
    StripeGateway.name: StripeGateway,
    PayseraGateway.name: PayseraGateway,
}

_gateways: dict[str, PaymentGateway] = {}


def supported_gateways() -> set[str]:
    return set(_DEFAULTS)


def get_gateway(name: str) -> PaymentGateway:
    """Return the gateway registered under ``name``."""
    if name not in _gateways:
        if name not in _DEFAULTS:
            raise ValueError(f"Unknown payment gateway: {name}")
        _gateways[name] = _DEFAULTS[name]()
    return _gateways[name]


def set_gateway(name: str, gateway: PaymentGateway) -> None:
    """Override the gateway used for ``name`` (useful for tests)."""
    _gateways[name] = gateway


def reset_gateways() -> None:
    """Reset to default gateways."""
    _gateways.clear()
