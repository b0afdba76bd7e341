"""Shipping rate table.

Rates depend on destination region and carrier method. Lithuania ships free
above a subtotal threshold (measured after catalog discounts).
"""

from decimal import Decimal
from enum import Enum

from protean.exceptions import ValidationError


class ShippingMethod(Enum):
    VENIPAK_COURIER = "venipak-courier"
    VENIPAK_PICKUP = "venipak-pickup"
    FEDEX_COURIER = "fedex-courier"


BALTIC = {"LT", "LV", "EE"}
NEARBY = {"PL", "FI"}
EUROPE = {
    "AT", "BE", "BG", "HR", "CY", "CZ", "DK", "FR", "DE", "GR",
    "HU", "IE", "IT", "LU", "MT", "NL", "PT", "RO", "SK", "SI",
    "ES", "SE", "GB", "NO", "CH",
}  # fmt: skip
NORTH_AMERICA = {"US", "CA"}

DOMESTIC_RATE = Decimal("4.00")
NEARBY_RATE = Decimal("4.00")
FEDEX_RATE = Decimal("20.00")
FREE_SHIPPING_COUNTRY = "LT"
FREE_SHIPPING_THRESHOLD = Decimal("50.00")


def allowed_methods(country: str) -> set[ShippingMethod]:
    country = country.upper()
    if country in BALTIC:
        return {ShippingMethod.VENIPAK_COURIER, ShippingMethod.VENIPAK_PICKUP}
    if country in NEARBY:
        return {ShippingMethod.VENIPAK_COURIER}
    if country in EUROPE or country in NORTH_AMERICA:
        return {ShippingMethod.FEDEX_COURIER}
    return set()


def shipping_rate(country: str, method: str, subtotal: Decimal) -> Decimal:
    """Shipping cost for ``method`` to ``country`` given the discounted subtotal."""
    country = (country or "").upper()
    methods = allowed_methods(country)
    if not methods:
        raise ValidationError({"shipping_country": [f"Shipping to {country or 'this country'} is not available"]})

    try:
        selected = ShippingMethod(method)
    except ValueError:
        raise ValidationError({"shipping_method": [f"Unknown shipping method {method!r}"]}) from None
    if selected not in methods:
        raise ValidationError({"shipping_method": [f"{selected.value} does not ship to {country}"]})

    if country in BALTIC:
        if country == FREE_SHIPPING_COUNTRY and subtotal >= FREE_SHIPPING_THRESHOLD:
            return Decimal("0.00")
        return DOMESTIC_RATE
    if country in NEARBY:
        return NEARBY_RATE
    return FEDEX_RATE
