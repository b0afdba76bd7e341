"""Storefront API package."""

from storefront.api.routes import admin_router, checkout_router, payments_router, promo_router

__all__ = ["admin_router", "checkout_router", "payments_router", "promo_router"]
