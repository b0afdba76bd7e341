"""Storefront bounded context: pricing, checkout and payment reconciliation.

Turns a cart into a durable order, prices it with catalog discounts and
promotional codes, and reconciles the order against webhook notifications
from two payment gateways.
"""

import structlog
from protean.domain import Domain

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
