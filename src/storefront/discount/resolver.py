"""Catalog discount resolution.

Given a product snapshot and a timestamp, select the one catalog discount
that applies to it: highest priority first, most recently created on ties.
The active discount list is cached for a short TTL and invalidated whenever
a discount is created, updated or removed.
"""

import threading
import time
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from protean.utils.globals import current_domain

from storefront.catalog.port import ProductSnapshot
from storefront.discount.discount import CatalogDiscount
from storefront.domain import logger
from storefront.pricing.money import ZERO
from storefront.utils.clock import as_utc, utcnow
from storefront.utils.settings import get_settings


@dataclass(frozen=True)
class AppliedDiscount:
    """The outcome of resolving one item against the catalog."""

    discount_id: str
    name: str
    discount_type: str
    value: Decimal
    unit_amount: Decimal


_MAX_DISCOUNTS = 1000


class _ActiveDiscountCache:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._loaded_at: float | None = None
        self._discounts: list[CatalogDiscount] = []

    def get(self, ttl: int) -> list[CatalogDiscount]:
        with self._lock:
            fresh = self._loaded_at is not None and time.monotonic() - self._loaded_at < ttl
            if not fresh:
                repo = current_domain.repository_for(CatalogDiscount)
                self._discounts = repo._dao.query.filter(is_active=True).limit(_MAX_DISCOUNTS).all().items
                self._loaded_at = time.monotonic()
                logger.debug("Active discount cache loaded", count=len(self._discounts))
            return list(self._discounts)

    def clear(self) -> None:
        with self._lock:
            self._loaded_at = None
            self._discounts = []


_cache = _ActiveDiscountCache()


def invalidate_discount_cache() -> None:
    _cache.clear()


def active_discounts() -> list[CatalogDiscount]:
    return _cache.get(get_settings().discount_cache_ttl_seconds)


def select_discount(
    discounts: list[CatalogDiscount],
    product: ProductSnapshot,
    at: datetime,
) -> CatalogDiscount | None:
    """Pick the winning discount for ``product`` among ``discounts``."""
    matching = [d for d in discounts if d.is_live(at) and d.matches(product)]
    if not matching:
        return None
    return max(matching, key=lambda d: (d.priority, as_utc(d.created_at)))


def resolve_discount(product: ProductSnapshot, at: datetime | None = None) -> AppliedDiscount | None:
    """Resolve the catalog discount applicable to one unit of ``product``."""
    at = at or utcnow()
    discount = select_discount(active_discounts(), product, at)
    if discount is None:
        return None

    unit_amount = discount.amount_off(product.price)
    if unit_amount == ZERO:
        return None

    return AppliedDiscount(
        discount_id=str(discount.id),
        name=discount.name,
        discount_type=discount.discount_type,
        value=discount.value,
        unit_amount=unit_amount,
    )
