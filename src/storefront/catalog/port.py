"""Product catalog port.

The catalog (products, variants, brand and category trees) is owned by
another part of the application. Checkout only needs a priced snapshot of a
purchasable variant together with the ids used for discount matching.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class ProductSnapshot:
    """A purchasable variant as seen at checkout time.

    ``category_ids`` and ``brand_ids`` already include ancestor categories
    and the parent brand.
    """

    product_id: str
    variant_id: str
    name: str
    sku: str
    price: Decimal
    variant_label: str | None = None
    category_ids: frozenset[str] = field(default_factory=frozenset)
    brand_ids: frozenset[str] = field(default_factory=frozenset)


class ProductCatalog(ABC):
    """Abstract catalog lookup."""

    @abstractmethod
    def get_variant(self, product_id: str, variant_id: str) -> ProductSnapshot | None:
        """Return the variant snapshot, or None when it does not exist or is not sellable."""
        ...
