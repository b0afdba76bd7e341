"""In-memory product catalog for development and tests."""

from decimal import Decimal

from storefront.catalog.port import ProductCatalog, ProductSnapshot


class InMemoryCatalog(ProductCatalog):
    def __init__(self) -> None:
        self._variants: dict[tuple[str, str], ProductSnapshot] = {}

    def add_variant(
        self,
        product_id: str,
        variant_id: str,
        name: str,
        sku: str,
        price: Decimal | str,
        variant_label: str | None = None,
        category_ids: set[str] | None = None,
        brand_ids: set[str] | None = None,
    ) -> ProductSnapshot:
        snapshot = ProductSnapshot(
            product_id=product_id,
            variant_id=variant_id,
            name=name,
            sku=sku,
            price=Decimal(price),
            variant_label=variant_label,
            category_ids=frozenset(category_ids or ()),
            brand_ids=frozenset(brand_ids or ()),
        )
        self._variants[(product_id, variant_id)] = snapshot
        return snapshot

    def get_variant(self, product_id: str, variant_id: str) -> ProductSnapshot | None:
        return self._variants.get((product_id, variant_id))
