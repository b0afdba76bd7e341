import json

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain
from storefront.discount.discount import CatalogDiscount
from storefront.discount.management import DeleteCatalogDiscount, UpdateCatalogDiscount
from storefront.discount.resolver import active_discounts, resolve_discount
from storefront.utils.clock import utcnow


class TestCatalogDiscountManagement:
    def test_create_persists_scope_targets(self, create_discount):
        discount_id = create_discount(value="15", scope="products", target_ids=["prod-mug"])
        discount = current_domain.repository_for(CatalogDiscount).get(discount_id)
        assert discount.scope == "products"
        assert json.loads(discount.target_ids) == ["prod-mug"]

    def test_percentage_above_hundred_rejected(self, create_discount):
        with pytest.raises(ValidationError) as exc:
            create_discount(value="120")
        assert "value" in exc.value.messages

    def test_scoped_discount_needs_targets(self, create_discount):
        with pytest.raises(ValidationError):
            create_discount(value="10", scope="categories", target_ids=[])

    def test_update_invalidates_cache(self, create_discount, shirt):
        discount_id = create_discount(value="10")
        assert resolve_discount(shirt, utcnow()).value == 10

        current_domain.process(UpdateCatalogDiscount(discount_id=discount_id, value="30"), asynchronous=False)

        assert resolve_discount(shirt, utcnow()).unit_amount == 30

    def test_delete_removes_discount(self, create_discount, shirt):
        discount_id = create_discount(value="10")
        assert len(active_discounts()) == 1

        current_domain.process(DeleteCatalogDiscount(discount_id=discount_id), asynchronous=False)

        assert active_discounts() == []
        assert resolve_discount(shirt, utcnow()) is None
        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(CatalogDiscount).get(discount_id)
