"""Tests for the CatalogDiscount aggregate and discount selection."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from protean.exceptions import ValidationError
from storefront.discount.discount import CatalogDiscount, DiscountScope, DiscountType
from storefront.discount.resolver import select_discount

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _discount(**overrides):
    values = {
        "name": "Sale",
        "discount_type": DiscountType.PERCENTAGE.value,
        "value": "10",
        "scope": DiscountScope.ALL.value,
    }
    values.update(overrides)
    return CatalogDiscount.create(**values)


class TestCreation:
    def test_percentage_value_stored_in_hundredths(self):
        discount = _discount(value="12.5")
        assert discount.value_minor == 1250
        assert discount.value == Decimal("12.50")

    def test_percentage_above_hundred_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _discount(value="120")
        assert "value" in exc.value.messages

    def test_non_positive_value_rejected(self):
        with pytest.raises(ValidationError):
            _discount(value="0")

    def test_scoped_discount_needs_targets(self):
        with pytest.raises(ValidationError) as exc:
            _discount(scope=DiscountScope.BRANDS.value, target_ids=[])
        assert "target_ids" in exc.value.messages

    def test_window_must_be_ordered(self):
        with pytest.raises(ValidationError):
            _discount(starts_at=NOW, ends_at=NOW - timedelta(days=1))

    def test_fixed_amount_above_hundred_is_fine(self):
        discount = _discount(discount_type=DiscountType.FIXED.value, value="150")
        assert discount.value == Decimal("150.00")


class TestMatching:
    def test_all_scope_matches_everything(self, shirt, mug):
        discount = _discount()
        assert discount.matches(shirt)
        assert discount.matches(mug)

    def test_brand_scope_matches_parent_brand(self, shirt, mug):
        discount = _discount(scope=DiscountScope.BRANDS.value, target_ids=["brand-north-group"])
        assert discount.matches(shirt)
        assert not discount.matches(mug)

    def test_category_scope_matches_ancestor_category(self, shirt):
        discount = _discount(scope=DiscountScope.CATEGORIES.value, target_ids=["cat-apparel"])
        assert discount.matches(shirt)

    def test_product_scope(self, shirt, mug):
        discount = _discount(scope=DiscountScope.PRODUCTS.value, target_ids=["prod-mug"])
        assert discount.matches(mug)
        assert not discount.matches(shirt)


class TestWindow:
    def test_inactive_is_not_live(self):
        discount = _discount(is_active=False)
        assert not discount.is_live(NOW)

    def test_not_started(self):
        discount = _discount(starts_at=NOW + timedelta(hours=1))
        assert not discount.is_live(NOW)

    def test_ended(self):
        discount = _discount(ends_at=NOW - timedelta(seconds=1))
        assert not discount.is_live(NOW)

    def test_inside_window(self):
        discount = _discount(starts_at=NOW - timedelta(days=1), ends_at=NOW + timedelta(days=1))
        assert discount.is_live(NOW)


class TestAmountOff:
    def test_percentage_rounds_half_up(self):
        discount = _discount(value="15")
        assert discount.amount_off(Decimal("12.50")) == Decimal("1.88")

    def test_fixed_capped_at_unit_price(self):
        discount = _discount(discount_type=DiscountType.FIXED.value, value="20")
        assert discount.amount_off(Decimal("12.50")) == Decimal("12.50")


class TestSelection:
    def test_highest_priority_wins(self, shirt):
        low = _discount(name="Low", value="30", priority=1)
        high = _discount(name="High", value="5", priority=10)
        assert select_discount([low, high], shirt, NOW) is high

    def test_tie_goes_to_most_recently_created(self, shirt):
        older = _discount(name="Older")
        newer = _discount(name="Newer")
        older.created_at = NOW - timedelta(days=2)
        newer.created_at = NOW - timedelta(days=1)
        assert select_discount([newer, older], shirt, NOW) is newer

    def test_non_matching_and_expired_are_skipped(self, shirt):
        expired = _discount(name="Expired", priority=99, ends_at=NOW - timedelta(days=1))
        other_brand = _discount(
            name="Clay", priority=50, scope=DiscountScope.BRANDS.value, target_ids=["brand-clay"]
        )
        fallback = _discount(name="Fallback", priority=0)
        assert select_discount([expired, other_brand, fallback], shirt, NOW) is fallback

    def test_nothing_matches(self, mug):
        scoped = _discount(scope=DiscountScope.PRODUCTS.value, target_ids=["prod-shirt"])
        assert select_discount([scoped], mug, NOW) is None
