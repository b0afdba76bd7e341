import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    from storefront.catalog import reset_catalog
    from storefront.discount.resolver import invalidate_discount_cache
    from storefront.gateway import FakeGateway, reset_gateways, set_gateway
    from storefront.notification import reset_email_channel
    from storefront.utils.settings import reset_settings

    with storefront_bed.domain_context():
        set_gateway("stripe", FakeGateway("stripe"))
        set_gateway("paysera", FakeGateway("paysera"))

        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()

        invalidate_discount_cache()
        reset_gateways()
        reset_email_channel()
        reset_catalog()
        reset_settings()


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
@pytest.fixture()
def catalog():
    from storefront.catalog import set_catalog
    from storefront.catalog.memory_adapter import InMemoryCatalog

    catalog = InMemoryCatalog()
    catalog.add_variant(
        "prod-shirt",
        "var-shirt-m",
        name="Linen shirt",
        sku="SHIRT-LIN-M",
        price="100.00",
        variant_label="M",
        category_ids={"cat-shirts", "cat-apparel"},
        brand_ids={"brand-north", "brand-north-group"},
    )
    catalog.add_variant(
        "prod-mug",
        "var-mug",
        name="Ceramic mug",
        sku="MUG-01",
        price="12.50",
        category_ids={"cat-kitchen"},
        brand_ids={"brand-clay"},
    )
    set_catalog(catalog)
    return catalog


@pytest.fixture()
def shirt(catalog):
    return catalog.get_variant("prod-shirt", "var-shirt-m")


@pytest.fixture()
def mug(catalog):
    return catalog.get_variant("prod-mug", "var-mug")


# ---------------------------------------------------------------------------
# Discounts and promotional codes
# ---------------------------------------------------------------------------
@pytest.fixture()
def create_discount():
    import json

    from storefront.discount.management import CreateCatalogDiscount

    def _create(name="Spring sale", discount_type="percentage", value="10", scope="all", target_ids=(), **kwargs):
        return current_domain.process(
            CreateCatalogDiscount(
                name=name,
                discount_type=discount_type,
                value=str(value),
                scope=scope,
                target_ids=json.dumps(list(target_ids)),
                **kwargs,
            ),
            asynchronous=False,
        )

    return _create


@pytest.fixture()
def create_promo():
    from storefront.promotion.management import CreatePromotionalCode

    def _create(code="WELCOME2026", discount_type="percentage", value="12", **kwargs):
        return current_domain.process(
            CreatePromotionalCode(code=code, discount_type=discount_type, value=str(value), **kwargs),
            asynchronous=False,
        )

    return _create


@pytest.fixture()
def load_promo():
    from storefront.promotion.code import PromotionalCode

    def _load(code_id):
        return current_domain.repository_for(PromotionalCode)._dao.get(code_id)

    return _load


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
@pytest.fixture()
def shipping_address():
    return {
        "first_name": "Jane",
        "last_name": "Doe",
        "street": "Gedimino pr. 1",
        "city": "Vilnius",
        "postal_code": "01103",
        "country": "LT",
        "phone": "+37060000000",
    }


@pytest.fixture()
def make_submission(catalog, shipping_address):
    from storefront.checkout.checkout import CheckoutLine, CheckoutSubmission

    def _make(**overrides):
        values = {
            "email": "jane@example.com",
            "shipping_address": dict(shipping_address),
            "items": [CheckoutLine(product_id="prod-shirt", variant_id="var-shirt-m", quantity=1)],
            "shipping_method": "venipak-courier",
            "payment_method": "stripe",
            "user_id": "user-1",
            "session_token": "session-token-1",
        }
        values.update(overrides)
        return CheckoutSubmission(**values)

    return _make


@pytest.fixture()
def orchestrator(catalog):
    from storefront.checkout.checkout import CheckoutOrchestrator

    return CheckoutOrchestrator()


@pytest.fixture()
def place_pending_order(orchestrator, make_submission):
    """Run a full checkout and return the id of the resulting pending order."""

    def _place(**overrides):
        return orchestrator.checkout(make_submission(**overrides)).order_id

    return _place


@pytest.fixture()
def load_order():
    from storefront.order.order import Order

    def _load(order_id):
        return current_domain.repository_for(Order)._dao.get(order_id)

    return _load


@pytest.fixture()
def emails():
    from storefront.notification import get_email_channel

    return get_email_channel()
