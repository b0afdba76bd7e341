import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests.

    Selects the config overlay, sets the gateway test secrets and makes
    confirmation emails go out inline, so tests can assert on them without
    waiting for the dispatcher.
    """
    os.environ["PROTEAN_ENV"] = session.config.option.env
    os.environ["STOREFRONT_ENVIRONMENT"] = "test"
    os.environ["STOREFRONT_NOTIFICATION_DISPATCH"] = "inline"
    os.environ["STOREFRONT_STRIPE_WEBHOOK_SECRET"] = "whsec_test"
    os.environ["STOREFRONT_PAYSERA_SIGN_PASSWORD"] = "paysera-test-password"

    from storefront.utils.settings import reset_settings

    reset_settings()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
