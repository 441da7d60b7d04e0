import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_configure(config):
    """Select the config overlay before the domain module is first imported."""
    os.environ["PROTEAN_ENV"] = config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def commerce_bed():
    from commerce.domain import commerce
    from commerce.utils.db import drop_db, setup_db

    bed = DomainFixture(commerce)
    bed.setup()
    setup_db(commerce)
    yield bed
    drop_db(commerce)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(commerce_bed):
    with commerce_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def counters():
    """Start every test with empty stock, usage and sequence counters."""
    from commerce.inventory.counters import get_counter_store

    store = get_counter_store()
    store.flush()
    yield store
    store.flush()


@pytest.fixture(autouse=True)
def settlement():
    from commerce.checkout.settlement import MockSettlement, reset_settlement, set_settlement

    mock = MockSettlement()
    set_settlement(mock)
    yield mock
    reset_settlement()


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    from protean.utils.globals import current_domain

    from commerce.catalogue.registration import RegisterProduct

    def _make(**overrides):
        defaults = {
            "name": "Trail Runner",
            "slug": "trail-runner",
            "base_price": 60.0,
            "initial_stock": 10,
        }
        defaults.update(overrides)
        return current_domain.process(RegisterProduct(**defaults), asynchronous=False)

    return _make


@pytest.fixture()
def make_variant():
    import json

    from protean.utils.globals import current_domain

    from commerce.catalogue.registration import AddProductVariant

    def _make(product_id, **overrides):
        defaults = {
            "product_id": product_id,
            "sku": "TR-42-BLK",
            "price": 65.0,
            "options": json.dumps({"size": "42", "color": "Black"}),
            "initial_stock": 5,
        }
        defaults.update(overrides)
        return current_domain.process(AddProductVariant(**defaults), asynchronous=False)

    return _make


@pytest.fixture()
def make_discount():
    from protean.utils.globals import current_domain

    from commerce.discount.management import CreateDiscount

    def _make(**overrides):
        defaults = {
            "name": "Ten percent off",
            "code": "SAVE10",
            "discount_type": "percentage",
            "value": 10.0,
        }
        defaults.update(overrides)
        return current_domain.process(CreateDiscount(**defaults), asynchronous=False)

    return _make


@pytest.fixture()
def customer_details():
    return {
        "customer": {"email": "jane@example.com", "first_name": "Jane", "last_name": "Doe"},
        "shipping_address": {
            "full_name": "Jane Doe",
            "address_line1": "123 Main St",
            "city": "Springfield",
            "state": "IL",
            "postal_code": "62701",
            "country": "US",
        },
    }
