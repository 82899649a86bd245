import threading

import pytest
from ordering.catalogue.product import RegisterProduct
from ordering.catalogue.repository_adapter import RepositoryProductCatalog
from ordering.gateway import FakeGateway
from ordering.inventory.ledger import InventoryLedger
from ordering.order.reaper import OrderReaper
from ordering.order.repository import RepositoryOrderStore
from ordering.order.workflow import OrderWorkflow
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def ordering_bed():
    from ordering.domain import ordering

    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    """Push domain context before each test, cleanup after."""
    with ordering_bed.domain_context():
        yield

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        current_domain.event_store.store._data_reset()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------
@pytest.fixture()
def repository_lock():
    return threading.RLock()


@pytest.fixture()
def ledger(repository_lock):
    return InventoryLedger(lock=repository_lock)


@pytest.fixture()
def catalog(ledger, repository_lock):
    return RepositoryProductCatalog(ledger, lock=repository_lock)


@pytest.fixture()
def store(repository_lock):
    return RepositoryOrderStore(lock=repository_lock)


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def workflow(ledger, catalog, store, gateway):
    return OrderWorkflow(ledger, catalog, store, gateway)


@pytest.fixture()
def reaper(workflow, store):
    return OrderReaper(workflow, store)


# ---------------------------------------------------------------------------
# Data helpers
# ---------------------------------------------------------------------------
@pytest.fixture()
def address():
    return {
        "street": "123 Main St",
        "city": "Springfield",
        "state": "IL",
        "zip_code": "62701",
        "country": "US",
    }


@pytest.fixture()
def add_product(ledger):
    """Register a product in the catalogue and open its stock row."""

    def _add(name="Widget", price=2500, quantity=10, **kwargs):
        product_id = current_domain.process(
            RegisterProduct(name=name, price=price, **kwargs),
            asynchronous=False,
        )
        ledger.register(product_id, quantity)
        return product_id

    return _add


@pytest.fixture()
def place_order(workflow, address):
    """Place an order through the workflow with sensible defaults."""

    def _place(items, customer_id="cust-001", payment_method="stripe"):
        return workflow.create_order(
            customer_id=customer_id,
            items=items,
            shipping_address=address,
            payment_method=payment_method,
        )

    return _place
