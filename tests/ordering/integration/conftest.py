import pytest
from fastapi.testclient import TestClient
from ordering.api import create_app
from ordering.services import Services

ADMIN = {"X-Role": "admin"}


@pytest.fixture()
def services(ledger, catalog, store, gateway, workflow, reaper):
    return Services(
        ledger=ledger,
        catalog=catalog,
        store=store,
        gateway=gateway,
        workflow=workflow,
        reaper=reaper,
    )


@pytest.fixture()
def client(services):
    return TestClient(create_app(services))


@pytest.fixture()
def create_product(client):
    def _create(name="Widget", price=2500, quantity=10):
        response = client.post(
            "/products",
            json={"name": name, "price": price, "quantity": quantity},
            headers=ADMIN,
        )
        assert response.status_code == 201
        return response.json()["product_id"]

    return _create


@pytest.fixture()
def order_payload(address):
    def _payload(product_id, quantity=1, payment_method="stripe"):
        return {
            "items": [{"product_id": product_id, "quantity": quantity}],
            "shipping_address": address,
            "payment_method": payment_method,
        }

    return _payload
