"""Wiring of the ordering collaborators.

One ``Services`` bundle is built per process: a single inventory ledger, the
repository-backed catalogue and order store, the payment gateway chosen by
``PAYMENT_GATEWAY``, and the workflow and reaper that use them.
"""

import os
import threading
from dataclasses import dataclass

from ordering.catalogue.port import ProductCatalog
from ordering.catalogue.repository_adapter import RepositoryProductCatalog
from ordering.gateway import PaymentGateway, build_gateway
from ordering.inventory.ledger import InventoryLedger
from ordering.order.reaper import OrderReaper
from ordering.order.repository import RepositoryOrderStore
from ordering.order.store import OrderStore
from ordering.order.workflow import OrderWorkflow, intent_payment_methods_from_env


@dataclass
class Services:
    ledger: InventoryLedger
    catalog: ProductCatalog
    store: OrderStore
    gateway: PaymentGateway
    workflow: OrderWorkflow
    reaper: OrderReaper


def build_services(gateway: PaymentGateway | None = None) -> Services:
    repository_lock = threading.RLock()  # The in-memory provider is not thread-safe
    ledger = InventoryLedger(lock=repository_lock)
    catalog = RepositoryProductCatalog(ledger, lock=repository_lock)
    store = RepositoryOrderStore(lock=repository_lock)
    gateway = gateway or build_gateway()
    workflow = OrderWorkflow(
        ledger,
        catalog,
        store,
        gateway,
        currency=os.environ.get("ORDER_CURRENCY", "usd").lower(),
        intent_payment_methods=intent_payment_methods_from_env(),
    )
    return Services(
        ledger=ledger,
        catalog=catalog,
        store=store,
        gateway=gateway,
        workflow=workflow,
        reaper=OrderReaper(workflow, store),
    )
