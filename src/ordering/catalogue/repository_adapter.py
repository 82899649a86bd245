"""Product catalogue backed by the Product aggregate repository."""

import threading

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.catalogue.port import CatalogProduct, ProductCatalog
from ordering.catalogue.product import Product
from ordering.errors import NotFound
from ordering.inventory.ledger import InventoryLedger


class RepositoryProductCatalog(ProductCatalog):
    def __init__(self, ledger: InventoryLedger | None = None, lock=None) -> None:
        self.ledger = ledger
        self._lock = lock or threading.RLock()  # Shared with the order store

    def find_by_id(self, product_id: str) -> CatalogProduct:
        try:
            with self._lock:
                product = current_domain.repository_for(Product).get(str(product_id))
        except ObjectNotFoundError:
            raise NotFound("Product", str(product_id)) from None

        if not product.is_active:
            raise NotFound("Product", str(product_id))

        inventory = None
        if self.ledger is not None and self.ledger.knows(product.id):
            inventory = self.ledger.snapshot(product.id)

        return CatalogProduct(
            product_id=str(product.id),
            name=product.name,
            price=product.price,
            currency=product.currency,
            inventory=inventory,
        )
