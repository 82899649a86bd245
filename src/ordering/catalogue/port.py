"""Product catalogue port (abstract interface).

The checkout only ever reads from the catalogue: name and current price of a
product, plus a snapshot of its stock levels when the ledger knows it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ordering.inventory.stock import StockLevels


@dataclass(frozen=True)
class CatalogProduct:
    """Read model of a sellable product."""

    product_id: str
    name: str
    price: int  # Minor currency units
    currency: str
    inventory: StockLevels | None = None


class ProductCatalog(ABC):
    """Abstract product catalogue interface."""

    @abstractmethod
    def find_by_id(self, product_id: str) -> CatalogProduct:
        """Return the product, or raise ``NotFound`` if it cannot be sold."""
        ...
