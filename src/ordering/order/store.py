"""Order store port (abstract interface).

Durable persistence for orders. Implementations enforce that no two orders
share an order number; a collision surfaces as ``DuplicateOrderNumber`` so
the caller can pick a new number and try again.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from ordering.order.order import Order


@dataclass
class OrderPage:
    orders: list[Order]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


class OrderStore(ABC):
    """Abstract order persistence interface."""

    @abstractmethod
    def save(self, order: Order) -> Order:
        """Insert or update an order. Raises ``DuplicateOrderNumber`` on collision."""
        ...

    @abstractmethod
    def find_by_id(self, order_id: str) -> Order:
        """Return the order, or raise ``NotFound``."""
        ...

    @abstractmethod
    def find_by_order_number(self, order_number: str) -> Order | None: ...

    @abstractmethod
    def find_by_customer(self, customer_id: str) -> list[Order]:
        """Orders placed by a customer, newest first."""
        ...

    @abstractmethod
    def find_all(self, status: str | None = None) -> list[Order]:
        """All orders, optionally narrowed to one order status, newest first."""
        ...

    @abstractmethod
    def find_page(self, status: str | None = None, page: int = 1, limit: int = 20) -> OrderPage:
        """One page of orders, newest first, with the total across all pages."""
        ...

    @abstractmethod
    def find_stale_pending(self, cutoff: datetime) -> list[Order]:
        """Unpaid pending orders created at or before ``cutoff``."""
        ...
