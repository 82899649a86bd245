"""Inventory ledger: the single owner of per-product stock counters.

Counters are persisted as ``InventoryItem`` aggregates. Every mutation loads
the item, checks and changes it, and adds it back while holding that
product's own lock, so two orders racing for the last units of a product
cannot both pass the availability check. Orders for different products never
contend.

The ledger never calls out to the network. Callers that talk to the payment
gateway must do so before or after a ledger call, never from inside one.
"""

import threading

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from ordering.errors import InsufficientInventory, NotFound
from ordering.inventory.stock import InventoryItem, StockLevels
from ordering.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)


def _require_positive(quantity):
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError({"quantity": [f"Quantity must be a positive integer, got {quantity!r}"]})


class InventoryLedger:
    """Per-product stock counters with atomic reserve, release, commit and adjust."""

    def __init__(self, lock=None) -> None:
        self._locks = KeyedLocks()
        self._repository_lock = lock or threading.RLock()  # Shared with the order store

    # -------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------
    def _load(self, key) -> InventoryItem:
        try:
            with self._repository_lock:
                return current_domain.repository_for(InventoryItem).get(key)
        except ObjectNotFoundError:
            raise NotFound("Inventory for product", key) from None

    def _store(self, item: InventoryItem) -> None:
        with self._repository_lock:
            current_domain.repository_for(InventoryItem).add(item)

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def snapshot(self, product_id) -> StockLevels:
        """Return the current stock levels for a product."""
        return self._load(str(product_id)).levels

    def knows(self, product_id) -> bool:
        try:
            self._load(str(product_id))
        except NotFound:
            return False
        return True

    # -------------------------------------------------------------------
    # Stock intake
    # -------------------------------------------------------------------
    def register(self, product_id, quantity=0) -> StockLevels:
        """Open a counter row for a product with an initial quantity."""
        return self.adjust(product_id, absolute=quantity)

    def adjust(self, product_id, delta=None, absolute=None) -> StockLevels:
        """Administrative restock.

        ``delta`` adds to the owned quantity, ``absolute`` replaces it. The
        result may not fall below what is currently reserved.
        """
        if (delta is None) == (absolute is None):
            raise ValidationError({"quantity": ["Provide exactly one of delta or absolute"]})

        key = str(product_id)
        with self._locks.hold(key):
            try:
                item = self._load(key)
            except NotFound:
                item = InventoryItem.open(key)
            previous_quantity = item.quantity
            levels = item.restock(item.quantity + delta if delta is not None else absolute)
            self._store(item)

        logger.info(
            "Stock adjusted",
            product_id=key,
            previous_quantity=previous_quantity,
            new_quantity=levels.quantity,
            available=levels.available,
        )
        return levels

    # -------------------------------------------------------------------
    # Reservations
    # -------------------------------------------------------------------
    def try_reserve(self, product_id, quantity) -> StockLevels:
        """Hold ``quantity`` units if that many are available; otherwise change nothing."""
        _require_positive(quantity)
        key = str(product_id)
        with self._locks.hold(key):
            item = self._load(key)
            try:
                levels = item.reserve(quantity)
            except InsufficientInventory as exc:
                logger.warning("Reservation refused", product_id=key, requested=quantity, available=exc.available)
                raise
            self._store(item)

        logger.debug("Stock reserved", product_id=key, quantity=quantity, available=levels.available)
        return levels

    def release(self, product_id, quantity) -> StockLevels:
        """Return reserved units to available. Releasing more than is reserved is refused."""
        _require_positive(quantity)
        key = str(product_id)
        with self._locks.hold(key):
            item = self._load(key)
            levels = item.release(quantity)
            self._store(item)

        logger.debug("Reservation released", product_id=key, quantity=quantity, available=levels.available)
        return levels

    def commit(self, product_id, quantity) -> StockLevels:
        """Turn reserved units into a sale, removing them from owned quantity."""
        _require_positive(quantity)
        key = str(product_id)
        with self._locks.hold(key):
            item = self._load(key)
            levels = item.commit(quantity)
            self._store(item)

        logger.debug("Stock committed", product_id=key, quantity=quantity, remaining=levels.quantity)
        return levels
