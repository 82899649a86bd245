"""Ordering bounded context: Order Checkout against a shared Inventory Ledger.

Handles the order lifecycle (reserve stock, confirm payment, commit or
release reservations), the product catalogue read path, and the stale order
reaper that returns abandoned reservations to the shelf.
"""

import structlog
from protean.domain import Domain

ordering = Domain(name="ordering")

logger = structlog.get_logger(__name__)
