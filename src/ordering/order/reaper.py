"""Stale order reaper: returns stock held by abandoned checkouts.

Designed to be triggered periodically by an external scheduler (cron, K8s
CronJob) via the maintenance API endpoint. Orders that are still pending and
unpaid after the reservation window are cancelled with reason
``payment_timeout``, which releases their reserved stock.
"""

import os
from datetime import UTC, datetime, timedelta

import structlog

from ordering.errors import OrderingError
from ordering.gateway.port import SUCCEEDED, GatewayError
from ordering.order.store import OrderStore
from ordering.order.workflow import OrderWorkflow

logger = structlog.get_logger(__name__)

TIMEOUT_REASON = "payment_timeout"


def reservation_ttl_from_env() -> timedelta:
    """Reservation window from ``RESERVATION_TTL_MINUTES`` (default 30)."""
    return timedelta(minutes=int(os.environ.get("RESERVATION_TTL_MINUTES", "30")))


class OrderReaper:
    def __init__(self, workflow: OrderWorkflow, store: OrderStore, ttl: timedelta | None = None) -> None:
        self.workflow = workflow
        self.store = store
        self.ttl = ttl if ttl is not None else reservation_ttl_from_env()

    def _paid_at_gateway(self, order) -> bool:
        """True when the intent succeeded, or its state cannot be read. Such orders are left alone."""
        if not order.payment_intent_id:
            return False
        try:
            intent = self.workflow.gateway.retrieve_intent(order.payment_intent_id)
        except GatewayError as exc:
            logger.warning(
                "Could not check payment before expiring order",
                order_id=str(order.id),
                intent_id=order.payment_intent_id,
                error=str(exc),
            )
            return True
        if intent.status == SUCCEEDED:
            logger.info(
                "Skipping stale order paid at the gateway",
                order_id=str(order.id),
                intent_id=order.payment_intent_id,
            )
            return True
        return False

    def expire_stale_orders(self, older_than: timedelta | None = None, as_of: datetime | None = None) -> list[str]:
        """Cancel unpaid pending orders older than the window.

        Returns the ids of the orders that were cancelled. An order that
        cannot be cancelled is logged and left for the next run.
        """
        as_of = as_of or datetime.now(UTC)
        window = older_than if older_than is not None else self.ttl
        cutoff = as_of - window

        logger.info(
            "Checking for stale orders",
            cutoff=cutoff.isoformat(),
            window_minutes=window.total_seconds() / 60,
        )

        stale = self.store.find_stale_pending(cutoff)
        if not stale:
            logger.info("No stale orders found")
            return []

        expired = []
        for order in stale:
            if self._paid_at_gateway(order):
                continue

            try:
                cancelled = self.workflow.cancel_order(
                    str(order.id),
                    reason=TIMEOUT_REASON,
                    is_admin=True,
                    payment_failed=True,
                )
            except OrderingError as exc:
                logger.warning(
                    "Failed to expire stale order",
                    order_id=str(order.id),
                    kind=exc.kind,
                    error=exc.message,
                )
                continue

            # Skipped when payment was confirmed after the query ran
            if cancelled.cancellation_reason == TIMEOUT_REASON:
                expired.append(str(order.id))
                logger.info(
                    "Expired stale order",
                    order_id=str(order.id),
                    order_number=order.order_number,
                    created_at=str(order.created_at),
                )

        logger.info("Stale order cleanup complete", expired_count=len(expired))
        return expired
