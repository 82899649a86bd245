"""Application tests for OrderWorkflow.cancel_order."""

import json

import pytest
from ordering.errors import InternalError, InvalidTransition, NotFound, Unauthorized
from ordering.inventory.ledger import InventoryLedger
from ordering.order.order import Order, OrderStatus, PaymentStatus, ReservationState
from ordering.order.workflow import OrderWorkflow
from protean import current_domain
from protean.exceptions import ValidationError


def _levels(ledger, product_id):
    levels = ledger.snapshot(product_id)
    return levels.quantity, levels.reserved, levels.available


@pytest.fixture()
def product_id(add_product):
    return add_product(quantity=10)


@pytest.fixture()
def order(product_id, place_order):
    return place_order([{"product_id": product_id, "quantity": 3}])


class TestCancelPendingOrder:
    def test_releases_reserved_stock(self, order, product_id, workflow, ledger, store):
        cancelled = workflow.cancel_order(order.id, requester_id="cust-001")

        assert cancelled.order_status == OrderStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "customer_request"
        assert _levels(ledger, product_id) == (10, 0, 10)
        stored = store.find_by_id(order.id)
        assert stored.is_cancelled
        assert stored.items[0].reservation_state == ReservationState.RELEASED.value

    def test_cancel_twice_releases_once(self, order, product_id, workflow, ledger, place_order):
        other = place_order([{"product_id": product_id, "quantity": 2}])

        workflow.cancel_order(order.id, requester_id="cust-001")
        again = workflow.cancel_order(order.id, requester_id="cust-001")

        assert again.is_cancelled
        # The second order's reservation is untouched by the repeat
        assert _levels(ledger, product_id) == (10, 2, 8)
        assert not workflow.get_order(other.id, is_admin=True).is_cancelled

    def test_only_owner_can_cancel(self, order, product_id, workflow, ledger):
        with pytest.raises(Unauthorized):
            workflow.cancel_order(order.id, requester_id="cust-999")
        assert _levels(ledger, product_id) == (10, 3, 7)

    def test_admin_can_cancel_any_order(self, order, workflow):
        cancelled = workflow.cancel_order(order.id, reason="fraud_check", is_admin=True)
        assert cancelled.cancellation_reason == "fraud_check"

    def test_unknown_order(self, workflow):
        with pytest.raises(NotFound):
            workflow.cancel_order("ord-missing", is_admin=True)

    def test_cancellation_event_stored(self, order, workflow):
        workflow.cancel_order(order.id, requester_id="cust-001")

        messages = current_domain.event_store.store.read("ordering::order")
        cancelled = [
            m
            for m in messages
            if m.metadata and m.metadata.headers and m.metadata.headers.type == "Ordering.OrderCancelled.v1"
        ]
        assert len(cancelled) == 1
        assert json.loads(cancelled[0].data["released_items"])[0]["quantity"] == 3


class TestCancelPaidOrder:
    def test_refunds_and_keeps_sold_stock(self, order, product_id, workflow, gateway, ledger):
        gateway.mark_succeeded(order.payment_intent_id)
        workflow.confirm_payment(order.id, "cust-001")

        cancelled = workflow.cancel_order(order.id, requester_id="cust-001")

        assert cancelled.payment_status == PaymentStatus.REFUNDED.value
        assert _levels(ledger, product_id) == (7, 0, 7)

    def test_shipped_order_cannot_be_cancelled(self, order, workflow, gateway):
        gateway.mark_succeeded(order.payment_intent_id)
        workflow.confirm_payment(order.id, "cust-001")
        workflow.update_order_status(order.id, OrderStatus.SHIPPED.value)

        with pytest.raises(InvalidTransition):
            workflow.cancel_order(order.id, requester_id="cust-001")


class TestCancelForFailedPayment:
    def test_unpaid_order_marked_failed(self, order, workflow):
        cancelled = workflow.cancel_order(order.id, reason="payment_timeout", is_admin=True, payment_failed=True)
        assert cancelled.payment_status == PaymentStatus.FAILED.value

    def test_paid_order_left_alone(self, order, workflow, gateway):
        gateway.mark_succeeded(order.payment_intent_id)
        workflow.confirm_payment(order.id, "cust-001")

        result = workflow.cancel_order(order.id, reason="payment_timeout", is_admin=True, payment_failed=True)

        assert result.is_paid
        assert result.order_status == OrderStatus.PROCESSING.value


class TestCancellationSettlesStockOnce:
    @pytest.fixture()
    def other(self, order, product_id, place_order):
        return place_order([{"product_id": product_id, "quantity": 2}])

    def test_overlong_reason_rejected_before_release(self, order, other, product_id, workflow, ledger, store):
        with pytest.raises(ValidationError) as exc:
            workflow.cancel_order(order.id, requester_id="cust-001", reason="x" * 501)

        assert "reason" in exc.value.messages
        assert _levels(ledger, product_id) == (10, 5, 5)
        assert store.find_by_id(order.id).order_status == OrderStatus.PENDING.value

        workflow.cancel_order(order.id, requester_id="cust-001")
        assert _levels(ledger, product_id) == (10, 2, 8)

    def test_failure_after_release_is_recorded(self, order, other, product_id, workflow, ledger, store, monkeypatch):
        def _broken_cancel(self, reason, payment_failed=False):
            raise RuntimeError("cancel failed")

        monkeypatch.setattr(Order, "cancel", _broken_cancel)
        with pytest.raises(InternalError):
            workflow.cancel_order(order.id, requester_id="cust-001")
        monkeypatch.undo()

        stored = store.find_by_id(order.id)
        assert stored.order_status == OrderStatus.PENDING.value
        assert stored.items[0].reservation_state == ReservationState.RELEASED.value
        assert _levels(ledger, product_id) == (10, 2, 8)

        # A retry closes the order without releasing the same units again
        cancelled = workflow.cancel_order(order.id, requester_id="cust-001")
        assert cancelled.is_cancelled
        assert _levels(ledger, product_id) == (10, 2, 8)

    def test_cancel_after_restart_uses_stored_counters(self, order, product_id, catalog, store, gateway, ledger):
        restarted = OrderWorkflow(InventoryLedger(), catalog, store, gateway)

        restarted.cancel_order(order.id, requester_id="cust-001")

        assert _levels(ledger, product_id) == (10, 0, 10)
        assert store.find_by_id(order.id).is_cancelled
