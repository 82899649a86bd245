"""Application tests for reading orders through the workflow."""

from datetime import UTC, datetime

import pytest
from ordering.errors import NotFound, Unauthorized
from ordering.order.order import OrderStatus
from protean.exceptions import ValidationError


@pytest.fixture()
def product_id(add_product):
    return add_product(quantity=50)


class TestGetOrder:
    def test_owner_can_read(self, product_id, place_order, workflow):
        order = place_order([{"product_id": product_id, "quantity": 1}])
        assert workflow.get_order(order.id, requester_id="cust-001").id == order.id

    def test_other_customer_refused(self, product_id, place_order, workflow):
        order = place_order([{"product_id": product_id, "quantity": 1}])
        with pytest.raises(Unauthorized):
            workflow.get_order(order.id, requester_id="cust-002")

    def test_admin_can_read_any(self, product_id, place_order, workflow):
        order = place_order([{"product_id": product_id, "quantity": 1}])
        assert workflow.get_order(order.id, is_admin=True).id == order.id

    def test_missing(self, workflow):
        with pytest.raises(NotFound):
            workflow.get_order("ord-missing", is_admin=True)


class TestListOrders:
    def test_customer_sees_own_orders_newest_first(self, product_id, place_order, workflow, store):
        older = place_order([{"product_id": product_id, "quantity": 1}])
        newer = place_order([{"product_id": product_id, "quantity": 1}])
        place_order([{"product_id": product_id, "quantity": 1}], customer_id="cust-002")

        older.created_at = datetime(2024, 1, 1, tzinfo=UTC)
        store.save(older)

        orders = workflow.list_orders("cust-001")

        assert [o.id for o in orders] == [newer.id, older.id]

    def test_admin_lists_all(self, product_id, place_order, workflow):
        place_order([{"product_id": product_id, "quantity": 1}])
        place_order([{"product_id": product_id, "quantity": 1}], customer_id="cust-002")
        assert len(workflow.list_all_orders()) == 2

    def test_admin_filters_by_status(self, product_id, place_order, workflow):
        keep = place_order([{"product_id": product_id, "quantity": 1}])
        gone = place_order([{"product_id": product_id, "quantity": 1}])
        workflow.cancel_order(gone.id, is_admin=True)

        pending = workflow.list_all_orders(status=OrderStatus.PENDING.value)
        cancelled = workflow.list_all_orders(status=OrderStatus.CANCELLED.value)

        assert [o.id for o in pending] == [keep.id]
        assert [o.id for o in cancelled] == [gone.id]

    def test_unknown_status_filter(self, workflow):
        with pytest.raises(ValidationError):
            workflow.list_all_orders(status="lost")


class TestPageAllOrders:
    def test_pages_with_totals(self, product_id, place_order, workflow):
        for _ in range(3):
            place_order([{"product_id": product_id, "quantity": 1}])

        page = workflow.page_all_orders(page=2, limit=2)

        assert len(page.orders) == 1
        assert (page.total, page.page, page.pages) == (3, 2, 2)

    @pytest.mark.parametrize("page, limit", [(0, 20), (1, 0), (1, 101)])
    def test_rejects_out_of_range_paging(self, workflow, page, limit):
        with pytest.raises(ValidationError):
            workflow.page_all_orders(page=page, limit=limit)

    def test_unknown_status_filter(self, workflow):
        with pytest.raises(ValidationError):
            workflow.page_all_orders(status="lost")
