"""Shared BDD fixtures and step definitions for checkout scenarios."""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import pytest
from ordering.domain import ordering
from ordering.errors import InsufficientInventory, OrderingError, PaymentNotCompleted
from pytest_bdd import given, parsers, then, when


@pytest.fixture()
def checkout():
    """Scenario state: product ids by name, placed orders, refusals."""
    return {"products": {}, "orders": [], "errors": [], "last_error": None}


def _order_lines(checkout, *pairs):
    return [{"product_id": checkout["products"][name], "quantity": quantity} for quantity, name in pairs]


def _attempt(checkout, fn):
    try:
        result = fn()
    except OrderingError as exc:
        checkout["errors"].append(exc)
        checkout["last_error"] = exc
        return None
    checkout["last_error"] = None
    return result


def _current_order(checkout, workflow):
    return workflow.get_order(checkout["orders"][-1].id, is_admin=True)


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a product "{name:w}" with stock of {quantity:d}'))
def _(checkout, add_product, name, quantity):
    checkout["products"][name] = add_product(name=name, quantity=quantity)


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the customer orders {quantity:d} "{name:w}"'))
def _(checkout, place_order, quantity, name):
    order = _attempt(checkout, lambda: place_order(_order_lines(checkout, (quantity, name))))
    if order is not None:
        checkout["orders"].append(order)


@when(parsers.cfparse('the customer orders {first_qty:d} "{first:w}" and {second_qty:d} "{second:w}"'))
def _(checkout, place_order, first_qty, first, second_qty, second):
    lines = _order_lines(checkout, (first_qty, first), (second_qty, second))
    order = _attempt(checkout, lambda: place_order(lines))
    if order is not None:
        checkout["orders"].append(order)


@when(parsers.cfparse('two customers each order {quantity:d} "{name:w}" at the same time'))
def _(checkout, workflow, address, quantity, name):
    barrier = threading.Barrier(2)
    lines = _order_lines(checkout, (quantity, name))

    def _order(index):
        with ordering.domain_context():
            barrier.wait()
            try:
                return workflow.create_order(f"cust-{index}", lines, address, "stripe")
            except InsufficientInventory as exc:
                return exc

    with ThreadPoolExecutor(max_workers=2) as pool:
        for result in pool.map(_order, range(2)):
            if isinstance(result, InsufficientInventory):
                checkout["errors"].append(result)
            else:
                checkout["orders"].append(result)


@when("the customer pays for the order")
def _(checkout, workflow, gateway):
    order = checkout["orders"][-1]
    gateway.mark_succeeded(order.payment_intent_id)
    workflow.confirm_payment(order.id, "cust-001")


@when("the customer confirms the payment again")
def _(checkout, workflow):
    workflow.confirm_payment(checkout["orders"][-1].id, "cust-001")


@when("the customer confirms the payment without paying")
def _(checkout, workflow):
    _attempt(checkout, lambda: workflow.confirm_payment(checkout["orders"][-1].id, "cust-001"))


@when("the customer cancels the order")
def _(checkout, workflow):
    workflow.cancel_order(checkout["orders"][-1].id, requester_id="cust-001")


@when(parsers.cfparse("the reservation window of {minutes:d} minutes passes"))
def _(reaper, minutes):
    reaper.expire_stale_orders(
        older_than=timedelta(minutes=minutes),
        as_of=datetime.now(UTC) + timedelta(minutes=minutes + 1),
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("{count:d} order is placed"))
def _(checkout, count):
    assert len(checkout["orders"]) == count


@then(parsers.cfparse("{count:d} order is refused for insufficient inventory"))
def _(checkout, count):
    assert sum(1 for exc in checkout["errors"] if isinstance(exc, InsufficientInventory)) == count


@then("the last order is refused for insufficient inventory")
def _(checkout):
    assert isinstance(checkout["last_error"], InsufficientInventory)


@then("the confirmation is refused because payment is not completed")
def _(checkout):
    assert isinstance(checkout["last_error"], PaymentNotCompleted)


@then("no order is stored")
def _(store):
    assert store.find_all() == []


@then(parsers.cfparse('"{name:w}" has {reserved:d} reserved and {available:d} available'))
def _(checkout, ledger, name, reserved, available):
    levels = ledger.snapshot(checkout["products"][name])
    assert (levels.reserved, levels.available) == (reserved, available)


@then(parsers.cfparse('"{name:w}" has {quantity:d} on hand and {reserved:d} reserved'))
def _(checkout, ledger, name, quantity, reserved):
    levels = ledger.snapshot(checkout["products"][name])
    assert (levels.quantity, levels.reserved) == (quantity, reserved)


@then("the order is paid")
def _(checkout, workflow):
    assert _current_order(checkout, workflow).is_paid


@then(parsers.cfparse('the order is cancelled for "{reason}"'))
def _(checkout, workflow, reason):
    order = _current_order(checkout, workflow)
    assert order.is_cancelled
    assert order.cancellation_reason == reason


@then(parsers.cfparse('the order payment is "{status}"'))
def _(checkout, workflow, status):
    assert _current_order(checkout, workflow).payment_status == status
