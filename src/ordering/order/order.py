"""Order aggregate: the core of the ordering domain.

An order is recorded only once stock has been reserved for all of its items,
so every persisted order starts life holding inventory. Each item tracks how
its reservation was resolved (committed as a sale, or released back to the
shelf) so that the ledger is settled exactly once per item.

Status Model:
    order_status:   pending → processing → shipped → delivered, or cancelled
    payment_status: pending → paid (→ refunded when a paid order is cancelled)

Checkout stages (derived from the two statuses):
    CREATED → RESERVATION_PENDING → RESERVED → AWAITING_PAYMENT → PAID →
    PROCESSING → SHIPPED → DELIVERED
    RESERVATION_FAILED and CANCELLED from any stage before DELIVERED,
    REFUNDED from PAID/PROCESSING.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    DateTime,
    HasMany,
    Identifier,
    Integer,
    String,
    ValueObject,
)

from ordering.domain import ordering
from ordering.errors import InvalidTransition
from ordering.order.events import (
    OrderCancelled,
    OrderPlaced,
    OrderStatusChanged,
    PaymentConfirmed,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class ReservationState(Enum):
    RESERVED = "reserved"
    COMMITTED = "committed"
    RELEASED = "released"


class CheckoutStage(Enum):
    CREATED = "Created"
    RESERVATION_PENDING = "ReservationPending"
    RESERVED = "Reserved"
    AWAITING_PAYMENT = "AwaitingPayment"
    PAID = "Paid"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    RESERVATION_FAILED = "ReservationFailed"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


# Administrative transitions: one step forward at a time, or cancel
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

# Statuses that may only be reached once payment has been collected
_REQUIRES_PAYMENT = {OrderStatus.SHIPPED, OrderStatus.DELIVERED}

_CANCELLABLE_STATES = {OrderStatus.PENDING, OrderStatus.PROCESSING}

MAX_REASON_LENGTH = 500


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@ordering.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships to, captured at checkout and never changed."""

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    zip_code = String(max_length=20)
    country = String(required=True, max_length=100)


@ordering.value_object(part_of="Order")
class Tracking:
    carrier = String(max_length=100)
    tracking_number = String(max_length=255)
    url = String(max_length=500)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@ordering.entity(part_of="Order")
class OrderItem:
    """A line item holding the price captured when the order was placed."""

    product_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    unit_price = Integer(required=True, min_value=0)  # Minor currency units
    quantity = Integer(required=True, min_value=1)
    reservation_state = String(
        choices=ReservationState,
        default=ReservationState.RESERVED.value,
    )

    @property
    def line_total(self):
        return self.unit_price * self.quantity

    @property
    def is_reserved(self):
        return self.reservation_state == ReservationState.RESERVED.value

    def mark_committed(self):
        if not self.is_reserved:
            raise InvalidTransition(f"Item {self.id} is {self.reservation_state}, cannot commit")
        self.reservation_state = ReservationState.COMMITTED.value

    def mark_released(self):
        if not self.is_reserved:
            raise InvalidTransition(f"Item {self.id} is {self.reservation_state}, cannot release")
        self.reservation_state = ReservationState.RELEASED.value


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@ordering.aggregate
class Order:
    order_number = String(required=True, max_length=50)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    total_amount = Integer(required=True, min_value=0)  # Minor currency units
    currency = String(max_length=3, default="usd")
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(required=True, max_length=50)
    payment_intent_id = String(max_length=255)
    payment_status = String(
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    order_status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    tracking = ValueObject(Tracking)
    cancellation_reason = String(max_length=MAX_REASON_LENGTH)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def fulfilled_orders_must_be_paid(self):
        if self.order_status in (OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value):
            if self.payment_status != PaymentStatus.PAID.value:
                raise ValidationError({"payment_status": ["Only paid orders can be shipped or delivered"]})

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_id,
        order_number,
        customer_id,
        items_data,
        shipping_address,
        payment_method,
        currency="usd",
        payment_intent_id=None,
    ):
        """Record an order whose items have all been reserved.

        Args:
            order_id: Pre-generated identity (the payment intent refers to it).
            items_data: List of dicts with product_id, name, unit_price, quantity.
            shipping_address: Dict with street, city, state, zip_code, country.
        """
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        items = [
            OrderItem(
                product_id=item["product_id"],
                name=item["name"],
                unit_price=item["unit_price"],
                quantity=item["quantity"],
            )
            for item in items_data
        ]
        total_amount = sum(item.line_total for item in items)

        order = cls(
            id=order_id,
            order_number=order_number,
            customer_id=customer_id,
            items=items,
            total_amount=total_amount,
            currency=currency,
            shipping_address=ShippingAddress(**shipping_address) if shipping_address else None,
            payment_method=payment_method,
            payment_intent_id=payment_intent_id,
            payment_status=PaymentStatus.PENDING.value,
            order_status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                items=json.dumps([{**item, "product_id": str(item["product_id"])} for item in items_data]),
                total_amount=total_amount,
                currency=currency,
                payment_method=payment_method,
                payment_intent_id=payment_intent_id,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def is_owned_by(self, customer_id):
        return customer_id is not None and str(self.customer_id) == str(customer_id)

    @property
    def is_paid(self):
        return self.payment_status == PaymentStatus.PAID.value

    @property
    def is_cancelled(self):
        return self.order_status == OrderStatus.CANCELLED.value

    def reserved_items(self):
        return [item for item in self.items if item.is_reserved]

    @property
    def stage(self):
        status = OrderStatus(self.order_status)
        payment = PaymentStatus(self.payment_status)
        if status == OrderStatus.CANCELLED:
            return CheckoutStage.REFUNDED if payment == PaymentStatus.REFUNDED else CheckoutStage.CANCELLED
        if status == OrderStatus.PENDING:
            return CheckoutStage.PAID if payment == PaymentStatus.PAID else CheckoutStage.AWAITING_PAYMENT
        return {
            OrderStatus.PROCESSING: CheckoutStage.PROCESSING,
            OrderStatus.SHIPPED: CheckoutStage.SHIPPED,
            OrderStatus.DELIVERED: CheckoutStage.DELIVERED,
        }[status]

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.order_status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(f"Cannot transition from {current.value} to {target_status.value}")
        if target_status in _REQUIRES_PAYMENT and not self.is_paid:
            raise InvalidTransition(
                f"Cannot move to {target_status.value} while payment is {self.payment_status}"
            )

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def confirm_payment(self):
        """Mark the order paid. Every item must already be committed in the ledger."""
        if self.is_cancelled:
            raise InvalidTransition("Cannot confirm payment for a cancelled order")
        if self.is_paid:
            raise InvalidTransition("Payment already confirmed")
        if self.reserved_items():
            raise InvalidTransition("All reservations must be committed before payment is confirmed")

        now = datetime.now(UTC)
        self.payment_status = PaymentStatus.PAID.value
        self.order_status = OrderStatus.PROCESSING.value
        self.updated_at = now

        self.raise_(
            PaymentConfirmed(
                order_id=str(self.id),
                payment_intent_id=self.payment_intent_id,
                amount=self.total_amount,
                confirmed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def advance_to(self, new_status, tracking=None):
        """Move the order one step forward in fulfillment."""
        target = OrderStatus(new_status)
        if target == OrderStatus.CANCELLED:
            raise InvalidTransition("Use cancel() to cancel an order")
        self._assert_can_transition(target)

        previous = self.order_status
        now = datetime.now(UTC)
        if tracking:
            self.tracking = Tracking(**tracking)
        self.order_status = target.value
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                previous_status=previous,
                new_status=target.value,
                carrier=self.tracking.carrier if self.tracking else None,
                tracking_number=self.tracking.tracking_number if self.tracking else None,
                changed_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Cancellation
    # -------------------------------------------------------------------
    def cancel(self, reason, payment_failed=False):
        """Cancel the order. Every reserved item must already be released.

        A paid order moves to refunded. An unpaid order whose payment window
        lapsed (``payment_failed``) records the payment as failed.
        """
        current = OrderStatus(self.order_status)
        if current not in _CANCELLABLE_STATES:
            raise InvalidTransition(f"Cannot cancel order in {current.value} state")
        if not reason or len(reason) > MAX_REASON_LENGTH:
            raise ValidationError({"reason": [f"Reason must be 1 to {MAX_REASON_LENGTH} characters"]})
        if self.reserved_items():
            raise InvalidTransition("All reservations must be released before the order is cancelled")

        now = datetime.now(UTC)
        if self.is_paid:
            self.payment_status = PaymentStatus.REFUNDED.value
        elif payment_failed:
            self.payment_status = PaymentStatus.FAILED.value
        self.order_status = OrderStatus.CANCELLED.value
        self.cancellation_reason = reason
        self.updated_at = now

        released = [
            {"product_id": str(item.product_id), "quantity": item.quantity}
            for item in self.items
            if item.reservation_state == ReservationState.RELEASED.value
        ]
        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                released_items=json.dumps(released),
                payment_status=self.payment_status,
                cancelled_at=now,
            )
        )
