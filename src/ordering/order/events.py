"""Domain events for the Order aggregate.

Events are immutable facts raised as the order moves through checkout. They
are dispatched when the aggregate is persisted.
"""

from protean.fields import DateTime, Identifier, Integer, String, Text

from ordering.domain import ordering


@ordering.event(part_of="Order")
class OrderPlaced:
    """Stock was reserved for every item and the order was recorded."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    total_amount = Integer(required=True)
    currency = String(required=True)
    payment_method = String(required=True)
    payment_intent_id = String()
    placed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class PaymentConfirmed:
    """Payment succeeded and reserved stock was committed as sold."""

    __version__ = 1

    order_id = Identifier(required=True)
    payment_intent_id = String()
    amount = Integer(required=True)
    confirmed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderStatusChanged:
    """An administrator advanced the order through fulfillment."""

    __version__ = 1

    order_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    carrier = String()
    tracking_number = String()
    changed_at = DateTime(required=True)


@ordering.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled and any still-held stock was released."""

    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    released_items = Text()  # JSON: list of {product_id, quantity}
    payment_status = String(required=True)
    cancelled_at = DateTime(required=True)
