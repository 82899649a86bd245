"""Order workflow: checkout use cases coordinating ledger, catalogue, store
and payment gateway.

Lifecycle of a checkout:
    1. ``create_order`` prices the items from the catalogue, reserves stock for
       every line (all or nothing), opens a payment intent when the payment
       method needs one and records the order.
    2. ``confirm_payment`` verifies the intent with the gateway, commits every
       reservation as a sale and marks the order paid.
    3. ``cancel_order`` releases whatever is still reserved and closes the order.
    4. ``update_order_status`` moves a paid order through fulfillment.

Stock is never held by an order that failed to record: every failure after
the first reservation hands the already-reserved units back before the error
is reported.

Gateway calls never happen while a ledger or order lock is held.
"""

import os
import random
import time
import uuid

import structlog
from protean.exceptions import ValidationError

from ordering.catalogue.port import ProductCatalog
from ordering.errors import (
    DuplicateOrderNumber,
    InsufficientInventory,
    InternalError,
    InvalidTransition,
    OrderingError,
    PaymentGatewayError,
    PaymentNotCompleted,
    Unauthorized,
)
from ordering.gateway.port import SUCCEEDED, GatewayError, PaymentGateway
from ordering.inventory.ledger import InventoryLedger
from ordering.order.order import MAX_REASON_LENGTH, Order, OrderStatus
from ordering.order.store import OrderPage, OrderStore
from ordering.utils.locks import KeyedLocks

logger = structlog.get_logger(__name__)

DEFAULT_INTENT_PAYMENT_METHODS = frozenset({"stripe", "card"})
_REQUIRED_ADDRESS_FIELDS = ("street", "city", "country")
_ADDRESS_FIELD_LIMITS = {"street": 255, "city": 100, "state": 100, "zip_code": 20, "country": 100}
_PAYMENT_METHOD_LIMIT = 50
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def intent_payment_methods_from_env() -> frozenset[str]:
    """Payment methods that need a gateway intent, from ``INTENT_PAYMENT_METHODS``."""
    raw = os.environ.get("INTENT_PAYMENT_METHODS")
    if raw is None:
        return DEFAULT_INTENT_PAYMENT_METHODS
    return frozenset(method.strip().lower() for method in raw.split(",") if method.strip())


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class OrderWorkflow:
    def __init__(
        self,
        ledger: InventoryLedger,
        catalog: ProductCatalog,
        store: OrderStore,
        gateway: PaymentGateway,
        currency: str = "usd",
        intent_payment_methods: frozenset[str] | None = None,
        max_order_number_attempts: int = 5,
    ) -> None:
        self.ledger = ledger
        self.catalog = catalog
        self.store = store
        self.gateway = gateway
        self.currency = currency
        self.intent_payment_methods = (
            DEFAULT_INTENT_PAYMENT_METHODS if intent_payment_methods is None else intent_payment_methods
        )
        self.max_order_number_attempts = max_order_number_attempts
        self._order_locks = KeyedLocks()

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    def generate_order_number() -> str:
        """``ORD`` + epoch milliseconds + three random digits."""
        return f"ORD{int(time.time() * 1000)}{random.randint(0, 999):03d}"

    def requires_intent(self, payment_method: str) -> bool:
        return (payment_method or "").lower() in self.intent_payment_methods

    def client_secret_for(self, order: Order) -> str | None:
        """Client secret the buyer needs to complete payment, if any."""
        if not order.payment_intent_id or order.is_paid or order.is_cancelled:
            return None
        try:
            return self.gateway.retrieve_intent(order.payment_intent_id).client_secret
        except GatewayError as exc:
            logger.warning(
                "Could not fetch client secret",
                order_id=str(order.id),
                intent_id=order.payment_intent_id,
                error=str(exc),
            )
            return None

    def _validate_request(self, customer_id, items, shipping_address, payment_method):
        errors = {}
        if not customer_id:
            errors["customer_id"] = ["Customer is required"]
        if not payment_method:
            errors["payment_method"] = ["Payment method is required"]
        elif len(str(payment_method)) > _PAYMENT_METHOD_LIMIT:
            errors["payment_method"] = [f"Payment method must be at most {_PAYMENT_METHOD_LIMIT} characters"]

        if not items:
            errors["items"] = ["An order needs at least one item"]
        else:
            for index, item in enumerate(items):
                if not item.get("product_id"):
                    errors.setdefault("items", []).append(f"Item {index} has no product_id")
                if not _is_positive_int(item.get("quantity")):
                    errors.setdefault("items", []).append(f"Item {index} quantity must be a positive integer")

        address = shipping_address or {}
        missing = [field for field in _REQUIRED_ADDRESS_FIELDS if not address.get(field)]
        if missing:
            errors["shipping_address"] = [f"Missing {', '.join(missing)}"]
        for field, limit in _ADDRESS_FIELD_LIMITS.items():
            value = address.get(field)
            if value is not None and len(str(value)) > limit:
                errors.setdefault("shipping_address", []).append(f"{field} must be at most {limit} characters")

        if errors:
            raise ValidationError(errors)

    @staticmethod
    def _validate_reason(reason):
        if not reason or len(reason) > MAX_REASON_LENGTH:
            raise ValidationError({"reason": [f"Reason must be 1 to {MAX_REASON_LENGTH} characters"]})

    def _release_lines(self, lines):
        """Hand reserved stock back. Used to undo a checkout that did not complete."""
        for line in lines:
            try:
                self.ledger.release(line["product_id"], line["quantity"])
            except Exception:
                logger.exception(
                    "Failed to release reservation during compensation",
                    product_id=line["product_id"],
                    quantity=line["quantity"],
                )

    def _record_released(self, order_id, item_ids):
        """Persist which items were already handed back so a retry does not release them again."""
        if not item_ids:
            return
        try:
            order = self.store.find_by_id(order_id)
            for item in order.items:
                if item.id in item_ids and item.is_reserved:
                    item.mark_released()
            self.store.save(order)
        except Exception:
            logger.exception("Failed to record released items", order_id=str(order_id), item_ids=item_ids)

    def _record(self, order_id, customer_id, lines, shipping_address, payment_method, intent_id):
        for attempt in range(1, self.max_order_number_attempts + 1):
            order = Order.place(
                order_id=order_id,
                order_number=self.generate_order_number(),
                customer_id=customer_id,
                items_data=lines,
                shipping_address=shipping_address,
                payment_method=payment_method,
                currency=self.currency,
                payment_intent_id=intent_id,
            )
            try:
                return self.store.save(order)
            except DuplicateOrderNumber as exc:
                logger.warning("Order number collision", order_number=exc.order_number, attempt=attempt)
                if attempt == self.max_order_number_attempts:
                    raise

    # -------------------------------------------------------------------
    # Use cases
    # -------------------------------------------------------------------
    def create_order(self, customer_id, items, shipping_address, payment_method) -> Order:
        """Reserve stock for every item, open a payment intent and record the order.

        Args:
            items: List of dicts with ``product_id`` and ``quantity``.
            shipping_address: Dict with street, city, state, zip_code, country.

        Raises:
            ValidationError: The request is malformed.
            NotFound: A product does not exist or is no longer sold.
            InsufficientInventory: A product cannot cover its quantity.
            PaymentGatewayError: The payment intent could not be created.
            DuplicateOrderNumber: No unique order number could be allocated.
            InternalError: Anything else; no stock remains reserved.
        """
        self._validate_request(customer_id, items, shipping_address, payment_method)

        # Resolve every product before touching stock
        lines = []
        for item in items:
            product = self.catalog.find_by_id(item["product_id"])
            lines.append(
                {
                    "product_id": product.product_id,
                    "name": product.name,
                    "unit_price": product.price,
                    "quantity": item["quantity"],
                }
            )

        reserved = []
        try:
            for line in lines:
                try:
                    self.ledger.try_reserve(line["product_id"], line["quantity"])
                except InsufficientInventory as exc:
                    raise InsufficientInventory(
                        line["product_id"], exc.requested, exc.available, name=line["name"]
                    ) from None
                reserved.append(line)

            order_id = str(uuid.uuid4())
            total = sum(line["unit_price"] * line["quantity"] for line in lines)

            intent_id = None
            if self.requires_intent(payment_method):
                try:
                    intent_id = self.gateway.create_intent(
                        total,
                        self.currency,
                        {"order_id": order_id, "customer_id": str(customer_id)},
                    )
                except GatewayError as exc:
                    raise PaymentGatewayError(f"Could not create payment intent: {exc}") from exc

            order = self._record(order_id, customer_id, lines, shipping_address, payment_method, intent_id)
        except OrderingError as exc:
            self._release_lines(reserved)
            logger.warning("Order creation failed", customer_id=str(customer_id), kind=exc.kind, error=exc.message)
            raise
        except ValidationError as exc:
            self._release_lines(reserved)
            logger.warning("Order rejected by validation", customer_id=str(customer_id), errors=exc.messages)
            raise
        except Exception as exc:
            self._release_lines(reserved)
            logger.exception("Order creation failed unexpectedly", customer_id=str(customer_id))
            raise InternalError("Order could not be created") from exc

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(customer_id),
            total_amount=order.total_amount,
            payment_intent_id=order.payment_intent_id,
        )
        return order

    def confirm_payment(self, order_id, requester_id) -> Order:
        """Verify the payment with the gateway and commit the reserved stock.

        Confirming an already paid order returns it unchanged.
        """
        order = self.store.find_by_id(order_id)
        if not order.is_owned_by(requester_id):
            raise Unauthorized("Only the customer who placed the order can confirm its payment")
        if order.is_paid:
            return order
        if order.is_cancelled:
            raise InvalidTransition("Cannot confirm payment for a cancelled order")

        if order.payment_intent_id:
            try:
                intent = self.gateway.retrieve_intent(order.payment_intent_id)
            except GatewayError as exc:
                raise PaymentGatewayError(f"Could not verify payment: {exc}") from exc
            if intent.status != SUCCEEDED:
                raise PaymentNotCompleted(order.payment_intent_id, intent.status)

        with self._order_locks.hold(order_id):
            # Reload: a concurrent confirm or cancel may have won the race
            order = self.store.find_by_id(order_id)
            if order.is_paid:
                return order
            if order.is_cancelled:
                raise InvalidTransition("Order was cancelled before payment was confirmed")

            try:
                for item in order.reserved_items():
                    self.ledger.commit(item.product_id, item.quantity)
                    item.mark_committed()
            except Exception as exc:
                self.store.save(order)
                logger.exception("Committing reservations failed", order_id=str(order_id))
                raise InternalError("Payment confirmation could not commit reserved stock") from exc

            order.confirm_payment()
            self.store.save(order)

        logger.info(
            "Payment confirmed",
            order_id=str(order.id),
            order_number=order.order_number,
            amount=order.total_amount,
        )
        return order

    def cancel_order(
        self, order_id, requester_id=None, reason="customer_request", is_admin=False, payment_failed=False
    ) -> Order:
        """Release held stock and cancel the order.

        Cancelling an order that is already cancelled returns it unchanged.
        Stock that was committed to a paid order stays sold. With
        ``payment_failed`` the order is only cancelled while still unpaid; a
        paid order is returned unchanged.
        """
        self._validate_reason(reason)

        with self._order_locks.hold(order_id):
            order = self.store.find_by_id(order_id)
            if not is_admin and not order.is_owned_by(requester_id):
                raise Unauthorized("Only the customer who placed the order can cancel it")
            if order.is_cancelled or (payment_failed and order.is_paid):
                return order
            if OrderStatus(order.order_status) not in (OrderStatus.PENDING, OrderStatus.PROCESSING):
                raise InvalidTransition(f"Cannot cancel order in {order.order_status} state")

            released = []
            try:
                for item in order.reserved_items():
                    self.ledger.release(item.product_id, item.quantity)
                    item.mark_released()
                    released.append(item.id)
                order.cancel(reason, payment_failed=payment_failed)
                self.store.save(order)
            except Exception as exc:
                self._record_released(order_id, released)
                logger.exception("Cancellation failed", order_id=str(order_id), released_items=len(released))
                raise InternalError("Order could not be cancelled") from exc

        logger.info(
            "Order cancelled",
            order_id=str(order.id),
            reason=reason,
            payment_status=order.payment_status,
        )
        return order

    def update_order_status(self, order_id, new_status, tracking=None) -> Order:
        """Administrative status change. Cancelling goes through ``cancel_order``."""
        try:
            target = OrderStatus(new_status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {new_status}"]}) from None

        if target == OrderStatus.CANCELLED:
            return self.cancel_order(order_id, reason="admin_cancelled", is_admin=True)

        with self._order_locks.hold(order_id):
            order = self.store.find_by_id(order_id)
            previous = order.order_status
            order.advance_to(target.value, tracking=tracking)
            self.store.save(order)

        logger.info("Order status updated", order_id=str(order.id), previous_status=previous, new_status=target.value)
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get_order(self, order_id, requester_id=None, is_admin=False) -> Order:
        order = self.store.find_by_id(order_id)
        if not is_admin and not order.is_owned_by(requester_id):
            raise Unauthorized("Order belongs to another customer")
        return order

    def list_orders(self, customer_id) -> list[Order]:
        return self.store.find_by_customer(customer_id)

    @staticmethod
    def _validate_status_filter(status):
        if status is not None:
            try:
                OrderStatus(status)
            except ValueError:
                raise ValidationError({"status": [f"Unknown order status: {status}"]}) from None

    def list_all_orders(self, status=None) -> list[Order]:
        self._validate_status_filter(status)
        return self.store.find_all(status=status)

    def page_all_orders(self, status=None, page=1, limit=DEFAULT_PAGE_SIZE) -> OrderPage:
        """Admin listing, newest first, ``limit`` orders per page."""
        self._validate_status_filter(status)
        errors = {}
        if not _is_positive_int(page):
            errors["page"] = ["Page must be a positive integer"]
        if not _is_positive_int(limit) or limit > MAX_PAGE_SIZE:
            errors["limit"] = [f"Limit must be between 1 and {MAX_PAGE_SIZE}"]
        if errors:
            raise ValidationError(errors)
        return self.store.find_page(status=status, page=page, limit=limit)
