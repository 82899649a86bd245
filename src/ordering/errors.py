"""Error kinds surfaced by the ordering workflow.

Every failure the workflow reports upward is an ``OrderingError`` subclass
carrying a ``kind`` (what went wrong) and a ``category`` (which class of
client/server error it maps to). The API layer renders them as
``{"error": {"kind": ..., "message": ...}}``.
"""

from enum import Enum


class ErrorCategory(Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    VALIDATION = "validation"
    INTERNAL = "internal"
    BAD_GATEWAY = "bad_gateway"


class OrderingError(Exception):
    """Base exception for all ordering errors."""

    kind = "InternalError"
    category = ErrorCategory.INTERNAL

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class NotFound(OrderingError):
    """Raised when a product or order does not exist."""

    kind = "NotFound"
    category = ErrorCategory.NOT_FOUND

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class InsufficientInventory(OrderingError):
    """Raised when a product cannot cover the requested quantity."""

    kind = "InsufficientInventory"
    category = ErrorCategory.CONFLICT

    def __init__(self, product_id: str, requested: int, available: int, name: str | None = None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        label = name or product_id
        super().__init__(f"Insufficient inventory for {label}: {available} available, {requested} requested")


class Unauthorized(OrderingError):
    kind = "Unauthorized"
    category = ErrorCategory.FORBIDDEN


class InvalidTransition(OrderingError):
    kind = "InvalidTransition"
    category = ErrorCategory.CONFLICT


class PaymentNotCompleted(OrderingError):
    kind = "PaymentNotCompleted"
    category = ErrorCategory.VALIDATION

    def __init__(self, intent_id: str, status: str):
        self.intent_id = intent_id
        self.status = status
        super().__init__(f"Payment not completed: intent {intent_id} is {status}")


class DuplicateOrderNumber(OrderingError):
    kind = "DuplicateOrderNumber"
    category = ErrorCategory.CONFLICT

    def __init__(self, order_number: str):
        self.order_number = order_number
        super().__init__(f"Order number {order_number} already exists")


class PaymentGatewayError(OrderingError):
    """Raised when the payment gateway cannot be reached or rejects a call."""

    kind = "PaymentGatewayError"
    category = ErrorCategory.BAD_GATEWAY


class InternalError(OrderingError):
    kind = "InternalError"
    category = ErrorCategory.INTERNAL
