"""Payment gateway port (abstract interface).

Defines the contract that payment gateway adapters implement: create a
payment intent for an amount and look it up again later. Amounts are always
integer minor currency units.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

# Intent statuses
SUCCEEDED = "succeeded"
REQUIRES_PAYMENT_METHOD = "requires_payment_method"


class GatewayError(Exception):
    """Raised by adapters when the gateway cannot complete a call."""


@dataclass(frozen=True)
class IntentResult:
    """Current state of a payment intent."""

    intent_id: str
    status: str
    client_secret: str | None = None
    amount: int | None = None
    currency: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def create_intent(self, amount: int, currency: str, metadata: dict) -> str:
        """Create a payment intent and return its identifier."""
        ...

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> IntentResult:
        """Fetch the status and client secret of an existing intent."""
        ...
