"""Configurable fake payment gateway for development and testing.

Simulates a card processor's payment intents without any external calls.
Intents start in ``requires_payment_method`` and move to ``succeeded`` when
a test (or the ``/payments/gateway`` dev endpoint) says the customer paid.
The gateway can also be switched "offline" to exercise failure paths.
"""

import threading
from uuid import uuid4

from ordering.gateway.port import (
    REQUIRES_PAYMENT_METHOD,
    SUCCEEDED,
    GatewayError,
    IntentResult,
    PaymentGateway,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.available: bool = True
        self.auto_succeed: bool = False
        self.calls: list[dict] = []
        self._intents: dict[str, dict] = {}
        self._lock = threading.Lock()

    def configure(self, available: bool = True, auto_succeed: bool = False) -> None:
        """Configure gateway behavior at runtime."""
        self.available = available
        self.auto_succeed = auto_succeed

    def mark_succeeded(self, intent_id: str) -> None:
        """Simulate the customer completing payment for an intent."""
        self._set_status(intent_id, SUCCEEDED)

    def mark_status(self, intent_id: str, status: str) -> None:
        """Force an intent into any gateway status, e.g. ``processing``."""
        self._set_status(intent_id, status)

    def _set_status(self, intent_id, status):
        with self._lock:
            if intent_id not in self._intents:
                raise GatewayError(f"No such payment intent: {intent_id}")
            self._intents[intent_id]["status"] = status

    def create_intent(self, amount: int, currency: str, metadata: dict) -> str:
        with self._lock:
            self.calls.append(
                {
                    "method": "create_intent",
                    "amount": amount,
                    "currency": currency,
                    "metadata": dict(metadata),
                }
            )
            if not self.available:
                raise GatewayError("Payment gateway unavailable")

            intent_id = f"pi_fake_{uuid4().hex[:16]}"
            self._intents[intent_id] = {
                "amount": amount,
                "currency": currency,
                "metadata": dict(metadata),
                "status": SUCCEEDED if self.auto_succeed else REQUIRES_PAYMENT_METHOD,
                "client_secret": f"{intent_id}_secret_{uuid4().hex[:8]}",
            }
            return intent_id

    def retrieve_intent(self, intent_id: str) -> IntentResult:
        with self._lock:
            self.calls.append({"method": "retrieve_intent", "intent_id": intent_id})
            if not self.available:
                raise GatewayError("Payment gateway unavailable")

            intent = self._intents.get(intent_id)
            if intent is None:
                raise GatewayError(f"No such payment intent: {intent_id}")
            return IntentResult(
                intent_id=intent_id,
                status=intent["status"],
                client_secret=intent["client_secret"],
                amount=intent["amount"],
                currency=intent["currency"],
            )
