"""Payment gateway adapter selection.

``build_gateway()`` returns the adapter named by the ``PAYMENT_GATEWAY``
environment variable. Only the fake adapter ships with the service; a real
processor integration plugs in here.
"""

import os

from ordering.gateway.fake_adapter import FakeGateway
from ordering.gateway.port import GatewayError, IntentResult, PaymentGateway

__all__ = ["FakeGateway", "GatewayError", "IntentResult", "PaymentGateway", "build_gateway"]


def build_gateway(name: str | None = None) -> PaymentGateway:
    """Return a fresh payment gateway adapter. Defaults to FakeGateway."""
    adapter = name or os.environ.get("PAYMENT_GATEWAY", "fake")
    if adapter == "fake":
        return FakeGateway()
    raise ValueError(f"Unknown payment gateway adapter: {adapter}")
