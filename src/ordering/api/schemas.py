"""Pydantic request/response schemas for the Ordering API.

These are external contracts (anti-corruption layer), separate from the
Order aggregate and the workflow's dict inputs.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class AddressSchema(BaseModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = Field(default=None, max_length=100)
    zip_code: str | None = Field(default=None, max_length=20)
    country: str = Field(min_length=1, max_length=100)


class OrderLineRequest(BaseModel):
    product_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class TrackingSchema(BaseModel):
    carrier: str | None = None
    tracking_number: str | None = None
    url: str | None = None


# ---------------------------------------------------------------------------
# Order Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    items: list[OrderLineRequest] = Field(min_length=1)
    shipping_address: AddressSchema
    payment_method: str = Field(min_length=1, max_length=50)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [{"product_id": "prod-001", "quantity": 2}],
                    "shipping_address": {
                        "street": "123 Main St",
                        "city": "Springfield",
                        "state": "IL",
                        "zip_code": "62701",
                        "country": "US",
                    },
                    "payment_method": "stripe",
                }
            ]
        }
    }


class CancelOrderRequest(BaseModel):
    reason: str = Field(default="customer_request", min_length=1, max_length=500)


class UpdateOrderStatusRequest(BaseModel):
    status: str
    tracking: TrackingSchema | None = None


# ---------------------------------------------------------------------------
# Product / Inventory Request Schemas
# ---------------------------------------------------------------------------
class RegisterProductRequest(BaseModel):
    product_id: str | None = None
    name: str = Field(min_length=1)
    price: int = Field(ge=0)  # Minor currency units
    currency: str = "usd"
    quantity: int = Field(ge=0, default=0)


class InventoryOperation(str, Enum):
    ADD = "add"
    SET = "set"


class UpdateInventoryRequest(BaseModel):
    quantity: int
    operation: InventoryOperation = InventoryOperation.SET


class ExpireStaleOrdersRequest(BaseModel):
    older_than_minutes: int | None = Field(default=None, ge=0)
    as_of: datetime | None = None


class ConfigureGatewayRequest(BaseModel):
    available: bool = True
    auto_succeed: bool = False


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderItemResponse(BaseModel):
    id: str
    product_id: str
    name: str
    unit_price: int
    quantity: int
    line_total: int
    reservation_state: str


class OrderResponse(BaseModel):
    id: str
    order_number: str
    customer_id: str
    items: list[OrderItemResponse]
    total_amount: int
    currency: str
    shipping_address: AddressSchema | None = None
    payment_method: str
    payment_intent_id: str | None = None
    payment_status: str
    order_status: str
    stage: str
    tracking: TrackingSchema | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        address = order.shipping_address
        tracking = order.tracking
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            customer_id=str(order.customer_id),
            items=[
                OrderItemResponse(
                    id=str(item.id),
                    product_id=str(item.product_id),
                    name=item.name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                    line_total=item.line_total,
                    reservation_state=item.reservation_state,
                )
                for item in order.items
            ],
            total_amount=order.total_amount,
            currency=order.currency,
            shipping_address=(
                AddressSchema(
                    street=address.street,
                    city=address.city,
                    state=address.state,
                    zip_code=address.zip_code,
                    country=address.country,
                )
                if address
                else None
            ),
            payment_method=order.payment_method,
            payment_intent_id=order.payment_intent_id,
            payment_status=order.payment_status,
            order_status=order.order_status,
            stage=order.stage.value,
            tracking=(
                TrackingSchema(
                    carrier=tracking.carrier,
                    tracking_number=tracking.tracking_number,
                    url=tracking.url,
                )
                if tracking
                else None
            ),
            cancellation_reason=order.cancellation_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class CreateOrderResponse(BaseModel):
    order: OrderResponse
    client_secret: str | None = None


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    count: int


class PaginationSchema(BaseModel):
    total: int
    page: int
    pages: int


class PagedOrderListResponse(OrderListResponse):
    pagination: PaginationSchema


class ProductIdResponse(BaseModel):
    product_id: str


class InventoryResponse(BaseModel):
    product_id: str
    quantity: int
    reserved: int
    available: int


class ExpireStaleOrdersResponse(BaseModel):
    expired_count: int
    order_ids: list[str]


class GatewayConfigResponse(BaseModel):
    gateway: str
    available: bool
    auto_succeed: bool


class StatusResponse(BaseModel):
    status: str = "ok"
