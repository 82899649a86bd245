"""FastAPI routes for the Ordering domain: orders, products and stock.

The upstream API gateway authenticates callers and forwards who they are in
the ``X-Customer-Id`` and ``X-Role`` headers; these routes trust them.

Endpoints are plain functions so FastAPI runs them in its threadpool: the
workflow blocks on stock locks and payment gateway calls.
"""

import os
from dataclasses import dataclass
from datetime import timedelta

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from protean.utils.globals import current_domain

from ordering.api.schemas import (
    CancelOrderRequest,
    ConfigureGatewayRequest,
    CreateOrderRequest,
    CreateOrderResponse,
    ExpireStaleOrdersRequest,
    ExpireStaleOrdersResponse,
    GatewayConfigResponse,
    InventoryOperation,
    InventoryResponse,
    OrderListResponse,
    OrderResponse,
    PagedOrderListResponse,
    PaginationSchema,
    ProductIdResponse,
    RegisterProductRequest,
    StatusResponse,
    UpdateInventoryRequest,
    UpdateOrderStatusRequest,
)
from ordering.catalogue.product import RegisterProduct
from ordering.errors import Unauthorized
from ordering.gateway import FakeGateway, GatewayError
from ordering.order.workflow import DEFAULT_PAGE_SIZE
from ordering.services import Services

ADMIN_ROLE = "admin"


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Requester:
    customer_id: str | None
    role: str | None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_requester(
    x_customer_id: str | None = Header(default=None),
    x_role: str | None = Header(default=None),
) -> Requester:
    return Requester(customer_id=x_customer_id or None, role=(x_role or "").lower() or None)


def require_customer(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.customer_id:
        raise Unauthorized("Missing X-Customer-Id header")
    return requester


def require_admin(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.is_admin:
        raise Unauthorized("Administrator role required")
    return requester


def _inventory_response(product_id, levels) -> InventoryResponse:
    return InventoryResponse(
        product_id=str(product_id),
        quantity=levels.quantity,
        reserved=levels.reserved,
        available=levels.available,
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=CreateOrderResponse)
def create_order(
    body: CreateOrderRequest,
    requester: Requester = Depends(require_customer),
    services: Services = Depends(get_services),
) -> CreateOrderResponse:
    """Reserve stock and place an order.

    Returns the order along with the payment intent's client secret, which
    the client uses to collect payment before confirming.
    """
    workflow = services.workflow
    order = workflow.create_order(
        customer_id=requester.customer_id,
        items=[line.model_dump() for line in body.items],
        shipping_address=body.shipping_address.model_dump(),
        payment_method=body.payment_method,
    )
    return CreateOrderResponse(
        order=OrderResponse.from_order(order),
        client_secret=workflow.client_secret_for(order),
    )


@order_router.get("", response_model=OrderListResponse)
def list_orders(
    requester: Requester = Depends(require_customer),
    services: Services = Depends(get_services),
) -> OrderListResponse:
    orders = services.workflow.list_orders(requester.customer_id)
    return OrderListResponse(orders=[OrderResponse.from_order(o) for o in orders], count=len(orders))


@order_router.get("/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: str,
    requester: Requester = Depends(get_requester),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.workflow.get_order(order_id, requester_id=requester.customer_id, is_admin=requester.is_admin)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/confirm-payment", response_model=OrderResponse)
def confirm_payment(
    order_id: str,
    requester: Requester = Depends(require_customer),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.workflow.confirm_payment(order_id, requester.customer_id)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    body: CancelOrderRequest | None = None,
    requester: Requester = Depends(get_requester),
    services: Services = Depends(get_services),
) -> OrderResponse:
    order = services.workflow.cancel_order(
        order_id,
        requester_id=requester.customer_id,
        reason=body.reason if body else "customer_request",
        is_admin=requester.is_admin,
    )
    return OrderResponse.from_order(order)


@order_router.patch("/{order_id}/status", response_model=OrderResponse)
def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    _: Requester = Depends(require_admin),
    services: Services = Depends(get_services),
) -> OrderResponse:
    tracking = body.tracking.model_dump(exclude_none=True) if body.tracking else None
    order = services.workflow.update_order_status(order_id, body.status, tracking=tracking or None)
    return OrderResponse.from_order(order)


# ---------------------------------------------------------------------------
# Admin Router
# ---------------------------------------------------------------------------
admin_router = APIRouter(prefix="/admin", tags=["admin"])


@admin_router.get("/orders", response_model=PagedOrderListResponse)
def list_all_orders(
    status: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    _: Requester = Depends(require_admin),
    services: Services = Depends(get_services),
) -> PagedOrderListResponse:
    result = services.workflow.page_all_orders(status=status, page=page, limit=limit)
    return PagedOrderListResponse(
        orders=[OrderResponse.from_order(o) for o in result.orders],
        count=len(result.orders),
        pagination=PaginationSchema(total=result.total, page=result.page, pages=result.pages),
    )


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
def register_product(
    body: RegisterProductRequest,
    _: Requester = Depends(require_admin),
    services: Services = Depends(get_services),
) -> ProductIdResponse:
    """Register a product and open its stock row with the initial quantity."""
    command = RegisterProduct(
        product_id=body.product_id,
        name=body.name,
        price=body.price,
        currency=body.currency.lower(),
    )
    product_id = current_domain.process(command, asynchronous=False)
    services.ledger.register(product_id, body.quantity)
    return ProductIdResponse(product_id=product_id)


@product_router.get("/{product_id}/inventory", response_model=InventoryResponse)
def get_inventory(
    product_id: str,
    services: Services = Depends(get_services),
) -> InventoryResponse:
    return _inventory_response(product_id, services.ledger.snapshot(product_id))


@product_router.patch("/{product_id}/inventory", response_model=InventoryResponse)
def update_inventory(
    product_id: str,
    body: UpdateInventoryRequest,
    _: Requester = Depends(require_admin),
    services: Services = Depends(get_services),
) -> InventoryResponse:
    """Restock a product: ``add`` adjusts by the quantity, ``set`` replaces it."""
    services.catalog.find_by_id(product_id)
    if body.operation == InventoryOperation.ADD:
        levels = services.ledger.adjust(product_id, delta=body.quantity)
    else:
        levels = services.ledger.adjust(product_id, absolute=body.quantity)
    return _inventory_response(product_id, levels)


# ---------------------------------------------------------------------------
# Maintenance: periodic background job endpoints
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@maintenance_router.put("/orders/expire-stale", response_model=ExpireStaleOrdersResponse)
def expire_stale_orders(
    body: ExpireStaleOrdersRequest | None = None,
    services: Services = Depends(get_services),
) -> ExpireStaleOrdersResponse:
    """Cancel unpaid orders whose reservation window has lapsed.

    Designed to be called periodically by an external scheduler. Idempotent:
    orders that were already cancelled or paid are skipped.
    """
    older_than = None
    if body and body.older_than_minutes is not None:
        older_than = timedelta(minutes=body.older_than_minutes)
    expired = services.reaper.expire_stale_orders(older_than=older_than, as_of=body.as_of if body else None)
    return ExpireStaleOrdersResponse(expired_count=len(expired), order_ids=expired)


# ---------------------------------------------------------------------------
# Payment gateway: development helpers for the fake gateway
# ---------------------------------------------------------------------------
gateway_router = APIRouter(prefix="/payments/gateway", tags=["payments"])


def _fake_gateway(services: Services) -> FakeGateway:
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Gateway configuration not available in production")
    if not isinstance(services.gateway, FakeGateway):
        raise HTTPException(status_code=400, detail="Gateway configuration only available for FakeGateway")
    return services.gateway


@gateway_router.post("/configure", response_model=GatewayConfigResponse)
def configure_gateway(
    body: ConfigureGatewayRequest,
    services: Services = Depends(get_services),
) -> GatewayConfigResponse:
    """Configure the FakeGateway behavior (non-production only)."""
    gateway = _fake_gateway(services)
    gateway.configure(available=body.available, auto_succeed=body.auto_succeed)
    return GatewayConfigResponse(
        gateway=type(gateway).__name__,
        available=gateway.available,
        auto_succeed=gateway.auto_succeed,
    )


@gateway_router.post("/intents/{intent_id}/succeed", response_model=StatusResponse)
def succeed_intent(
    intent_id: str,
    services: Services = Depends(get_services),
) -> StatusResponse:
    """Simulate the customer completing payment (non-production only)."""
    gateway = _fake_gateway(services)
    try:
        gateway.mark_succeeded(intent_id)
    except GatewayError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return StatusResponse(status="succeeded")
