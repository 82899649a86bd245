"""Ordering domain API package."""

from fastapi import FastAPI, Request

from ordering.api.errors import register_error_handlers
from ordering.api.routes import (
    admin_router,
    gateway_router,
    maintenance_router,
    order_router,
    product_router,
)
from ordering.domain import ordering
from ordering.services import Services

__all__ = [
    "admin_router",
    "create_app",
    "gateway_router",
    "maintenance_router",
    "order_router",
    "product_router",
]


def create_app(services: Services) -> FastAPI:
    """Build the HTTP application around an already-initialized domain."""
    app = FastAPI(
        title="Ordering API",
        description="Order checkout against a shared inventory ledger",
    )
    app.state.services = services

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the ordering domain context for each request."""
        with ordering.domain_context():
            response = await call_next(request)
        return response

    app.include_router(order_router)
    app.include_router(admin_router)
    app.include_router(product_router)
    app.include_router(maintenance_router)
    app.include_router(gateway_router)
    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return {"status": "ok", "domains": {"ordering": {"name": ordering.name}}}

    return app
