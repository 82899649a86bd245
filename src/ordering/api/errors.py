"""Render ordering errors as JSON responses.

Every error body has the shape ``{"error": {"kind": ..., "message": ...}}``;
the HTTP status follows the error's category.
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ValidationError
from protean.integrations.fastapi import register_exception_handlers

from ordering.errors import ErrorCategory, OrderingError

STATUS_BY_CATEGORY = {
    ErrorCategory.NOT_FOUND: 404,
    ErrorCategory.CONFLICT: 409,
    ErrorCategory.FORBIDDEN: 403,
    ErrorCategory.VALIDATION: 400,
    ErrorCategory.INTERNAL: 500,
    ErrorCategory.BAD_GATEWAY: 502,
}


def _validation_body(messages) -> dict:
    return {"error": {"kind": "Validation", "message": "Invalid request", "fields": messages}}


def register_error_handlers(app: FastAPI) -> None:
    """Install Protean's default handlers, then the ordering-specific ones."""
    register_exception_handlers(app)

    @app.exception_handler(OrderingError)
    async def ordering_error_handler(request: Request, exc: OrderingError) -> JSONResponse:
        return JSONResponse(
            status_code=STATUS_BY_CATEGORY.get(exc.category, 500),
            content={"error": exc.to_dict()},
        )

    @app.exception_handler(ValidationError)
    async def domain_validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=_validation_body(exc.messages))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        fields = {}
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            fields.setdefault(location or "body", []).append(error.get("msg", "Invalid value"))
        return JSONResponse(status_code=400, content=_validation_body(fields))
