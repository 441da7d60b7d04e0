"""HTTP mapping for the commerce error taxonomy.

Protean's own handlers are registered first; the more specific commerce
classes registered afterwards take precedence for their subclasses.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from commerce.errors import (
    CheckoutIncomplete,
    Conflict,
    Forbidden,
    InvalidCoupon,
    InvalidInput,
    InvalidTransition,
    InventoryInconsistency,
    OutOfStock,
)

logger = structlog.get_logger(__name__)

_STATUS_CODES = {
    InvalidInput: 400,
    InvalidCoupon: 400,
    Forbidden: 403,
    Conflict: 409,
    OutOfStock: 409,
    InvalidTransition: 409,
}


def _error_kind(exc: Exception) -> str:
    name = type(exc).__name__
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in name).lstrip("_")


def _handler(status_code: int):
    async def handle(request: Request, exc: Exception) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": _error_kind(exc), "messages": exc.messages},
        )

    return handle


async def _inventory_inconsistency(request: Request, exc: InventoryInconsistency) -> JSONResponse:
    logger.critical("inventory_inconsistency", path=request.url.path, units=exc.units)
    return JSONResponse(
        status_code=500,
        content={"error": "inventory_inconsistency", "messages": {"inventory": [str(exc)]}},
    )


async def _checkout_incomplete(request: Request, exc: CheckoutIncomplete) -> JSONResponse:
    logger.critical("checkout_incomplete", path=request.url.path, order_number=exc.order_number, steps=exc.steps)
    return JSONResponse(
        status_code=500,
        content={
            "error": "checkout_incomplete",
            "order_number": exc.order_number,
            "messages": {"checkout": [str(exc)]},
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    for exc_class, status_code in _STATUS_CODES.items():
        app.add_exception_handler(exc_class, _handler(status_code))
    app.add_exception_handler(InventoryInconsistency, _inventory_inconsistency)
    app.add_exception_handler(CheckoutIncomplete, _checkout_incomplete)
