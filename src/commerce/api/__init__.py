"""Commerce API package.

``create_app`` assembles the FastAPI application: routers, the per-request
domain context and the error mapping. The domain must be initialized
(``commerce.init()``) before the app serves requests.
"""

import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from commerce.api.errors import register_error_handlers
from commerce.api.routes import cart_router, catalogue_router, discount_router, order_router
from commerce.domain import commerce
from commerce.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Commerce API",
        description="Transaction core: carts, discounts, inventory, checkout and orders",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the commerce domain context and tag log lines with a request id."""
        clear_context()
        add_context(
            request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
            method=request.method,
            path=request.url.path,
        )
        try:
            with commerce.domain_context():
                response = await call_next(request)
            logger.info("request_completed", status_code=response.status_code)
            return response
        finally:
            clear_context()

    app.include_router(cart_router)
    app.include_router(order_router)
    app.include_router(discount_router)
    app.include_router(catalogue_router)

    register_error_handlers(app)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": commerce.name})

    return app


__all__ = ["cart_router", "catalogue_router", "create_app", "discount_router", "order_router"]
