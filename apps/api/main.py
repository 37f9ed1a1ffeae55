"""FastAPI application main entry point."""

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apps.api.deps import set_container
from apps.api.v1.endpoints import alerts, coupons, orders, returns, stock, webhooks
from fulfillment.container import build_container
from fulfillment.domain.errors import (
    CatalogUnavailable,
    CouponNotFound,
    FulfillmentError,
    OrderNotFound,
    PaymentGatewayError,
    RefundProcessingFailed,
    ReturnNotFound,
)
from fulfillment.infrastructure.database import (
    build_session_factory,
    close_database,
    get_engine,
    init_database,
)
from fulfillment.infrastructure.logging import configure_logging
from fulfillment.settings import get_app_settings

configure_logging()
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    OrderNotFound: status.HTTP_404_NOT_FOUND,
    CouponNotFound: status.HTTP_404_NOT_FOUND,
    ReturnNotFound: status.HTTP_404_NOT_FOUND,
    RefundProcessingFailed: status.HTTP_502_BAD_GATEWAY,
    PaymentGatewayError: status.HTTP_502_BAD_GATEWAY,
    CatalogUnavailable: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create tables, wire the services and run the background workers."""
    settings = get_app_settings()
    engine = get_engine()
    await init_database(engine)

    container = build_container(settings, build_session_factory(engine))
    set_container(container)
    await container.start()
    logger.info("Fulfillment API started")
    try:
        yield
    finally:
        await container.stop()
        set_container(None)
        await close_database()
        logger.info("Fulfillment API stopped")


app = FastAPI(
    title="Fulfillment API",
    description="Order lifecycle, stock ledger and payment reconciliation",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(orders.router, prefix="/api/v1")
app.include_router(returns.router, prefix="/api/v1")
app.include_router(webhooks.router, prefix="/api/v1")
app.include_router(coupons.router, prefix="/api/v1")
app.include_router(stock.router, prefix="/api/v1")
app.include_router(alerts.router, prefix="/api/v1")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every request with its status and duration."""
    start_time = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start_time
    logger.info(
        f"{request.method} {request.url.path} [{response.status_code}] ({duration:.3f}s)"
    )
    return response


@app.exception_handler(FulfillmentError)
async def fulfillment_error_handler(request: Request, exc: FulfillmentError) -> JSONResponse:
    """Translate domain errors into stable `{detail, error}` responses."""
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    if status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "error": exc.kind},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "detail": f"{location}: {message}" if location else message,
            "error": "ValidationError",
        },
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Handle ValueError exceptions.

    Args:
        request: FastAPI request
        exc: ValueError exception

    Returns:
        JSONResponse with error details
    """
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "error": "ValidationError"},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle general exceptions."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint.

    Returns:
        Health status
    """
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
