"""
Order fulfillment control plane - FastAPI Backend Application
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
import structlog

from app.config import settings
from app.api import auth, orders, payments, promos, kitchen, restaurant, delivery
from app.services.errors import (
    AlreadyProcessed,
    DownstreamUnavailable,
    FulfillmentError,
    NoAvailableCourier,
    NotFoundError,
    ValidationError,
)
from app.webhooks import paystack

logging.basicConfig(format="%(message)s", level=settings.log_level.upper())

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting fulfillment API", version="1.0.0")
    yield
    logger.info("Shutting down fulfillment API")


# Create FastAPI application
app = FastAPI(
    title="Fulfillment Control Plane",
    description="Payment confirmation, kitchen capacity and courier dispatch for restaurant orders",
    version="1.0.0",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Service errors
@app.exception_handler(NoAvailableCourier)
async def no_available_courier_handler(request: Request, exc: NoAvailableCourier):
    return JSONResponse(
        status_code=404,
        content={"error": exc.message, "available_count": exc.candidates_evaluated},
    )


@app.exception_handler(FulfillmentError)
async def fulfillment_error_handler(request: Request, exc: FulfillmentError):
    if isinstance(exc, ValidationError):
        status_code = 400
    elif isinstance(exc, NotFoundError):
        status_code = 404
    elif isinstance(exc, DownstreamUnavailable):
        status_code = 503
    elif isinstance(exc, AlreadyProcessed):
        return JSONResponse(status_code=200, content={"detail": exc.message})
    else:
        status_code = 500

    logger.info(
        "Request failed",
        path=request.url.path,
        error_type=type(exc).__name__,
        error=exc.message,
        status_code=status_code,
    )
    return JSONResponse(status_code=status_code, content={"detail": exc.message})


# Health check endpoints
@app.get("/health")
async def health():
    """Basic health check"""
    return {"status": "healthy", "service": "api", "version": "1.0.0"}


@app.get("/health/ready")
async def ready():
    """Readiness check with dependency verification"""
    from app.database import SessionLocal

    checks = {}

    # Check database
    try:
        async with SessionLocal() as db:
            await db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        checks["database"] = f"failed: {str(e)}"

    # Check Redis
    try:
        from app.jobs.celery_app import celery_app
        celery_app.control.ping(timeout=1)
        checks["redis"] = "ok"
    except Exception as e:
        checks["redis"] = f"failed: {str(e)}"

    all_ok = all(v == "ok" for v in checks.values())

    return {
        "status": "ready" if all_ok else "not_ready",
        "checks": checks,
    }


# Include API routers
app.include_router(auth.router, prefix="/auth", tags=["Authentication"])
app.include_router(orders.router, prefix="/tenants/{tenant_id}/orders", tags=["Orders"])
app.include_router(payments.router, prefix="/orders", tags=["Payments"])
app.include_router(promos.router, prefix="/tenants/{tenant_id}/promos", tags=["Promos"])
app.include_router(kitchen.router, prefix="/tenants/{tenant_id}/kitchen", tags=["Kitchen"])
app.include_router(restaurant.router, prefix="/tenants/{tenant_id}/restaurant", tags=["Restaurant"])
app.include_router(delivery.router, prefix="/tenants/{tenant_id}/delivery", tags=["Delivery"])

# Include webhook routers
app.include_router(paystack.router, prefix="/webhooks/paystack", tags=["Webhooks"])


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
    )
