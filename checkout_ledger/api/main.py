"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from checkout_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from checkout_ledger.api.v1 import admin, installments, orders
from checkout_ledger.infrastructure.observability.logging import setup_logging
from checkout_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level, settings.service_name)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Checkout Ledger",
        description="Order placement, coupon redemption and installment (EMI) ledger service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(orders.router, prefix="/v1", tags=["orders"])
    app.include_router(installments.router, prefix="/v1", tags=["installments"])
    app.include_router(admin.router, prefix="/v1", tags=["admin"])

    return app


app = create_app()
