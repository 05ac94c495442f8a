"""FastAPI application factory"""

import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from smartloan_core.api.middleware import RequestIDMiddleware, MetricsMiddleware
from smartloan_core.api.v1 import assessment, extraction, offers
from smartloan_core.domain.exceptions import DomainException, InferenceError, PolicyLoadError
from smartloan_core.infrastructure.observability.logging import setup_logging
from smartloan_core.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="SmartLoan Core",
        description="Loan eligibility validation and offer service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Policy and inference failures mean the engine cannot serve, not that the input is bad
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        status_code = 503 if isinstance(exc, (PolicyLoadError, InferenceError)) else 422
        logging.error(
            f"Domain error: {exc}",
            extra={"request_id": getattr(request.state, "request_id", "unknown")},
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(extraction.router, prefix="/v1", tags=["extraction"])
    app.include_router(assessment.router, prefix="/v1", tags=["assessment"])
    app.include_router(offers.router, prefix="/v1", tags=["offers"])

    return app


app = create_app()
