"""
ASGI application for the sales-force performance dashboard.

    uvicorn sf_performance.main:app

Routes live under /api/v1: health probes at the root, spreadsheet upload
and the performance reads under /dashboard. Service errors are mapped to
the same {success, msg, timestamp} envelope the routes use.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from sf_performance.config import get_settings
from sf_performance.config.logging import configure_logging
from sf_performance.database.connection import close_database, init_database
from sf_performance.exceptions import SalesPerformanceError, StoreError, ValidationError
from sf_performance.ingestion.upload_pipeline import UploadPipeline
from sf_performance.serving.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from sf_performance.serving.api.routes import dashboard_router, health_router

logger = structlog.get_logger(__name__)

API_PREFIX = "/api/v1"
TITLE = "Sales-Force Performance API"


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    settings = get_settings()
    logger.info("API starting", env=settings.app_env, version=settings.version)

    await init_database()
    # One pipeline per worker; its lock serialises uploads
    app.state.upload_pipeline = UploadPipeline()

    try:
        yield
    finally:
        await close_database()
        logger.info("API stopped")


def _error_response(status_code: int, message: str, **extra) -> JSONResponse:
    body = {"success": False, "msg": message, "timestamp": datetime.now(timezone.utc).isoformat()}
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    logger.warning("Upload rejected", path=request.url.path, reason=exc.message)
    return _error_response(400, exc.message, missing_columns=exc.missing_columns)


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error("Order store failure", path=request.url.path, operation=exc.operation, error=str(exc))
    return _error_response(500, "Order store is unavailable")


async def service_error_handler(request: Request, exc: SalesPerformanceError) -> JSONResponse:
    logger.error("Request failed", path=request.url.path, error=str(exc))
    return _error_response(500, str(exc))


def create_app() -> FastAPI:
    settings = get_settings()
    docs = not settings.is_production

    app = FastAPI(
        title=TITLE,
        description="Upload sales-order spreadsheets and read per-agent performance metrics",
        version=settings.version,
        debug=settings.debug,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        lifespan=lifespan,
    )

    # Added last runs first: security headers wrap logging wraps gzip wraps CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    for error, handler in (
        (ValidationError, validation_error_handler),
        (StoreError, store_error_handler),
        (SalesPerformanceError, service_error_handler),
    ):
        app.add_exception_handler(error, handler)

    app.include_router(health_router, prefix=API_PREFIX, tags=["Health"])
    app.include_router(dashboard_router, prefix=f"{API_PREFIX}/dashboard", tags=["Dashboard"])

    @app.get(f"{API_PREFIX}/info")
    async def api_info():
        return {
            "name": TITLE,
            "version": settings.version,
            "environment": settings.app_env,
            "documentation": "/docs" if docs else None,
        }

    return app


app = create_app()
