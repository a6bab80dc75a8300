"""
PC shop core service

Checkout with stock reservation, payment webhook reconciliation, order
cancellation and the configuration review workflow, behind one FastAPI app.
"""

import os
import subprocess
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from pcshop import __version__
from pcshop.core_settings import get_settings
from pcshop.core import ServiceHealth, setup_logging, RequestLoggingMiddleware, get_logger
from pcshop.domain.errors import ShopError, ValidationFailed
from pcshop.infrastructure.db import engine, init_models
from pcshop.api import orders, payments, configurations, inventory, audit

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DESCRIPTION = "PC shop orders, payments and configuration review"

settings = get_settings()
setup_logging(level=settings.LOG_LEVEL)
logger = get_logger(__name__)

def run_migrations() -> bool:
    """Apply alembic migrations; a failure is logged and create_all still runs."""
    try:
        result = subprocess.run(
            ["alembic", "upgrade", "head"],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError as e:
        logger.error(f"Could not run alembic: {e}")
        return False
    if result.returncode != 0:
        logger.warning(f"Migrations did not complete: {result.stderr.strip()}")
        return False
    logger.info("Database migrations applied")
    return True

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.SERVICE_NAME} {app.version}")
    run_migrations()
    try:
        init_models()
    except SQLAlchemyError as e:
        logger.error(f"Database schema could not be created: {e}")
        raise
    yield
    logger.info(f"Stopping {settings.SERVICE_NAME}")

def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ShopError)
    async def shop_error(request: Request, exc: ShopError) -> JSONResponse:
        logger.info(
            f"{request.method} {request.url.path} rejected: {exc.message}",
            extra={'extra_fields': {'code': exc.code, 'status_code': exc.status_code, **exc.extra}}
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code, **exc.extra},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [{"type": e["type"], "loc": list(e["loc"]), "msg": e["msg"]} for e in exc.errors()]
        logger.info(
            f"{request.method} {request.url.path} rejected: invalid request data",
            extra={'extra_fields': {'code': ValidationFailed.code, 'errors': errors}}
        )
        return JSONResponse(
            status_code=ValidationFailed.status_code,
            content={"detail": "Invalid request data", "code": ValidationFailed.code, "errors": errors},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error(
            f"Database error on {request.method} {request.url.path}",
            exc_info=exc,
            extra={'extra_fields': {'error_type': type(exc).__name__}}
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error", "code": "database_error"})

def create_app() -> FastAPI:
    version = settings.SERVICE_VERSION or __version__
    app = FastAPI(
        title=settings.SERVICE_NAME,
        description=DESCRIPTION,
        version=version,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)
    register_error_handlers(app)

    health = ServiceHealth(settings.SERVICE_NAME, version, engine, settings.REDIS_URL)
    app.include_router(health.create_health_router())
    for router in (
        orders.router,
        orders.admin_router,
        payments.router,
        configurations.router,
        inventory.router,
        audit.router,
    ):
        app.include_router(router)

    @app.get("/")
    async def root():
        return {"service": settings.SERVICE_NAME, "version": version, "status": "running", "docs": "/api/docs"}

    @app.get("/info")
    async def info():
        """Service information endpoint"""
        return {
            "service": settings.SERVICE_NAME,
            "version": version,
            "description": DESCRIPTION,
            "environment": settings.ENVIRONMENT,
            "endpoints": {
                "orders": "/orders",
                "configurations": "/configurations",
                "stock": "/stock",
                "webhook": "/webhook/payment",
                "audit": "/admin/audit-logs",
                "health": "/health",
                "ready": "/health/ready",
                "metrics": "/metrics",
                "docs": "/api/docs",
            },
        }

    return app

app = create_app()

def serve():
    import uvicorn
    uvicorn.run("pcshop.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
