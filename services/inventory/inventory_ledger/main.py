"""
Inventory Ledger Service
Tenant-isolated stock ledger: items, movements, reservations and cycle counts
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import subprocess
import os

from shared.core import (
    ServiceHealth,
    setup_logging,
    RequestLoggingMiddleware,
    TenantContextMiddleware,
    get_logger,
)
from inventory_ledger.api.errors import setup_exception_handlers
from inventory_ledger.api.routes import router as inventory_router
from inventory_ledger.core_settings import get_settings
from inventory_ledger.infrastructure.db import get_engine, init_models

settings = get_settings()
SERVICE_DESCRIPTION = "Tenant-isolated inventory ledger"

setup_logging(
    service_name=settings.SERVICE_NAME,
    level=settings.LOG_LEVEL
)

logger = get_logger(__name__)


def run_migrations() -> None:
    logger.info("Running database migrations")
    result = subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=os.path.join(os.path.dirname(__file__), ".."),
        capture_output=True,
        text=True,
        check=False
    )
    if result.returncode != 0:
        logger.warning(f"Migration output: {result.stderr}")
    else:
        logger.info("Database migrations completed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.SERVICE_NAME} version {settings.SERVICE_VERSION}")

    if settings.RUN_MIGRATIONS:
        run_migrations()

    try:
        init_models()
        logger.info("Database models initialized")
    except Exception as e:
        logger.error(f"Failed to initialize database models: {e}")
        raise

    logger.info(f"{settings.SERVICE_NAME} started successfully")

    yield

    logger.info(f"Shutting down {settings.SERVICE_NAME}")


app = FastAPI(
    title=settings.SERVICE_NAME,
    description=SERVICE_DESCRIPTION,
    version=settings.SERVICE_VERSION,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Added last so it runs first: request logs carry the tenant
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(TenantContextMiddleware, header_name=settings.TENANT_HEADER)

setup_exception_handlers(app)

health_service = ServiceHealth(settings.SERVICE_NAME, settings.SERVICE_VERSION, engine_provider=get_engine)
app.include_router(health_service.create_health_router())

app.include_router(inventory_router)


@app.get("/")
async def root():
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "status": "running",
        "docs": "/api/docs"
    }


@app.get("/info")
async def info():
    """Service information endpoint"""
    return {
        "service": settings.SERVICE_NAME,
        "version": settings.SERVICE_VERSION,
        "description": SERVICE_DESCRIPTION,
        "environment": settings.ENVIRONMENT,
        "tenant_header": settings.TENANT_HEADER,
        "endpoints": {
            "health": "/health",
            "ready": "/health/ready",
            "live": "/health/live",
            "metrics": "/metrics",
            "docs": "/api/docs",
            "inventory": "/api/v1/inventory"
        }
    }
