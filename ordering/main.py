import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ordering.core.config import CORS_ALLOW_ORIGIN_REGEX, CORS_ORIGINS, DATABASE_URL
from ordering.core.database import Base, engine
from ordering.core.errors import OrderingError, ValidationFailed, format_validation_errors
from ordering.core.logging_setup import configure_logging
from ordering.core.startup_checks import (
    ensure_migrations_applied,
    validate_database_environment,
    warn_on_incomplete_settings,
)
from ordering.middleware.observability import ObservabilityMiddleware
from ordering.middleware.tenant_context import TenantContextMiddleware
import ordering.models  # garante que os models são importados antes do create_all
from ordering.services.event_handlers import register_event_handlers
from ordering.services.tenant_resolver import tenant_resolver

from ordering.routers.admin_orders import router as admin_orders_router
from ordering.routers.combos import router as combos_router
from ordering.routers.platform_tenants import router as platform_tenants_router
from ordering.routers.public_orders import router as public_orders_router
from ordering.routers.public_tenant import router as public_tenant_router

configure_logging()

logger = logging.getLogger(__name__)
STARTUP_PREFIX = "[STARTUP]"
REPO_ROOT = Path(__file__).resolve().parents[1]
ALEMBIC_CONFIG_PATH = Path(
    os.getenv("ALEMBIC_CONFIG", str(REPO_ROOT / "alembic.ini"))
)


def _startup_tasks(app: FastAPI) -> None:
    try:
        validate_database_environment()
        if DATABASE_URL.startswith("sqlite"):
            Base.metadata.create_all(bind=engine)
        ensure_migrations_applied(engine=engine, alembic_config_path=ALEMBIC_CONFIG_PATH)
        warn_on_incomplete_settings()
    except Exception:
        logger.exception("%s ERROR startup failed", STARTUP_PREFIX)
        raise

    app.state.tenant_resolver.warm()
    logger.info("%s tenant cache warmed size=%s", STARTUP_PREFIX, app.state.tenant_resolver.health()["cache_size"])


@asynccontextmanager
async def lifespan(app: FastAPI):
    _startup_tasks(app)
    yield


app = FastAPI(
    title="Restaurant Ordering API",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)
app.state.tenant_resolver = tenant_resolver
register_event_handlers()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=CORS_ALLOW_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(TenantContextMiddleware)
app.add_middleware(ObservabilityMiddleware)


@app.exception_handler(OrderingError)
async def ordering_error_handler(request: Request, exc: OrderingError):
    if exc.status_code >= 500:
        logger.error("%s %s %s -> %s", exc.code, request.method, request.url.path, exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    error = ValidationFailed(format_validation_errors(exc.errors()))
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Routers
app.include_router(public_tenant_router)
app.include_router(combos_router)
app.include_router(public_orders_router)
app.include_router(admin_orders_router)
app.include_router(platform_tenants_router)


@app.get("/health")
def health():
    return {"status": "healthy"}
