"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from clinic_scheduling.core.config import settings
from clinic_scheduling.core.exceptions import (
    ConflictError,
    NotFoundError,
    ProgrammerError,
    ValidationError,
)
from clinic_scheduling.core.structured_logging import build_log_context
from clinic_scheduling.core import tenant_context
from clinic_scheduling.core.tenant_middleware import TenantContextMiddleware
from clinic_scheduling.db.session import Database

logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PHI to Sentry
    )
    logging.info("Sentry initialized for error tracking")


# ============================================================================
# Lifespan (database handle)
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    database = Database(settings.DATABASE_URL).open()
    app.state.database = database
    try:
        yield
    finally:
        database.close()


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Clinic Scheduling API",
    description="Multi-tenant appointment booking for clinical practices",
    version=settings.VERSION,
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    lifespan=lifespan,
)

app.add_middleware(TenantContextMiddleware)


# ============================================================================
# Error Handlers
# ============================================================================

def _log_context(request: Request) -> dict:
    return build_log_context(
        tenant_id=tenant_context.current(),
        route=request.url.path,
        method=request.method,
    )


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError):
    return JSONResponse(
        status_code=409,
        content={"detail": str(exc), "reason": exc.reason.value},
    )


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(ProgrammerError)
async def programmer_error_handler(request: Request, exc: ProgrammerError):
    logger.error("Programmer error: %s", exc, extra=_log_context(request))
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.exception_handler(OperationalError)
async def storage_unavailable_handler(request: Request, exc: OperationalError):
    logger.error("Storage unavailable: %s", exc.__class__.__name__, extra=_log_context(request))
    return JSONResponse(status_code=503, content={"detail": "Storage unavailable"})


# ============================================================================
# Routers
# ============================================================================

from clinic_scheduling.routers import appointments

# Appointments (tenant-scoped)
app.include_router(appointments.router, prefix="/appointments", tags=["appointments"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health(request: Request):
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    database: Database = request.app.state.database
    with database.engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
