"""Main FastAPI application."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.api.v1 import api_router
from storefront.core.config import settings
from storefront.core.errors import (
    APIException,
    api_exception_handler,
    generic_exception_handler,
    http_exception_handler,
)
from storefront.core.logging_config import configure_logging
from storefront.core.middleware import (
    SecurityHeadersMiddleware,
    TokenRedactionMiddleware,
    install_token_redaction_logging,
)
from storefront.core.rate_limit import limiter, rate_limit_exceeded_handler
from storefront.db.session import AsyncSessionLocal, Base, engine
from storefront.scheduler import get_scheduler_status, shutdown_scheduler, start_scheduler
from storefront.schemas.common import HealthResponse

# Import models so they're registered with Base.metadata
from storefront.models import public_access_token  # noqa: F401


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    # Startup
    print(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Structured JSON logs for the log pipeline
    configure_logging()

    # Token values must never reach a log line, including uvicorn access logs
    install_token_redaction_logging()
    print(f"Environment: {settings.ENVIRONMENT} (token store: {settings.TOKEN_STORE})")

    # Only auto-create tables in development/local environments
    # In production, use Alembic migrations: alembic upgrade head
    if settings.TOKEN_STORE == "database" and settings.ENVIRONMENT in ("local", "development", "dev"):
        print("WARNING: Auto-creating database tables (development mode)")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        print("Database tables created/verified")

    if settings.TOKEN_CLEANUP_ENABLED:
        await start_scheduler()

    yield
    # Shutdown
    print("Shutting down...")
    await shutdown_scheduler()


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Public access tokens for emailed storefront links",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    docs_url=f"{settings.API_V1_PREFIX}/docs",
    redoc_url=f"{settings.API_V1_PREFIX}/redoc",
    lifespan=lifespan,
)

# Rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Standardized error bodies
app.add_exception_handler(APIException, api_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)

# CORS middleware - only the methods the API actually uses
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "X-Admin-Key", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)

# X-Content-Type-Options, X-Frame-Options, CSP, etc.
app.add_middleware(SecurityHeadersMiddleware)

# Added last so it runs outermost and its Referrer-Policy wins
app.add_middleware(TokenRedactionMiddleware)


# Health check endpoint
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Health check endpoint with real connectivity verification.

    Checks:
    - Database: Executes SELECT 1 (only when the database token store is used)
    - Scheduler: Whether the cleanup job is running

    Returns 503 Service Unavailable if the token store is unreachable.
    """
    is_production = settings.ENVIRONMENT == "production"
    db_status = "not_used"
    overall_status = "healthy"

    if settings.TOKEN_STORE == "database":
        try:
            async with AsyncSessionLocal() as session:
                await session.execute(text("SELECT 1"))
                db_status = "connected"
        except Exception as e:
            # Hide error details in production
            db_status = "error" if is_production else f"error: {str(e)[:50]}"
            overall_status = "unhealthy"

    response = HealthResponse(
        status=overall_status,
        version=settings.APP_VERSION,
        database=db_status,
        token_store=settings.TOKEN_STORE,
        scheduler=get_scheduler_status()["running"],
        timestamp=datetime.now(timezone.utc),
    )

    # Return 503 if unhealthy so load balancers can detect
    if overall_status == "unhealthy":
        return JSONResponse(
            status_code=503,
            content=response.model_dump(mode="json"),
        )

    return response


# Include API router
app.include_router(api_router, prefix=settings.API_V1_PREFIX)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }
