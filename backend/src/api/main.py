"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from api.routers import auth, desktop, health, profiles, users
from core.config import get_settings
from core.identity_provider import DiscordIdentityProvider, set_identity_provider
from core.storage import S3BlobStorage, set_blob_storage
from db.session import create_tables
from services.exceptions import AuthError, ServiceError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()
    logging.basicConfig(
        level=app_settings.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Startup: schema
    await create_tables()

    # Startup: shared HTTP client for the identity provider
    http_client = httpx.AsyncClient(timeout=app_settings.http_timeout_seconds)
    set_identity_provider(DiscordIdentityProvider.from_settings(app_settings, http_client))

    # Startup: archive storage
    if app_settings.s3_bucket:
        set_blob_storage(S3BlobStorage.from_settings(app_settings))
    else:
        logger.warning("S3_BUCKET is not set; profile storage endpoints will return 503")

    yield

    # Shutdown
    set_blob_storage(None)
    set_identity_provider(None)
    await http_client.aclose()


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request and add security headers to response."""
        response = await call_next(request)
        # HSTS: enforce HTTPS for 1 year, including subdomains
        response.headers["Strict-Transport-Security"] = (
            "max-age=31536000; includeSubDomains"
        )
        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"
        # Prevent clickjacking
        response.headers["X-Frame-Options"] = "DENY"
        return response


app_settings = get_settings()

app = FastAPI(
    title="Profile Sync API",
    description="Discord login and profile synchronization for the desktop mod manager.",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(ServiceError)
async def service_error_handler(_request: Request, exc: ServiceError) -> JSONResponse:
    """Render service errors as {"detail": message} with their status code."""
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthError) else None
    if exc.status_code >= 500:
        logger.warning("Request failed with %s: %s", exc.status_code, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message},
        headers=headers,
    )


# asyncpg surfaces connect and command timeouts as the builtin TimeoutError,
# and refused or dropped connections as OSError, without SQLAlchemy wrapping
@app.exception_handler(OperationalError)
@app.exception_handler(PoolTimeoutError)
@app.exception_handler(TimeoutError)
@app.exception_handler(OSError)
async def database_unavailable_handler(_request: Request, exc: Exception) -> JSONResponse:
    """Report database outages, driver timeouts and pool exhaustion as retryable 503s."""
    logger.error("Database unavailable: %s", exc, exc_info=exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Database is unavailable. Please try again later."},
    )


# Security headers middleware (runs after CORS, adds headers to responses)
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(profiles.router)
app.include_router(desktop.router)
