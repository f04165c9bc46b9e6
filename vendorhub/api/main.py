from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from vendorhub.core.deps import get_storage
from vendorhub.core.errors import (
    AccessDeniedError,
    BusinessError,
    ConfigurationError,
    ReferenceNotFoundError,
    StoreConnectionError,
    TransactionError,
    VendorHubError,
)
from vendorhub.core.logging import configure_logging, correlation_id_var, role_var, tenant_id_var
from vendorhub.core.settings import AppSettings, get_app_settings
from vendorhub.db.config import get_settings
from vendorhub.db.context import SecurityContext
from vendorhub.db.pool import ConnectionPool
from vendorhub.db.run_migrations import main as run_alembic
from vendorhub.db.scoped import ScopedExecutor
from vendorhub.db.seed import seed_categories, seed_sample_data
from vendorhub.schemas.common import ErrorInfo, ErrorResponse, MessageResponse
from vendorhub.storage.base import Storage
from vendorhub.storage.factory import build_storage
from vendorhub.storage.router import StorageRouter

# Routers
from vendorhub.api.routes.admin import router as admin_router
from vendorhub.api.routes.customers import router as customers_router

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "Health", "description": "Liveness and readiness checks."},
    {"name": "Customers", "description": "Vendor-scoped customer records."},
    {"name": "Admin", "description": "Cross-vendor aggregation for platform administrators."},
]


async def _build_storage(settings: AppSettings) -> Storage:
    """Create the pool (when any entity is routed to the database) and the storage router."""
    executor: Optional[ScopedExecutor] = None
    if settings.uses_database:
        db_settings = get_settings()
        pool = ConnectionPool.from_settings(db_settings)
        logger.info("Connecting to database %s", db_settings.safe_database_url)
        await pool.ping()
        executor = ScopedExecutor(pool)

        if settings.RUN_MIGRATIONS_ON_STARTUP:
            try:
                logger.info("Running Alembic migrations: upgrade head")
                # env.py drives its own event loop
                await asyncio.to_thread(run_alembic, ["upgrade", "head"])
                logger.info("Migrations completed.")
            except Exception as exc:
                logger.exception("Migration step failed: %s", exc)
                # Do not crash the app; readiness checks surface a broken schema.
    return build_storage(settings, executor)


def _lifespan(settings: AppSettings, provided: Optional[Storage]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        storage = provided if provided is not None else await _build_storage(settings)
        app.state.storage = storage

        if settings.AUTO_SEED:
            try:
                logger.info("Running seeding...")
                admin = SecurityContext.for_admin(actor_id="startup-seed")
                await seed_categories(storage, admin)
                await seed_sample_data(storage, admin)
                logger.info("Seeding completed.")
            except VendorHubError as exc:
                logger.exception("Seeding step failed: %s", exc)
                # Safe to continue without seed; environments may not require it.

        try:
            yield
        finally:
            # Injected storage belongs to the caller.
            if provided is None:
                await storage.close()

    return lifespan


def _build_error_response(
    request: Request,
    status_code: int,
    error_type: str,
    message: str,
    details: Any | None = None,
    retryable: bool = False,
) -> JSONResponse:
    """Build a standardized ErrorResponse JSONResponse."""
    ts = datetime.now(tz=timezone.utc)
    corr = getattr(request.state, "correlation_id", None)
    tenant = getattr(request.state, "tenant_id", None) or tenant_id_var.get()
    err = ErrorResponse(
        status=status_code,
        error=ErrorInfo(type=error_type, message=message, details=details, retryable=retryable),
        correlation_id=corr,
        tenant_id=tenant,
        path=request.url.path,
        method=request.method,
        timestamp=ts,
    )
    return JSONResponse(status_code=status_code, content=err.model_dump(mode="json"))


def _install_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AccessDeniedError)
    async def access_denied_handler(request: Request, exc: AccessDeniedError):
        return _build_error_response(request, 403, "access_denied", str(exc))

    @app.exception_handler(ReferenceNotFoundError)
    async def reference_not_found_handler(request: Request, exc: ReferenceNotFoundError):
        return _build_error_response(
            request, 404, "reference_not_found", str(exc), details={"kind": exc.kind, "id": exc.entity_id}
        )

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError):
        return _build_error_response(request, 409, "business_rule", str(exc))

    @app.exception_handler(StoreConnectionError)
    @app.exception_handler(TransactionError)
    async def store_unavailable_handler(request: Request, exc: VendorHubError):
        # Infrastructure details stay in the logs.
        logger.error("Store unavailable: %s", exc.__class__.__name__, exc_info=exc)
        return _build_error_response(
            request, 503, "service_unavailable", "Storage is temporarily unavailable", retryable=True
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        logger.error("Configuration error: %s", exc)
        return _build_error_response(request, 500, "configuration_error", "Service is misconfigured")

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """Global handler for HTTPException to produce a standardized error envelope."""
        detail = exc.detail if isinstance(exc.detail, str) else "HTTP Error"
        return _build_error_response(
            request=request,
            status_code=exc.status_code,
            error_type="http_error",
            message=str(detail),
            details=None if isinstance(exc.detail, str) else exc.detail,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Global handler for request validation errors with a standard structure."""
        return _build_error_response(
            request=request,
            status_code=422,
            error_type="validation_error",
            message="Request validation failed",
            details=exc.errors(),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        """Catch-all handler to avoid leaking stack traces and to return a structured error."""
        logger.exception("Unhandled error processing request")
        return _build_error_response(
            request=request,
            status_code=500,
            error_type="internal_error",
            message="An unexpected error occurred",
        )


# PUBLIC_INTERFACE
def create_app(settings: Optional[AppSettings] = None, storage: Optional[Storage] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters:
        settings: application settings; read from the environment when omitted.
        storage: a ready storage to serve from. When omitted the lifespan builds
            the pool, executor and router once and closes them at shutdown.
    """
    settings = settings or get_app_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        openapi_tags=openapi_tags,
        lifespan=_lifespan(settings, storage),
    )
    app.state.settings = settings
    # Available before startup so ASGI transports that skip the lifespan still serve requests.
    app.state.storage = storage

    # CORS - avoid wildcard with credentials
    cors_allow_credentials = settings.CORS_ALLOW_CREDENTIALS
    if settings.CORS_ORIGINS == ["*"] and cors_allow_credentials:
        logger.warning("CORS_ALLOW_CREDENTIALS=True with '*' origins is not permitted; disabling credentials.")
        cors_allow_credentials = False

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=cors_allow_credentials,
        allow_methods=settings.CORS_ALLOW_METHODS,
        allow_headers=settings.CORS_ALLOW_HEADERS,
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """
        Enrich request context with a correlation_id for logging and error responses.
        Adds 'X-Correlation-ID' to every response. Tenant and role are filled in
        once the bearer token has been resolved.
        """
        corr = request.headers.get("X-Correlation-ID") or request.headers.get("X-Request-ID") or str(uuid4())
        token_corr = correlation_id_var.set(corr)
        token_tenant = tenant_id_var.set(None)
        token_role = role_var.set(None)
        request.state.correlation_id = corr

        logger.info("Incoming request %s %s", request.method, request.url.path)
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token_corr)
            tenant_id_var.reset(token_tenant)
            role_var.reset(token_role)

        response.headers["X-Correlation-ID"] = corr
        return response

    _install_exception_handlers(app)

    api_v1 = APIRouter(prefix="/api/v1")

    # PUBLIC_INTERFACE
    @api_v1.get(
        "/health",
        response_model=MessageResponse,
        summary="Health Check",
        tags=["Health"],
    )
    def health_check(storage: Storage = Depends(get_storage)) -> MessageResponse:
        """
        Basic liveness health check endpoint.

        Returns:
            MessageResponse: confirmation that the service is running, with the active storage routes.
        """
        details = None
        if isinstance(storage, StorageRouter):
            details = {"routes": {k.value: v for k, v in storage.routes.items()}}
        return MessageResponse(message="Healthy", details=details)

    api_v1.include_router(customers_router)
    api_v1.include_router(admin_router)
    app.include_router(api_v1)
    return app


def _default_app() -> FastAPI:
    # Configure structured logging once at import
    configure_logging()
    return create_app()


app = _default_app()
