"""FastAPI application factory for the library service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..persistence.errors import NotFoundError, StorageError
from .auth import API_KEY_HEADER, APIKeyManager
from .config import LibraryConfig
from .core import LibraryService
from .middleware import CorrelationIdMiddleware, get_correlation_id
from .models import ErrorResponse
from .router import API_VERSIONS, build_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup/shutdown."""
    service: LibraryService = app.state.library_service
    logger.info(
        f"Starting library service: {service.books.count} books, "
        f"{service.users.count} users, {service.ledger.count} loans"
    )
    yield
    logger.info("Library service shutdown complete")


def _error_response(request: Request, status_code: int, detail: str, reason: str) -> JSONResponse:
    body = ErrorResponse(
        detail=detail,
        reason=reason,
        correlation_id=get_correlation_id(request),
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(request, 404, str(exc), "not_found")

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
        return _error_response(request, 500, "Got error while updating storage", "storage_error")


def create_library_app(
    config: LibraryConfig,
    **service_kwargs,
) -> FastAPI:
    """Create and configure the library FastAPI application.

    Stores are loaded here, so unreadable storage fails app creation.

    Args:
        config: LibraryConfig instance
        **service_kwargs: Additional kwargs passed to LibraryService

    Returns:
        Configured FastAPI application

    Raises:
        StorageError: If a persisted document exists but cannot be loaded
    """
    app = FastAPI(
        title="Library REST API",
        description="Books, users and loan history",
        version=__version__,
        lifespan=_lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(CorrelationIdMiddleware)
    _register_error_handlers(app)

    library_service = LibraryService(config, **service_kwargs)

    app.state.library_service = library_service
    app.state.api_key_manager = APIKeyManager(config.accepted_keys)
    app.state.config = config

    for version in API_VERSIONS:
        app.include_router(build_router(library_service, version), prefix=f"/api/{version}")

    @app.get("/")
    def index() -> dict:
        """Service overview (no auth required)."""
        return {
            "service": "library-ledger",
            "version": __version__,
            "docs": "/docs",
            "auth": f"send the API key in the {API_KEY_HEADER} header or ?api_key=",
            "versions": {
                f"/api/{name}": info.model_dump() for name, info in API_VERSIONS.items()
            },
        }

    @app.get("/healthz")
    def healthz() -> dict:
        """Health check with per-store status."""
        try:
            checks = library_service.health_checks()
            status = "ok"
        except Exception as e:
            logger.exception("Health check failed")
            checks = {"stores": {"status": "unhealthy", "error": str(e)}}
            status = "degraded"
        return {
            "status": status,
            "service": "library-ledger",
            "version": __version__,
            "checks": checks,
        }

    @app.get("/ready")
    def ready() -> dict:
        """Readiness probe."""
        return {"ready": True, "service": "library-ledger"}

    return app


def create_app_from_env() -> FastAPI:
    """Create app using environment variable configuration."""
    return create_library_app(LibraryConfig.from_env())


__all__ = ["create_library_app", "create_app_from_env"]
