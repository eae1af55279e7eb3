"""
FastAPI application factory
"""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from boost_guard import __version__
from boost_guard.api.routes import boosts, health
from boost_guard.core.config import get_settings
from boost_guard.core.database import init_db
from boost_guard.core.errors import (BoostGuardError, ErrorCategory,
                                     http_status_for)
from boost_guard.core.logging_config import LoggingConfig
from boost_guard.core.middleware import LoggingContextMiddleware
from boost_guard.core.middleware_metrics import MetricsMiddleware
from boost_guard.services.status_service import StatusService

logger = LoggingConfig.get_logger(__name__)


def create_app(status_service: Optional[StatusService] = None, init_database: bool = True) -> FastAPI:
    """
    Build the application

    Args:
        status_service: Pre-built service (tests); built from settings otherwise
        init_database: Create ledger tables on startup
    """
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.app_name} in {settings.app_env} mode...")
        if init_database:
            init_db()

        owns_service = status_service is None
        if owns_service:
            from boost_guard.services.bootstrap import build_status_service
            app.state.status_service = build_status_service(settings)
        else:
            app.state.status_service = status_service

        yield

        logger.info(f"Shutting down {settings.app_name}...")
        if owns_service:
            await app.state.status_service.aclose()
        app.state.status_service = None

    app = FastAPI(
        title=settings.app_name,
        description="Boost strategy evaluation and claim signing",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(LoggingContextMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BoostGuardError)
    async def boost_guard_error_handler(request: Request, exc: BoostGuardError):
        """Typed errors keep their code and retryable flag on the wire"""
        if exc.category is ErrorCategory.NOT_FOUND:
            return JSONResponse(status_code=200, content=None)
        return JSONResponse(status_code=http_status_for(exc), content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Log unhandled errors"""
        if isinstance(exc, HTTPException):
            raise exc

        logger.error(
            "Unhandled exception",
            exc_info=exc,
            extra={
                "error": str(exc),
                "error_type": type(exc).__name__,
                "path": request.url.path,
                "method": request.method,
            }
        )
        return JSONResponse(
            status_code=500,
            content={
                "code": "internal_error",
                "message": str(exc),
                "type": type(exc).__name__,
            }
        )

    app.include_router(health.router)
    app.include_router(boosts.router)

    return app
