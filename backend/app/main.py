"""FastAPI application factory for the TalentBridge authentication backend."""
from __future__ import annotations

import contextlib
import logging
from typing import AsyncIterator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from backend.app.auth.models import AuthBase
from backend.app.auth.router import router as auth_router
from backend.app.auth.utils import EmailDispatcher, JWTManager
from backend.app.config import AppConfig, load_config
from backend.app.logs import configure_logging

LOGGER = logging.getLogger(__name__)


def _create_auth_engine(config: AppConfig) -> AsyncEngine:
    """Create the async engine backing the account store."""

    url = config.auth.database_url
    if url.startswith("sqlite"):
        # SQLite's default pool ignores pool_timeout.
        return create_async_engine(url, future=True)
    return create_async_engine(
        url,
        future=True,
        pool_timeout=config.auth.database_pool_timeout_seconds,
        pool_pre_ping=True,
    )


def create_app(
    config: AppConfig | None = None,
    email_dispatcher: Optional[EmailDispatcher] = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        config: Optional pre-loaded configuration. If omitted, the default
            configuration defined in config.yaml is used.
        email_dispatcher: Optional notifier replacing the SMTP dispatcher,
            mainly for tests.

    Returns:
        FastAPI: Configured FastAPI application.
    """

    resolved_config = config or load_config()
    configure_logging(resolved_config.logging)

    auth_engine = _create_auth_engine(resolved_config)

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        async with auth_engine.begin() as connection:
            await connection.run_sync(AuthBase.metadata.create_all)
        LOGGER.info(
            "Authentication store ready",
            extra={"environment": resolved_config.app.environment},
        )
        try:
            yield
        finally:
            await auth_engine.dispose()

    app = FastAPI(
        title=f"{resolved_config.app.name} API",
        version=resolved_config.app.version,
        lifespan=lifespan,
    )
    app.state.app_config = resolved_config
    app.state.auth_engine = auth_engine
    app.state.auth_session_factory = async_sessionmaker(auth_engine, expire_on_commit=False)
    app.state.auth_config = resolved_config.auth
    app.state.jwt_manager = JWTManager(resolved_config.auth.jwt)
    app.state.email_dispatcher = email_dispatcher or EmailDispatcher(
        resolved_config.auth.smtp, resolved_config.auth.otp
    )

    allowed_origins = resolved_config.app.allowed_origins
    if allowed_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        LOGGER.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Server error"},
        )

    @app.get("/health", tags=["system"], summary="Service health probe")
    def health() -> dict[str, str]:
        """Return service health information."""

        return {"status": "ok", "version": resolved_config.app.version}

    app.include_router(auth_router)
    return app


__all__ = ["create_app"]
