"""
FastAPI Main Application
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Mapping, Optional

from fastapi import FastAPI
from loguru import logger
from starlette.middleware.sessions import SessionMiddleware

from authgate.api import api_router
from authgate.common.exceptions import register_exception_handlers
from authgate.common.logging import LoggingMiddleware, setup_logging
from authgate.core.providers.component import setup_auth_providers
from authgate.core.providers.strategies.base import UserIdentityService
from authgate.core.session import SessionManager
from authgate.core.settings import Settings
from authgate.core.settings import settings as default_settings
from authgate.core.tokens import AccessTokenStore


def create_app(
    identity_service: UserIdentityService,
    token_store: Optional[AccessTokenStore] = None,
    providers: Optional[Mapping[str, Any]] = None,
    settings: Optional[Settings] = None,
    session_manager: Optional[SessionManager] = None,
) -> FastAPI:
    """
    Create an app with the configured auth providers installed.

    Args:
        identity_service: Finds or creates users from provider profiles
        token_store: Looks up access tokens by id (header, query, cookie)
        providers: Provider name to options; read from ``settings.providers_dir`` when None
        settings: Defaults to the module level settings
        session_manager: Defaults to the Starlette session based manager

    Raises:
        ConfigurationError: Fatal provider configuration error (duplicate name or strict setup)
    """
    settings = settings or default_settings
    setup_logging(level=settings.log_level, log_dir=settings.log_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        """Application Lifecycle"""
        logger.info(f"🚀 Starting {settings.app_name} v{settings.app_version}")
        logger.info(f"   Environment: {settings.environment}")
        logger.info(f"   Debug: {settings.debug}")

        if settings.environment == "production" and "localhost" in settings.server_base_url:
            logger.warning(
                "⚠️  WARNING: You are running in 'production' environment, but SERVER_BASE_URL "
                "contains 'localhost'. Provider callback URLs will not be reachable!"
            )

        registry = app.state.provider_registry
        logger.info(f"   ✓ {len(registry)} auth providers ready")

        yield

        logger.info("👋 Application shutdown")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        docs_url="/docs" if settings.debug or settings.environment == "development" else None,
        redoc_url="/redoc" if settings.debug or settings.environment == "development" else None,
        lifespan=lifespan,
    )

    # Exception handling
    register_exception_handlers(app)

    # Add logging middleware
    app.add_middleware(LoggingMiddleware)

    if settings.enable_session_support and settings.session_secret:
        app.add_middleware(
            SessionMiddleware,
            secret_key=settings.session_secret,
            session_cookie=settings.session_cookie,
            same_site=settings.cookie_samesite,
            https_only=settings.cookie_secure_effective,
        )

    # Provider listing endpoints
    app.include_router(api_router, prefix=settings.management_prefix)

    setup_auth_providers(
        app,
        identity_service=identity_service,
        token_store=token_store,
        providers=providers,
        settings=settings,
        session_manager=session_manager,
    )

    return app
