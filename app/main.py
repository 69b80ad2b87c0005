"""
Application entry point.

Creates the FastAPI application and wires together:
- Routers (liveness probes, API health report)
- Error handlers (one renderer for every failure)
- Security middleware (headers, compression, CORS, size limit,
  rate limiting, parameter pollution, XSS sanitizing)
- Logging configuration
- Database and Redis connections (opened and closed by the lifespan)

No business logic belongs here.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import Settings, settings
from app.infrastructure.cache import RedisConnection
from app.infrastructure.database import DatabaseConnection
from app.interfaces.health import api_router as health_api_router
from app.interfaces.health import router as health_router
from app.shared.errors.exceptions import ServiceUnavailableError
from app.shared.errors.handlers import (
    ErrorRenderer,
    ErrorRenderingMiddleware,
    register_error_handlers,
)
from app.shared.logging import configure_logging
from app.shared.security.compression import CompressionMiddleware
from app.shared.security.headers import SecurityHeadersMiddleware
from app.shared.security.rate_limiting import RateLimitMiddleware, build_limiter
from app.shared.security.sanitization import (
    InputSanitizerMiddleware,
    ParameterPollutionMiddleware,
    RequestSizeLimitMiddleware,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: validate config, open and close connections."""
    app_settings: Settings = app.state.settings
    database: DatabaseConnection = app.state.database
    cache: RedisConnection = app.state.cache

    missing = app_settings.missing_required()
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")
    logger.info("Environment variables validated")

    try:
        await database.connect()
    except ServiceUnavailableError as exc:
        raise RuntimeError(f"MongoDB connection failed: {exc.cause}") from exc

    try:
        await cache.connect()
    except ServiceUnavailableError as exc:
        await database.disconnect()
        raise RuntimeError(f"Redis connection failed: {exc.cause}") from exc

    logger.info(
        "%s %s started (environment: %s)",
        app_settings.project_name,
        app_settings.version,
        app_settings.environment,
    )

    yield

    # Shutdown
    logger.info("Starting graceful shutdown...")
    try:
        await asyncio.wait_for(
            asyncio.gather(database.disconnect(), cache.disconnect()),
            timeout=app_settings.shutdown_timeout_seconds,
        )
    except asyncio.TimeoutError:
        logger.error("Forced shutdown after %.0fs timeout", app_settings.shutdown_timeout_seconds)
        return
    logger.info("MongoDB & Redis connections closed")


def create_app(
    app_settings: Settings | None = None,
    database: DatabaseConnection | None = None,
    cache: RedisConnection | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Registers routers, error handlers, and security middleware.
    This is the composition root of the application.

    Args:
        app_settings: Settings to use instead of the environment-loaded ones.
        database: Database connection to use instead of building one.
        cache: Redis connection to use instead of building one.

    Returns:
        A fully configured FastAPI application instance.
    """
    app_settings = app_settings or settings
    configure_logging(level=app_settings.log_level)

    app = FastAPI(
        title=app_settings.project_name,
        version=app_settings.version,
        docs_url="/docs" if app_settings.debug else None,
        redoc_url="/redoc" if app_settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = app_settings
    app.state.database = database or DatabaseConnection(app_settings.get_mongodb_uri())
    app.state.cache = cache or RedisConnection(
        host=app_settings.redis_host,
        port=app_settings.redis_port,
        password=app_settings.redis_password,
        db=app_settings.redis_db,
    )

    # --- Rate Limiting ---
    app.state.limiter = build_limiter(app_settings)

    # --- Middleware (last added runs first) ---
    app.add_middleware(ErrorRenderingMiddleware)
    app.add_middleware(InputSanitizerMiddleware)
    app.add_middleware(ParameterPollutionMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestSizeLimitMiddleware, max_bytes=app_settings.max_request_size_bytes)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        CompressionMiddleware,
        minimum_size=app_settings.compression_min_size,
        compresslevel=app_settings.compression_level,
    )
    app.add_middleware(SecurityHeadersMiddleware)

    # --- Error Handlers ---
    register_error_handlers(
        app,
        ErrorRenderer(
            development=app_settings.is_development,
            api_prefix=app_settings.api_prefix,
        ),
    )

    # --- Routers ---
    app.include_router(health_router)
    app.include_router(health_api_router, prefix=app_settings.api_prefix)

    return app


app = create_app()
