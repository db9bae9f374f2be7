"""
Sportsblock - FastAPI Application Factory
Main entry point for the Sportsblock API.

This creates and configures the FastAPI application with:
- All routes (auth, content, social, notifications, feed, hive, system)
- Middleware (request context, logging, rate limiting, CSRF, security headers)
- Error handlers rendering one JSON envelope
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from sentry_sdk._types import Event as SentryEvent

import sentry_sdk
import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from neo4j.exceptions import DriverError, Neo4jError, ServiceUnavailable, SessionExpired, TransientError
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.exceptions import HTTPException as StarletteHTTPException

from sportsblock import __version__
from sportsblock.api.middleware import (
    CSRFProtectionMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    RequestSizeLimitMiddleware,
    SecurityHeadersMiddleware,
    error_body,
)
from sportsblock.config import get_settings
from sportsblock.database.client import Neo4jClient
from sportsblock.database.schema import SchemaManager
from sportsblock.hive.client import close_hive_client
from sportsblock.monitoring import LoggingContextMiddleware, configure_logging
from sportsblock.resilience.rate_limit import close_rate_limiter

# Configure logging early - before any other logging occurs
_settings = get_settings()

STATUS_CODES = {
    400: "VALIDATION_ERROR",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    413: "PAYLOAD_TOO_LARGE",
    429: "RATE_LIMITED",
    502: "UPSTREAM_ERROR",
    503: "SERVICE_UNAVAILABLE",
    504: "TIMEOUT",
}


def error_code_for(status_code: int) -> str:
    return STATUS_CODES.get(status_code, "INTERNAL_ERROR")


def _sentry_before_send(
    event: SentryEvent,
    hint: dict[str, Any],
) -> SentryEvent | None:
    """Filter out health check endpoint errors from Sentry."""
    request_data = event.get("request")
    url = ""
    if isinstance(request_data, dict):
        url_value = request_data.get("url", "")
        if isinstance(url_value, str):
            url = url_value
    if "/health" in url or "/ready" in url:
        return None
    return event


_sentry_initialized = False
if _settings.sentry_dsn:
    sentry_sdk.init(
        dsn=_settings.sentry_dsn,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        traces_sample_rate=0.1 if _settings.is_production else 1.0,
        environment=_settings.app_env,
        release=f"sportsblock-api@{__version__}",
        send_default_pii=False,
        before_send=_sentry_before_send,
    )
    _sentry_initialized = True

configure_logging(
    level=_settings.log_level,
    json_output=_settings.is_production,
    sanitize_logs=True,
)

logger = structlog.get_logger(__name__)

if _sentry_initialized:
    logger.info("sentry_initialized", environment=_settings.app_env)
else:
    logger.debug("sentry_not_configured", hint="Set SENTRY_DSN to enable error tracking")


class SportsblockApp:
    """
    Sportsblock application container.

    Holds the long-lived components routes reach through request.app.state.
    """

    def __init__(self) -> None:
        self.settings = get_settings()
        self.db_client: Neo4jClient | None = None
        self.started_at: datetime | None = None
        self.is_ready: bool = False

    async def initialize(self) -> None:
        """
        Connect the store and apply the schema.

        A store that cannot be reached leaves the API running degraded:
        /health reports it and store-backed routes answer 503.
        """
        logger.info("sportsblock_initializing", env=self.settings.app_env)

        client = Neo4jClient()
        try:
            await client.connect()
            self.db_client = client
            logger.info("database_connected")
        except (Neo4jError, DriverError, OSError) as e:
            logger.critical("database_connection_failed", error=str(e))
            self.db_client = None

        if self.db_client is not None:
            try:
                await SchemaManager(self.db_client).setup_all()
            except (Neo4jError, DriverError) as e:
                logger.error("schema_setup_failed", error=str(e))

        self.started_at = datetime.now(UTC)
        self.is_ready = self.db_client is not None
        logger.info("sportsblock_initialized", database=self.db_client is not None)

    async def shutdown(self) -> None:
        logger.info("sportsblock_shutting_down")
        self.is_ready = False

        await close_hive_client()
        await close_rate_limiter()

        if self.db_client is not None:
            await self.db_client.close()
            self.db_client = None

        logger.info("sportsblock_shutdown_complete")

    def get_status(self) -> dict[str, Any]:
        return {
            "status": "ready" if self.is_ready else "starting",
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "database": "connected"
            if self.db_client is not None and self.db_client.is_connected
            else "disconnected",
        }


# Global app instance
sportsblock_app = SportsblockApp()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    try:
        await sportsblock_app.initialize()
        yield
    finally:
        await sportsblock_app.shutdown()


def _split_detail(detail: Any) -> tuple[str, dict[str, Any]]:
    """HTTPException detail to (message, extra envelope fields)."""
    if isinstance(detail, dict):
        extra = dict(detail)
        message = str(extra.pop("error", None) or extra.get("message") or "Request failed")
        return message, extra
    return str(detail), {}


def create_app(
    title: str = "Sportsblock API",
    version: str = __version__,
    docs_url: str | None = "/docs",
    redoc_url: str | None = "/redoc",
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        title: API title for documentation
        version: API version string
        docs_url: Swagger UI URL (None to disable)
        redoc_url: ReDoc URL (None to disable)

    Returns:
        Configured FastAPI application
    """
    settings = get_settings()

    if settings.is_production:
        docs_url = None
        redoc_url = None

    app = FastAPI(
        title=title,
        description="Custodial social layer over the Hive blockchain",
        version=version,
        docs_url=docs_url,
        redoc_url=redoc_url,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "auth", "description": "Session cookie, wallet challenge and custodial login"},
            {"name": "content", "description": "Soft posts, sportsbites and comments"},
            {"name": "social", "description": "Likes, follows, reactions and poll votes"},
            {"name": "notifications", "description": "In-app notifications"},
            {"name": "feed", "description": "Unified Hive + soft post feed"},
            {"name": "hive", "description": "HIVE Power status and unsigned operations"},
            {"name": "system", "description": "Health and readiness"},
        ],
    )

    app.state.sportsblock = sportsblock_app

    # Order matters: the last middleware added runs first. Security headers
    # wrap the CSRF, size and rate limit rejections too.
    app.add_middleware(CSRFProtectionMiddleware, production=settings.is_production)
    app.add_middleware(RequestSizeLimitMiddleware, max_content_length=1024 * 1024)
    if settings.rate_limit_enabled:
        app.add_middleware(
            RateLimitMiddleware,
            requests_per_minute=settings.rate_limit_requests_per_minute,
            requests_per_hour=settings.rate_limit_requests_per_hour,
            redis_url=settings.redis_url,
        )
    app.add_middleware(SecurityHeadersMiddleware, enable_hsts=settings.is_production)
    app.add_middleware(RequestLoggingMiddleware)

    cors_origins = settings.cors_origins_list
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["Content-Type", "X-Request-ID", "X-User-ID"],
            expose_headers=["X-Request-ID", "Retry-After"],
        )
    else:
        logger.warning("cors_origins_empty")

    app.add_middleware(LoggingContextMiddleware)

    # Exception handlers
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        message, extra = _split_detail(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(request, message, error_code_for(exc.status_code), **extra),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        # Field location and error type only, never the submitted values
        details = [
            {
                "loc": list(error.get("loc", [])),
                "type": error.get("type", "unknown"),
                "msg": error.get("msg", "Validation failed"),
            }
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content=error_body(request, "Invalid request", "VALIDATION_ERROR", details=details),
        )

    @app.exception_handler(ServiceUnavailable)
    async def database_unavailable_handler(
        request: Request, exc: ServiceUnavailable
    ) -> JSONResponse:
        logger.error("database_unavailable", path=str(request.url.path), error=str(exc))
        return JSONResponse(
            status_code=503,
            content=error_body(
                request, "Database temporarily unavailable", "SERVICE_UNAVAILABLE", retryAfter=5
            ),
            headers={"Retry-After": "5"},
        )

    @app.exception_handler(SessionExpired)
    async def database_session_expired_handler(
        request: Request, exc: SessionExpired
    ) -> JSONResponse:
        logger.warning("database_session_expired", path=str(request.url.path), error=str(exc))
        return JSONResponse(
            status_code=503,
            content=error_body(
                request, "Database session expired, please retry", "SERVICE_UNAVAILABLE", retryAfter=1
            ),
            headers={"Retry-After": "1"},
        )

    @app.exception_handler(TransientError)
    async def database_transient_error_handler(
        request: Request, exc: TransientError
    ) -> JSONResponse:
        logger.warning("database_transient_error", path=str(request.url.path), error=str(exc))
        return JSONResponse(
            status_code=503,
            content=error_body(
                request,
                "Database temporarily unavailable, please retry",
                "SERVICE_UNAVAILABLE",
                retryAfter=2,
            ),
            headers={"Retry-After": "2"},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_exception", path=str(request.url.path), error=str(exc))
        return JSONResponse(
            status_code=500,
            content=error_body(request, "Internal server error", "INTERNAL_ERROR"),
        )

    # Include routers
    from sportsblock.api.routes import (
        auth,
        comments,
        follows,
        hive,
        likes,
        notifications,
        poll_votes,
        posts,
        reactions,
        sportsbites,
        system,
    )

    app.include_router(auth.router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(posts.router, prefix="/api/v1", tags=["content"])
    app.include_router(sportsbites.router, prefix="/api/v1/soft", tags=["content"])
    app.include_router(comments.router, prefix="/api/v1/soft", tags=["content"])
    app.include_router(likes.router, prefix="/api/v1/soft", tags=["social"])
    app.include_router(follows.router, prefix="/api/v1/soft", tags=["social"])
    app.include_router(reactions.router, prefix="/api/v1/soft", tags=["social"])
    app.include_router(poll_votes.router, prefix="/api/v1/soft", tags=["social"])
    app.include_router(notifications.router, prefix="/api/v1/soft", tags=["notifications"])
    app.include_router(hive.router, prefix="/api/v1/hive", tags=["hive"])
    app.include_router(system.router, tags=["system"])

    @app.get("/", include_in_schema=False)
    async def root() -> dict[str, Any]:
        return {"name": title, "version": version, "status": sportsblock_app.get_status()}

    logger.info("fastapi_app_created", title=title, version=version, docs_url=docs_url)

    return app


# Default app for uvicorn
app = create_app()


def run_server(
    host: str = "0.0.0.0",  # nosec B104 - intentional bind-all for container deployment
    port: int = 8000,
    reload: bool = False,
    workers: int = 1,
) -> None:
    """
    Run the Sportsblock server.

    For development use:
        python -m sportsblock.api.app

    For production use:
        uvicorn sportsblock.api.app:app --host 0.0.0.0 --port 8000 --workers 4
    """
    import uvicorn

    uvicorn.run(
        "sportsblock.api.app:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level="info",
    )


if __name__ == "__main__":
    run_server(host=_settings.api_host, port=_settings.api_port, reload=_settings.debug)
