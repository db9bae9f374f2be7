"""
Sportsblock API - Middleware
Custom middleware for cross-cutting concerns.

Provides:
- Request/response logging
- Global per-client rate limiting (Redis-backed with in-memory fallback)
- Origin-based CSRF protection for state-changing /api/ requests
- Security headers
- Request size limiting
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from sportsblock.resilience.rate_limit import (
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
    get_client_identifier,
)
from sportsblock.security.csrf import validate_csrf_origin

if TYPE_CHECKING:
    from starlette.datastructures import QueryParams

logger = structlog.get_logger(__name__)

SENSITIVE_PARAM_KEYS = frozenset({
    "token", "access_token", "password", "secret", "signature", "mac",
    "challenge", "session", "auth", "authorization", "key",
})


def sanitize_query_params(query_params: QueryParams | None) -> str | None:
    """Redact sensitive values while keeping parameter names for debugging."""
    if not query_params:
        return None

    sanitized: dict[str, str] = {}
    for key, value in query_params.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in SENSITIVE_PARAM_KEYS):
            sanitized[key] = "[REDACTED]"
        elif len(value) > 100:
            sanitized[key] = value[:100] + "...[truncated]"
        else:
            sanitized[key] = value

    return str(sanitized) if sanitized else None


def error_body(request: Request, message: str, code: str, **extra: Any) -> dict[str, Any]:
    """The JSON error envelope every failure response uses."""
    body: dict[str, Any] = {
        "success": False,
        "error": message,
        "code": code,
        "requestId": getattr(request.state, "request_id", None),
    }
    body.update(extra)
    return body


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log all requests and responses with timing information.
    """

    SKIP_PATHS = {"/health", "/ready", "/favicon.ico"}

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path in self.SKIP_PATHS:
            response: Response = await call_next(request)
            return response

        start_time = time.perf_counter()
        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            query=sanitize_query_params(request.query_params),
            client_ip=get_client_identifier(request),
        )

        response = await call_next(request)
        duration_ms = (time.perf_counter() - start_time) * 1000

        status_code = response.status_code
        log_level = "info" if status_code < 400 else "warning" if status_code < 500 else "error"
        getattr(logger, log_level)(
            "request_completed",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            duration_ms=round(duration_ms, 2),
        )

        response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Global per-client safety net on top of the per-action route limits.

    Counts every request from a client IP against a per-minute and a
    per-hour window.
    """

    EXEMPT_PATHS = {"/health", "/ready"}

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = 120,
        requests_per_hour: int = 3000,
        redis_url: str | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.limiter = limiter or RateLimiter(
            {
                "global_minute": RateLimitConfig(requests_per_minute, 60),
                "global_hour": RateLimitConfig(requests_per_hour, 3600),
            },
            redis_url=redis_url,
        )

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if request.url.path in self.EXEMPT_PATHS or request.method == "OPTIONS":
            response: Response = await call_next(request)
            return response

        client_ip = get_client_identifier(request)
        minute = await self.limiter.check(client_ip, "global_minute")
        if not minute.success:
            return self._rate_limit_response(request, minute)

        hour = await self.limiter.check(client_ip, "global_hour")
        if not hour.success:
            return self._rate_limit_response(request, hour)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(minute.limit)
        response.headers["X-RateLimit-Remaining"] = str(minute.remaining)
        return response

    def _rate_limit_response(self, request: Request, result: RateLimitResult) -> Response:
        retry_after = result.retry_after()
        logger.warning(
            "global_rate_limit_exceeded",
            path=request.url.path,
            client_ip=get_client_identifier(request),
            limit=result.limit,
        )
        return JSONResponse(
            status_code=429,
            content=error_body(
                request,
                "Rate limit exceeded",
                "RATE_LIMITED",
                retryAfter=retry_after,
            ),
            headers={"Retry-After": str(retry_after)},
        )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Add security headers to all responses.
    """

    def __init__(self, app: Any, enable_hsts: bool = False) -> None:
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response: Response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers["Permissions-Policy"] = "camera=(), geolocation=(), microphone=(), payment=()"

        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response


class CSRFProtectionMiddleware(BaseHTTPMiddleware):
    """
    Origin/Referer validation for state-changing requests under /api/.

    Cookie sessions are SameSite=lax, so the remaining cross-site surface
    is top-level form posts and fetches from allowed-looking pages; both
    carry an Origin or Referer header that must resolve to a trusted host.
    """

    PROTECTED_PREFIX = "/api/"

    def __init__(self, app: Any, enabled: bool = True, production: bool | None = None) -> None:
        super().__init__(app)
        self.enabled = enabled
        self.production = production

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        if not self.enabled or not request.url.path.startswith(self.PROTECTED_PREFIX):
            response: Response = await call_next(request)
            return response

        if not validate_csrf_origin(request.method, request.headers, production=self.production):
            logger.warning(
                "csrf_validation_failed",
                path=request.url.path,
                method=request.method,
                origin=request.headers.get("origin") or "none",
            )
            return JSONResponse(
                status_code=403,
                content=error_body(request, "Request blocked: invalid origin", "CSRF_ERROR"),
            )

        response = await call_next(request)
        return response


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Limit request body size.
    """

    def __init__(self, app: Any, max_content_length: int = 1024 * 1024) -> None:
        """
        Args:
            max_content_length: Maximum request body size in bytes (default 1MB)
        """
        super().__init__(app)
        self.max_content_length = max_content_length

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            if int(content_length) > self.max_content_length:
                return JSONResponse(
                    status_code=413,
                    content=error_body(
                        request,
                        "Request entity too large",
                        "PAYLOAD_TOO_LARGE",
                        maxSizeBytes=self.max_content_length,
                    ),
                )

        response: Response = await call_next(request)
        return response
