"""
Sportsblock - Structured Logging

Logging configuration using structlog.

Features:
- JSON output for production
- Console output for development
- Request correlation IDs bound through contextvars
- Masking of session cookies, signatures, passwords and key material
"""

from __future__ import annotations

import logging
import re
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import structlog
from structlog.typing import EventDict, WrappedLogger

SERVICE_NAME = "sportsblock-api"

SENSITIVE_KEYS = frozenset({
    "password",
    "passwd",
    "secret",
    "token",
    "authorization",
    "cookie",
    "signature",
    "challenge_mac",
    "mac",
    "private_key",
    "encrypted_keys",
    "encryption_iv",
    "encryption_salt",
    "session_value",
    "neo4j_password",
})

ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;]*m")


# =============================================================================
# Custom Processors
# =============================================================================

def add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add ISO8601 timestamp to log entry."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def add_service_info(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    return event_dict


def sanitize_sensitive_data(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Mask values whose key looks like a credential."""

    def _is_sensitive(key: str) -> bool:
        lowered = key.lower()
        if lowered in SENSITIVE_KEYS:
            return True
        return any(s in lowered for s in ("password", "secret", "token", "cookie", "private_key"))

    def _sanitize(obj: Any, depth: int = 0) -> Any:
        if depth > 10:
            return obj
        if isinstance(obj, dict):
            return {
                k: "[REDACTED]" if isinstance(k, str) and _is_sensitive(k) else _sanitize(v, depth + 1)
                for k, v in obj.items()
            }
        if isinstance(obj, list):
            return [_sanitize(item, depth + 1) for item in obj]
        return obj

    result: EventDict = _sanitize(event_dict)
    return result


def drop_color_codes(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Remove ANSI color codes for clean JSON output."""
    return {
        k: ANSI_ESCAPE.sub("", v) if isinstance(v, str) else v
        for k, v in event_dict.items()
    }


# =============================================================================
# Logging Configuration
# =============================================================================

def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    sanitize_logs: bool = True,
) -> None:
    """
    Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Use JSON format (for production)
        sanitize_logs: Mask sensitive data
    """
    processors: list[Any] = [
        add_service_info,
        add_timestamp,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.contextvars.merge_contextvars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if sanitize_logs:
        processors.append(sanitize_sensitive_data)

    if json_output:
        processors.append(drop_color_codes)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper()),
    )

    # Reduce noise from third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("neo4j").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger instance."""
    bound_logger: structlog.BoundLogger = structlog.get_logger(name)
    return bound_logger


# =============================================================================
# Context Management
# =============================================================================

def bind_context(**kwargs: Any) -> None:
    """Bind context variables that will appear in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


class LoggingContextMiddleware:
    """
    ASGI middleware that binds request context to every log line.

    Binds request_id (from X-Request-ID / X-Correlation-ID or generated),
    path and method. The id is also stored on request.state.request_id and
    echoed back in the X-Request-ID response header.
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = (
            headers.get(b"x-request-id", b"").decode()
            or headers.get(b"x-correlation-id", b"").decode()
            or str(uuid4())
        )
        scope.setdefault("state", {})["request_id"] = request_id

        bind_context(
            request_id=request_id,
            path=scope.get("path", ""),
            method=scope.get("method", ""),
        )

        async def send_with_request_id(message: Any) -> None:
            if message["type"] == "http.response.start":
                message["headers"] = [
                    *message.get("headers", []),
                    (b"x-request-id", request_id.encode()),
                ]
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            clear_context()


# =============================================================================
# Performance Logging
# =============================================================================

@contextmanager
def log_duration(
    logger: structlog.BoundLogger,
    operation: str,
    level: str = "info",
    **extra_context: Any,
) -> Iterator[None]:
    """
    Context manager to log operation duration.

    Usage:
        with log_duration(logger, "hive_feed_fetch", tag="hive-115814"):
            posts = await client.get_discussions_by_created(...)
    """
    start_time = time.monotonic()
    log_method = getattr(logger, level)

    try:
        yield
        log_method(
            f"{operation}_completed",
            duration_ms=round((time.monotonic() - start_time) * 1000, 2),
            **extra_context,
        )
    except Exception as e:
        logger.error(
            f"{operation}_failed",
            duration_ms=round((time.monotonic() - start_time) * 1000, 2),
            error=str(e),
            **extra_context,
        )
        raise


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "LoggingContextMiddleware",
    "log_duration",
    "sanitize_sensitive_data",
]
