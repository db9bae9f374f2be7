"""
Per-action Rate Limiting

Fixed-window counters keyed by (action, identifier). Redis INCR/EXPIRE is
used when REDIS_URL is configured so limits hold across workers; otherwise
an in-process dict does the counting.
"""

from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError
from starlette.requests import Request

from sportsblock.config import Settings, get_settings

logger = structlog.get_logger(__name__)

CLEANUP_INTERVAL_SECONDS = 300


@dataclass(frozen=True)
class RateLimitConfig:
    limit: int
    window_seconds: int = 60


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset_at: float     # epoch seconds
    limit: int

    def retry_after(self, now: float | None = None) -> int:
        now = time.time() if now is None else now
        return max(1, math.ceil(self.reset_at - now))


def build_rate_limits(settings: Settings) -> dict[str, RateLimitConfig]:
    window = settings.rate_limit_window_seconds
    return {
        "likes": RateLimitConfig(settings.rate_limit_likes, window),
        "comments": RateLimitConfig(settings.rate_limit_comments, window),
        "follows": RateLimitConfig(settings.rate_limit_follows, window),
        "soft_sportsbites": RateLimitConfig(settings.rate_limit_soft_sportsbites, window),
        "soft_reactions": RateLimitConfig(settings.rate_limit_soft_reactions, window),
        "soft_poll_votes": RateLimitConfig(settings.rate_limit_soft_poll_votes, window),
        "soft_posts": RateLimitConfig(settings.rate_limit_soft_posts, window),
        "auth": RateLimitConfig(settings.rate_limit_auth, window),
    }


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """
    Fixed-window limiter.

    Usage:
        limiter = RateLimiter(build_rate_limits(settings))
        result = await limiter.check(user_id, "likes")
        if not result.success:
            ...
    """

    def __init__(
        self,
        limits: dict[str, RateLimitConfig],
        redis_url: str | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.limits = limits
        self._clock = clock
        self._windows: dict[str, _Window] = {}
        self._last_cleanup = clock()
        self._redis: Any = None
        if redis_url:
            self._redis = redis.from_url(redis_url, decode_responses=True)
            logger.info("rate_limit_redis_enabled")

    @property
    def uses_redis(self) -> bool:
        return self._redis is not None

    async def check(self, identifier: str, action: str) -> RateLimitResult:
        """
        Count one request for identifier against the action's limit.

        Raises:
            KeyError: If action has no configured limit
        """
        config = self.limits[action]
        key = f"ratelimit:{action}:{identifier}"

        if self._redis is not None:
            try:
                return await self._check_redis(key, config)
            except (RedisError, ConnectionError, TimeoutError, OSError) as e:
                logger.warning("redis_rate_limit_error", action=action, error=str(e))

        return self._check_memory(key, config)

    async def _check_redis(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        window_index = int(now // config.window_seconds)
        window_key = f"{key}:{window_index}"
        reset_at = float((window_index + 1) * config.window_seconds)

        pipe = self._redis.pipeline()
        pipe.incr(window_key)
        pipe.expire(window_key, config.window_seconds * 2)
        results = await pipe.execute()
        count = int(results[0])

        return RateLimitResult(
            success=count <= config.limit,
            remaining=max(0, config.limit - count),
            reset_at=reset_at,
            limit=config.limit,
        )

    def _check_memory(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        now = self._clock()
        self._cleanup(now)

        window = self._windows.get(key)
        if window is None or now >= window.reset_at:
            window = _Window(count=0, reset_at=now + config.window_seconds)
            self._windows[key] = window

        if window.count >= config.limit:
            return RateLimitResult(False, 0, window.reset_at, config.limit)

        window.count += 1
        return RateLimitResult(True, config.limit - window.count, window.reset_at, config.limit)

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < CLEANUP_INTERVAL_SECONDS:
            return
        self._last_cleanup = now
        expired = [key for key, window in self._windows.items() if now >= window.reset_at]
        for key in expired:
            del self._windows[key]
        if expired:
            logger.debug("rate_limit_windows_cleaned", removed=len(expired))

    def reset(self) -> None:
        self._windows.clear()

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(int(math.ceil(result.reset_at))),
    }


def get_client_identifier(request: Request) -> str:
    """Client IP: first x-forwarded-for hop, then x-real-ip, then the socket peer."""
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client:
        return request.client.host
    return "unknown"


_rate_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_settings()
        _rate_limiter = RateLimiter(build_rate_limits(settings), redis_url=settings.redis_url)
    return _rate_limiter


async def check_rate_limit(identifier: str, action: str) -> RateLimitResult:
    return await get_rate_limiter().check(identifier, action)


async def close_rate_limiter() -> None:
    global _rate_limiter
    if _rate_limiter is not None:
        await _rate_limiter.close()
        _rate_limiter = None


__all__ = [
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimiter",
    "build_rate_limits",
    "check_rate_limit",
    "close_rate_limiter",
    "get_client_identifier",
    "get_rate_limiter",
    "rate_limit_headers",
]
