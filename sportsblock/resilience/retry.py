"""
Retry with exponential backoff

Thin policy layer over tenacity: which errors are worth retrying, how long
to wait between attempts, and an httpx helper that turns retryable HTTP
statuses into exceptions so they go through the same policy.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

import httpx
import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

logger = structlog.get_logger(__name__)

T = TypeVar("T")

RETRYABLE_MESSAGE_MARKERS = ("429", "rate limit", "timeout", "econnreset")


@dataclass(frozen=True)
class RetryOptions:
    max_retries: int = 3
    initial_delay: float = 1.0      # seconds
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    retryable_statuses: frozenset[int] = field(
        default_factory=lambda: frozenset({429, 500, 502, 503, 504})
    )
    jitter: float = 0.3             # ±30% of the computed delay


DEFAULT_RETRY_OPTIONS = RetryOptions()


class RetryableHTTPError(Exception):
    """An HTTP response whose status is in the retryable set."""

    def __init__(self, status: int, reason: str = ""):
        self.status = status
        super().__init__(f"HTTP {status}: {reason}".rstrip(": "))


def calculate_delay(
    attempt: int,
    options: RetryOptions = DEFAULT_RETRY_OPTIONS,
    rand: Callable[[], float] = random.random,
) -> float:
    """
    Delay before retry number attempt (0-based).

    min(initial * multiplier**attempt, max_delay), then shifted by a random
    amount within ±jitter of itself. Never negative.
    """
    capped = min(options.initial_delay * options.backoff_multiplier**attempt, options.max_delay)
    if options.jitter > 0:
        offset = (rand() * 2 - 1) * capped * options.jitter
        return max(0.0, capped + offset)
    return capped


def is_retryable_error(exc: BaseException, options: RetryOptions = DEFAULT_RETRY_OPTIONS) -> bool:
    status = getattr(exc, "status", None)
    if status is None and isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
    if isinstance(status, int) and status in options.retryable_statuses:
        return True
    if isinstance(exc, httpx.TimeoutException):
        return True
    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    options: RetryOptions = DEFAULT_RETRY_OPTIONS,
    on_retry: Callable[[int, BaseException, float], None] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Call fn until it succeeds, at most max_retries + 1 times.

    Non-retryable errors propagate immediately; once attempts run out the
    last error propagates.

    Args:
        fn: Zero-argument coroutine function
        options: Backoff policy
        on_retry: Called with (attempt, error, delay) before each wait
        sleep: Awaitable sleep, replaceable in tests
    """

    def wait(state: RetryCallState) -> float:
        return calculate_delay(state.attempt_number - 1, options)

    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.info(
            "retrying_after_error",
            attempt=state.attempt_number,
            max_attempts=options.max_retries + 1,
            delay=round(delay, 3),
            error=str(error),
        )
        if on_retry and error is not None:
            on_retry(state.attempt_number, error, delay)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_retries + 1),
        wait=wait,
        retry=retry_if_exception(lambda e: is_retryable_error(e, options)),
        before_sleep=before_sleep,
        sleep=sleep,
        reraise=True,
    )
    return await retrying(fn)


async def fetch_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    options: RetryOptions = DEFAULT_RETRY_OPTIONS,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, retrying transport errors and retryable statuses."""

    async def attempt() -> httpx.Response:
        response = await client.request(method, url, **kwargs)
        if response.status_code in options.retryable_statuses:
            raise RetryableHTTPError(response.status_code, response.reason_phrase)
        return response

    return await retry_with_backoff(attempt, options)
