"""
Sportsblock Resilience

Circuit breakers for upstream Hive nodes, retry with backoff, and
per-action rate limiting.
"""

from sportsblock.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerError,
    CircuitState,
    get_circuit_registry,
    hive_node_breaker,
)
from sportsblock.resilience.rate_limit import (
    RateLimitConfig,
    RateLimiter,
    RateLimitResult,
    check_rate_limit,
    close_rate_limiter,
    get_client_identifier,
    get_rate_limiter,
    rate_limit_headers,
)
from sportsblock.resilience.retry import (
    RetryableHTTPError,
    RetryOptions,
    calculate_delay,
    fetch_with_retry,
    is_retryable_error,
    retry_with_backoff,
)

__all__ = [
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitState",
    "RateLimitConfig",
    "RateLimitResult",
    "RateLimiter",
    "RetryOptions",
    "RetryableHTTPError",
    "calculate_delay",
    "check_rate_limit",
    "fetch_with_retry",
    "close_rate_limiter",
    "get_circuit_registry",
    "get_client_identifier",
    "get_rate_limiter",
    "hive_node_breaker",
    "is_retryable_error",
    "rate_limit_headers",
    "retry_with_backoff",
]
