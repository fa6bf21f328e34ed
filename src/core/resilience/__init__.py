"""
Resilience patterns module.

Components:
    - ExponentialRetry: Backoff counter with jitter
    - RetryConfig: Throttling retry configuration
    - retry_async: Caller-side retry loop built on ExponentialRetry
"""

from .retry import (
    DEFAULT_THROTTLING_RETRY,
    ExponentialRetry,
    RetryConfig,
    is_transient_failure,
    retry_async,
)

__all__ = [
    "ExponentialRetry",
    "RetryConfig",
    "DEFAULT_THROTTLING_RETRY",
    "retry_async",
    "is_transient_failure",
]
