"""
Exponential backoff for throttled service calls.

ExponentialRetry is a stateful counter: the caller owns the loop, asks
should_try() before each attempt and awaits backoff() after a retryable
failure. retry_async() is the loop used by the ingestion resource manager and
the managed streaming client.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from core.errors.exceptions import (
    KustoClientError,
    RetriesExceededError,
    ThrottlingError,
    classify_exception,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ExponentialRetry:
    """
    Backoff counter with jitter.

    Sleep before attempt n+1 is ``sleep_base_secs * 2**n + uniform(0, max_jitter_secs)``.
    After ``attempt_count`` backoffs should_try() is False and the next
    backoff() raises RetriesExceededError.

    Args:
        attempt_count: Upper bound on the attempt counter (retry_async makes
            this many calls in total)
        sleep_base_secs: Base delay in seconds
        max_jitter_secs: Upper bound of the random jitter added to each delay
        sleep: Coroutine used to suspend (injectable for tests)
    """

    def __init__(
        self,
        attempt_count: int,
        sleep_base_secs: float,
        max_jitter_secs: float,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.attempt_count = int(attempt_count)
        self.sleep_base_secs = float(sleep_base_secs)
        self.max_jitter_secs = float(max_jitter_secs)
        self.current_attempt = 0
        self._sleep = sleep

    def should_try(self) -> bool:
        return self.current_attempt < self.attempt_count

    def next_delay(self) -> float:
        """Delay the next backoff() will sleep for, jitter included."""
        base = self.sleep_base_secs * (2**self.current_attempt)
        jitter = random.uniform(0, self.max_jitter_secs)
        return base + jitter

    async def backoff(self) -> None:
        if not self.should_try():
            raise RetriesExceededError(
                "Max retries exceeded",
                context={"max_attempts": self.attempt_count},
            )

        delay = self.next_delay()
        await self._sleep(delay)
        self.current_attempt += 1


@dataclass
class RetryConfig:
    """Configuration for throttling retries."""

    max_attempts: int = 4
    base_delay: float = 1.0
    max_jitter: float = 1.0

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_attempts = int(self.max_attempts)
        self.base_delay = float(self.base_delay)
        self.max_jitter = float(self.max_jitter)

    def new_retry(
        self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ) -> ExponentialRetry:
        return ExponentialRetry(self.max_attempts, self.base_delay, self.max_jitter, sleep=sleep)


DEFAULT_THROTTLING_RETRY = RetryConfig(max_attempts=4, base_delay=1.0, max_jitter=1.0)


def _is_throttling(error: Exception) -> bool:
    return isinstance(error, ThrottlingError)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    retry: ExponentialRetry,
    operation_name: str,
    should_retry: Callable[[Exception], bool] = _is_throttling,
) -> T:
    """
    Run ``operation`` up to ``retry.attempt_count`` times, backing off between
    attempts that fail with a retryable error.

    Non-retryable errors propagate unchanged. Exhaustion raises
    RetriesExceededError chained to the last retryable error.
    """
    last_error: Exception | None = None

    while retry.should_try():
        try:
            result = await operation()
        except Exception as e:
            if not should_retry(e):
                raise
            last_error = e
            if retry.current_attempt + 1 >= retry.attempt_count:
                break

            logger.warning(
                "Retryable error for %s, will retry",
                operation_name,
                extra={
                    "operation": operation_name,
                    "attempt": retry.current_attempt + 1,
                    "max_attempts": retry.attempt_count,
                    "error_type": type(e).__name__,
                    "error_message": str(e)[:200],
                },
            )
            await retry.backoff()
            continue

        if retry.current_attempt > 0:
            logger.info(
                "Retry succeeded for %s after %d attempts",
                operation_name,
                retry.current_attempt + 1,
                extra={
                    "operation": operation_name,
                    "attempt": retry.current_attempt + 1,
                },
            )
        return result

    extra = {
        "operation": operation_name,
        "max_attempts": retry.attempt_count,
    }
    if last_error is not None:
        extra.update(
            {
                "error_type": type(last_error).__name__,
                "error_category": classify_exception(last_error).value,
                "error_message": str(last_error)[:200],
            }
        )
    logger.error("Max retries exhausted for %s", operation_name, extra=extra)
    raise RetriesExceededError(
        f"Max retries exceeded for {operation_name}",
        cause=last_error,
        context={"operation": operation_name},
    ) from last_error


def is_transient_failure(error: Exception) -> bool:
    """True for any retryable error that isn't marked permanent."""
    if isinstance(error, KustoClientError):
        return error.is_retryable
    return classify_exception(error).value in ("transient", "unknown")


__all__ = [
    "ExponentialRetry",
    "RetryConfig",
    "DEFAULT_THROTTLING_RETRY",
    "retry_async",
    "is_transient_failure",
]
