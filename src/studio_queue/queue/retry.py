"""Exponential backoff for transient generation API failures."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from studio_queue.config import RetrySettings
from studio_queue.queue.failure_classifier import is_transient
from studio_queue.queue.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Attempt and delay policy: ``max_retries`` extra attempts after the first."""

    max_retries: int = 3
    base_delay_seconds: float = 2.0

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryPolicy:
        return cls(
            max_retries=settings.max_retries,
            base_delay_seconds=settings.base_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        return self.base_delay_seconds * (2**attempt)


async def retry_operation(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy | None = None,
    is_retryable: Callable[[BaseException], bool] = is_transient,
    rate_limiter: RateLimiter | None = None,
    sleep: Sleep = asyncio.sleep,
    description: str = "operation",
) -> T:
    """Run ``operation``, retrying transient failures with exponential backoff.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt.
        policy: Attempt count and base delay. Delay before retry ``n`` is
            ``base_delay * 2**n``.
        is_retryable: Classifier deciding whether a failure may be retried.
            Non-retryable errors propagate immediately.
        rate_limiter: When given, every retry (not the first attempt) is
            recorded, since it consumes quota too.
        sleep: Awaitable sleep used for backoff delays.
        description: Name used in log messages.

    Returns:
        The first successful result.

    Raises:
        The non-retryable error, or the last transient error once attempts
        are exhausted.
    """

    policy = policy or RetryPolicy()
    attempt = 0
    while True:
        if attempt > 0 and rate_limiter is not None:
            rate_limiter.record_request()
        try:
            return await operation()
        except Exception as error:
            if not is_retryable(error) or attempt >= policy.max_retries:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s hit a transient API error (%s). Retrying in %.1fs (attempt %d/%d)",
                description,
                error,
                delay,
                attempt + 1,
                policy.max_retries,
            )
            await sleep(delay)
            attempt += 1
