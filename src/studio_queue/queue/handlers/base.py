"""Handler interface and per-task execution context."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Protocol, TypeVar

from studio_queue.queue.backend.base import GenerationClient
from studio_queue.queue.models import Task
from studio_queue.queue.rate_limiter import RateLimiter
from studio_queue.queue.retry import RetryPolicy, Sleep, retry_operation

T = TypeVar("T")


@dataclass(slots=True)
class HandlerContext:
    """Everything a handler needs for one task, bound by the dispatcher."""

    api_key: str
    client: GenerationClient
    rate_limiter: RateLimiter
    retry_policy: RetryPolicy
    sleep: Sleep
    advance_progress: Callable[[int, int], int]

    async def retry(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        base_delay_seconds: float | None = None,
        description: str = "operation",
    ) -> T:
        policy = self.retry_policy
        if base_delay_seconds is not None:
            policy = replace(policy, base_delay_seconds=base_delay_seconds)
        return await retry_operation(
            operation,
            policy=policy,
            rate_limiter=self.rate_limiter,
            sleep=self.sleep,
            description=description,
        )


class TaskHandler(Protocol):
    """Strategy for one task kind; returns the result URL or raises."""

    async def execute(self, task: Task, context: HandlerContext) -> str:
        """Run the task to completion."""
