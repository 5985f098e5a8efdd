"""Timer-driven single-flight dispatcher for generation tasks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping
from enum import Enum

from studio_queue.config import DispatchSettings
from studio_queue.queue.backend.base import GenerationClient
from studio_queue.queue.errors import MissingCredentialError
from studio_queue.queue.events import QueueEvent, QueueEventKind, QueueEvents
from studio_queue.queue.failure_classifier import classify_failure
from studio_queue.queue.handlers.base import HandlerContext, TaskHandler
from studio_queue.queue.models import (
    DispatchSummary,
    FailureClass,
    Task,
    TaskCreate,
    TaskKind,
)
from studio_queue.queue.rate_limiter import RateLimiter
from studio_queue.queue.retry import RetryPolicy, Sleep
from studio_queue.queue.store import RemovalResult, TaskQueue

logger = logging.getLogger(__name__)

INITIAL_PROGRESS = 5


class TickOutcome(str, Enum):
    """What one timer tick did."""

    BUSY = "busy"
    PAUSED = "paused"
    IDLE = "idle"
    MISSING_CREDENTIAL = "missing_credential"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ERROR = "error"


class Dispatcher:
    """Advances exactly one queued task at a time.

    Every tick re-reads the queue, so submissions and removals made between
    ticks are always seen. A tick that finds a processing task, or finds the
    previous tick still holding the local lock, does nothing.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        queue: TaskQueue,
        handlers: Mapping[TaskKind, TaskHandler],
        client_factory: Callable[[str], GenerationClient],
        credential_provider: Callable[[], str | None],
        rate_limiter: RateLimiter | None = None,
        events: QueueEvents | None = None,
        retry_policy: RetryPolicy | None = None,
        settings: DispatchSettings | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        missing = [kind.value for kind in TaskKind if kind not in handlers]
        if missing:
            raise ValueError(f"No handler registered for task kind(s): {', '.join(missing)}")
        self.queue = queue
        self.handlers = dict(handlers)
        self.client_factory = client_factory
        self.credential_provider = credential_provider
        self.rate_limiter = rate_limiter or RateLimiter()
        self.events = events or QueueEvents()
        self.retry_policy = retry_policy or RetryPolicy()
        self.settings = settings or DispatchSettings()
        self.summary = DispatchSummary()
        self._sleep = sleep
        self._paused = False
        self._tick_in_progress = False
        self._stop_requested = False
        self._inflight: set[asyncio.Task[TickOutcome]] = set()

    @property
    def paused(self) -> bool:
        return self._paused

    def pause(self) -> None:
        if not self._paused:
            logger.info("Queue paused")
        self._paused = True

    def resume(self) -> None:
        if self._paused:
            logger.info("Queue resumed")
        self._paused = False
        self.summary.paused = False

    def stop(self) -> None:
        self._stop_requested = True

    def enqueue(self, tasks: Iterable[TaskCreate]) -> list[Task]:
        return self.queue.enqueue(tasks)

    def remove(self, task_id: str) -> RemovalResult:
        return self.queue.remove(task_id)

    def clear(self) -> int:
        return self.queue.clear()

    def snapshot(self) -> list[Task]:
        return self.queue.snapshot()

    async def tick(self) -> TickOutcome:
        """Pick the oldest pending task and run it to a terminal status."""

        if self._tick_in_progress or self.queue.processing_task() is not None:
            return self._record(TickOutcome.BUSY)
        if self._paused:
            return self._record(TickOutcome.PAUSED)

        task = self.queue.next_pending()
        if task is None:
            return self._record(TickOutcome.IDLE)

        self._tick_in_progress = True
        try:
            return self._record(await self._process(task))
        finally:
            self._tick_in_progress = False

    async def run(self, *, until_drained: bool = False) -> DispatchSummary:
        """Spawn one tick per interval until stopped, or until the queue drains.

        Args:
            until_drained: Return once no task is pending or processing and
                no tick is running, or as soon as the queue pauses.
        """

        self._stop_requested = False
        while not self._stop_requested:
            if until_drained and self._drained():
                break
            self._spawn_tick()
            await asyncio.sleep(self.settings.tick_interval_seconds)
        await self._wait_inflight()
        return self.summary

    async def run_until_drained(self) -> DispatchSummary:
        return await self.run(until_drained=True)

    async def _process(self, task: Task) -> TickOutcome:
        api_key = self.credential_provider()
        if not api_key:
            self._pause_for_missing_credential()
            return TickOutcome.MISSING_CREDENTIAL

        running = self.queue.mark_processing(task.task_id, progress=INITIAL_PROGRESS)
        logger.info("Processing %s task %s (%s)", task.kind.value, task.task_id, task.label)
        try:
            result_url = await self._execute(running, api_key)
        except Exception as error:  # noqa: BLE001
            self._fail(running, error)
            return TickOutcome.FAILED

        finished = self.queue.complete(task.task_id, result_url=result_url)
        self.rate_limiter.record_request()
        logger.info("Task %s completed", task.task_id)
        self.events.publish(
            QueueEvent(
                kind=QueueEventKind.TASK_COMPLETED,
                message=f"Task {task.task_id} completed",
                task=finished,
            ),
        )
        return TickOutcome.SUCCEEDED

    async def _execute(self, task: Task, api_key: str) -> str:
        """Run the kind handler with a client that is closed once the task settles."""

        client = self.client_factory(api_key)
        try:
            context = HandlerContext(
                api_key=api_key,
                client=client,
                rate_limiter=self.rate_limiter,
                retry_policy=self.retry_policy,
                sleep=self._sleep,
                advance_progress=lambda step, cap: self.queue.advance_progress(
                    task.task_id,
                    step=step,
                    cap=cap,
                ),
            )
            return await self.handlers[task.kind].execute(task, context)
        finally:
            await client.aclose()

    def _fail(self, task: Task, error: Exception) -> None:
        classification = classify_failure(error)
        logger.warning(
            "Task %s failed (%s): %s",
            task.task_id,
            classification.failure_class.value,
            error,
        )
        failed = self.queue.fail(
            task.task_id,
            failure_class=classification.failure_class,
            reason=classification.label,
            error_summary=str(error) or type(error).__name__,
        )
        self.summary.failures.append(f"{task.task_id}: {failed.label}")
        self.events.publish(
            QueueEvent(
                kind=QueueEventKind.TASK_FAILED,
                message=f"Task {task.task_id} failed: {classification.label}",
                task=failed,
                details=classification.to_event_details(),
            ),
        )

    def _pause_for_missing_credential(self) -> None:
        error = MissingCredentialError("Queue paused: missing API key")
        logger.error("%s", error)
        self.pause()
        self.summary.paused = True
        self.events.publish(
            QueueEvent(
                kind=QueueEventKind.QUEUE_PAUSED,
                message=str(error),
                details={"failure_class": FailureClass.CONFIG_ERROR.value},
            ),
        )

    def _record(self, outcome: TickOutcome) -> TickOutcome:
        if outcome in (TickOutcome.SUCCEEDED, TickOutcome.FAILED):
            self.summary.processed += 1
        if outcome == TickOutcome.SUCCEEDED:
            self.summary.succeeded += 1
        elif outcome == TickOutcome.FAILED:
            self.summary.failed += 1
        elif outcome == TickOutcome.IDLE:
            self.summary.idle_ticks += 1
        elif outcome == TickOutcome.BUSY:
            self.summary.skipped_ticks += 1
        return outcome

    def _spawn_tick(self) -> None:
        pending = asyncio.create_task(self._guarded_tick())
        self._inflight.add(pending)
        pending.add_done_callback(self._inflight.discard)

    async def _guarded_tick(self) -> TickOutcome:
        try:
            return await self.tick()
        except Exception:
            logger.exception("Dispatcher tick failed")
            return TickOutcome.ERROR

    async def _wait_inflight(self) -> None:
        pending = list(self._inflight)
        if pending:
            await asyncio.gather(*pending)

    def _drained(self) -> bool:
        if self._paused:
            return True
        return not self.queue.has_open_work() and not self._tick_in_progress
