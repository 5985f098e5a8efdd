"""In-memory task queue owned by the dispatcher and read by observers."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import replace
from enum import Enum

from studio_queue.queue.errors import InvalidTransitionError, UnknownTaskError
from studio_queue.queue.models import (
    PAYLOAD_TYPES,
    FailureClass,
    Task,
    TaskCreate,
    TaskStatus,
)

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.PROCESSING}),
    TaskStatus.PROCESSING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
}


class RemovalResult(str, Enum):
    REMOVED = "removed"
    DEFERRED = "deferred"
    NOT_FOUND = "not_found"


class TaskQueue:
    """Append/patch-only task list.

    Callers only ever get copies from :meth:`snapshot` and :meth:`get`, so a
    stale view stays internally consistent while the queue moves on. Status
    writes go through the transition table; anything else raises
    :class:`InvalidTransitionError`.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._tasks: list[Task] = []
        self._sequence = 0
        self._deferred_removals: set[str] = set()

    def enqueue(self, tasks: Iterable[TaskCreate]) -> list[Task]:
        """Append tasks in the given order and return their queued views.

        The batch is validated as a whole first; a rejected batch queues nothing.
        """

        items = list(tasks)
        for item in items:
            _validate_create(item)

        created: list[Task] = []
        for item in items:
            self._sequence += 1
            task = Task(
                task_id=uuid.uuid4().hex,
                kind=item.kind,
                payload=item.payload,
                label=item.label,
                created_at=item.created_at if item.created_at is not None else self._clock(),
                sequence=self._sequence,
                thumbnail=item.thumbnail,
            )
            self._tasks.append(task)
            created.append(replace(task))
        if created:
            logger.info("Enqueued %d task(s)", len(created))
        return created

    def snapshot(self) -> list[Task]:
        return [replace(task) for task in self._tasks]

    def get(self, task_id: str) -> Task | None:
        task = self._find(task_id)
        return replace(task) if task is not None else None

    def __len__(self) -> int:
        return len(self._tasks)

    def processing_task(self) -> Task | None:
        for task in self._tasks:
            if task.status == TaskStatus.PROCESSING:
                return replace(task)
        return None

    def next_pending(self) -> Task | None:
        """Oldest pending task by ``created_at``, ties broken by enqueue order."""

        pending = [task for task in self._tasks if task.status == TaskStatus.PENDING]
        if not pending:
            return None
        return replace(min(pending, key=lambda task: (task.created_at, task.sequence)))

    def has_open_work(self) -> bool:
        return any(not task.status.is_terminal for task in self._tasks)

    def count(self, status: TaskStatus) -> int:
        return sum(1 for task in self._tasks if task.status == status)

    def mark_processing(self, task_id: str, *, progress: int) -> Task:
        task = self._require(task_id)
        self._transition(task, TaskStatus.PROCESSING)
        task.progress = max(task.progress, progress)
        task.started_at = self._clock()
        return replace(task)

    def advance_progress(self, task_id: str, *, step: int, cap: int) -> int:
        """Raise progress of a processing task by ``step`` without passing ``cap``."""

        task = self._find(task_id)
        if task is None or task.status != TaskStatus.PROCESSING:
            return task.progress if task is not None else 0
        if task.progress < cap:
            task.progress = min(task.progress + step, cap)
        return task.progress

    def complete(self, task_id: str, *, result_url: str) -> Task:
        task = self._require(task_id)
        self._transition(task, TaskStatus.COMPLETED)
        task.progress = 100
        task.result_url = result_url
        task.finished_at = self._clock()
        return self._settle(task)

    def fail(
        self,
        task_id: str,
        *,
        failure_class: FailureClass,
        reason: str,
        error_summary: str | None = None,
    ) -> Task:
        task = self._require(task_id)
        self._transition(task, TaskStatus.FAILED)
        task.label = f"{task.label} ({reason})" if task.label else f"({reason})"
        task.failure_class = failure_class
        task.error_summary = error_summary
        task.finished_at = self._clock()
        return self._settle(task)

    def remove(self, task_id: str) -> RemovalResult:
        """Remove one task; a processing task is dropped once it becomes terminal."""

        task = self._find(task_id)
        if task is None:
            return RemovalResult.NOT_FOUND
        if task.status == TaskStatus.PROCESSING:
            self._deferred_removals.add(task_id)
            logger.info("Removal of running task %s deferred until it finishes", task_id)
            return RemovalResult.DEFERRED
        self._tasks = [item for item in self._tasks if item.task_id != task_id]
        return RemovalResult.REMOVED

    def clear(self) -> int:
        """Remove every task that is not running and return how many were dropped."""

        kept: list[Task] = []
        for task in self._tasks:
            if task.status == TaskStatus.PROCESSING:
                self._deferred_removals.add(task.task_id)
                kept.append(task)
        removed = len(self._tasks) - len(kept)
        self._tasks = kept
        return removed

    def is_removal_deferred(self, task_id: str) -> bool:
        return task_id in self._deferred_removals

    def _settle(self, task: Task) -> Task:
        settled = replace(task)
        if task.task_id in self._deferred_removals:
            self._deferred_removals.discard(task.task_id)
            self._tasks = [item for item in self._tasks if item.task_id != task.task_id]
            logger.info("Dropped task %s after deferred removal", task.task_id)
        return settled

    def _transition(self, task: Task, status_to: TaskStatus) -> None:
        if status_to not in _ALLOWED_TRANSITIONS[task.status]:
            raise InvalidTransitionError(task.task_id, task.status, status_to)
        task.status = status_to

    def _find(self, task_id: str) -> Task | None:
        for task in self._tasks:
            if task.task_id == task_id:
                return task
        return None

    def _require(self, task_id: str) -> Task:
        task = self._find(task_id)
        if task is None:
            raise UnknownTaskError(task_id)
        return task


def _validate_create(item: TaskCreate) -> None:
    expected = PAYLOAD_TYPES.get(item.kind)
    if expected is None:
        raise ValueError(f"Unsupported task kind: {item.kind!r}")
    if not isinstance(item.payload, expected):
        raise ValueError(
            f"Task kind {item.kind.value} requires {expected.__name__}, "
            f"got {type(item.payload).__name__}",
        )
    if item.payload.is_empty():
        raise ValueError(f"Task payload for {item.kind.value} must not be empty.")
