"""Pull-based notification channel for queue observers."""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from studio_queue.queue.models import Task


class QueueEventKind(str, Enum):
    QUEUE_PAUSED = "queue_paused"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"


@dataclass(frozen=True, slots=True)
class QueueEvent:
    """One notification; ``task`` is a copy taken when the event fired."""

    kind: QueueEventKind
    message: str
    task: Task | None = None
    details: dict[str, Any] = field(default_factory=dict)


class QueueEvents:
    """Fan-out of queue events into per-subscriber inboxes.

    Publishing never calls observer code: each subscriber owns an
    ``asyncio.Queue`` and drains it on its own schedule.
    """

    def __init__(self, *, history_size: int = 200) -> None:
        self._subscribers: list[asyncio.Queue[QueueEvent]] = []
        self._history: deque[QueueEvent] = deque(maxlen=history_size)

    def subscribe(self) -> asyncio.Queue[QueueEvent]:
        inbox: asyncio.Queue[QueueEvent] = asyncio.Queue()
        self._subscribers.append(inbox)
        return inbox

    def unsubscribe(self, inbox: asyncio.Queue[QueueEvent]) -> None:
        if inbox in self._subscribers:
            self._subscribers.remove(inbox)

    def publish(self, event: QueueEvent) -> None:
        self._history.append(event)
        for inbox in self._subscribers:
            inbox.put_nowait(event)

    def history(self, kind: QueueEventKind | None = None) -> list[QueueEvent]:
        return [event for event in self._history if kind is None or event.kind == kind]


def drain(inbox: asyncio.Queue[QueueEvent]) -> list[QueueEvent]:
    """Take every event currently waiting in a subscriber inbox."""

    events: list[QueueEvent] = []
    while not inbox.empty():
        events.append(inbox.get_nowait())
    return events
