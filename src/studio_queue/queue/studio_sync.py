"""Studio-side observer that imports finished queue results into the gallery."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from studio_queue.queue.gallery import AssetStore, GalleryAsset
from studio_queue.queue.models import (
    ImagePayload,
    Task,
    TaskKind,
    TaskStatus,
    VideoPayload,
)
from studio_queue.queue.store import TaskQueue

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncProgress:
    current: int
    total: int
    status: str


@dataclass(slots=True)
class SyncReport:
    """What one sync pass did."""

    imported: list[GalleryAsset] = field(default_factory=list)
    saved_paths: list[Path] = field(default_factory=list)
    failed: list[Task] = field(default_factory=list)
    forgotten: list[str] = field(default_factory=list)
    progress: SyncProgress = field(default_factory=lambda: SyncProgress(0, 0, "idle"))


class StudioSync:
    """Watches submitted task ids and reads the queue; never writes to it."""

    def __init__(
        self,
        *,
        queue: TaskQueue,
        store: AssetStore,
        clock: Callable[[], float] = time.time,
        category: str = "Uncategorized",
    ) -> None:
        self.queue = queue
        self.store = store
        self.category = category
        self._clock = clock
        self._watched: list[str] = []
        self._total = 0
        self._settled = 0

    @property
    def watched(self) -> tuple[str, ...]:
        return tuple(self._watched)

    def watch(self, task_ids: Iterable[str]) -> None:
        """Start watching a new submission; replaces any previous one."""

        self._watched = list(task_ids)
        self._total = len(self._watched)
        self._settled = 0

    def sync_once(self) -> SyncReport:
        report = SyncReport()
        tasks = {task.task_id: task for task in self.queue.snapshot()}

        report.forgotten = [task_id for task_id in self._watched if task_id not in tasks]
        if report.forgotten:
            logger.info("Forgetting %d task(s) removed from the queue", len(report.forgotten))
            self._watched = [task_id for task_id in self._watched if task_id in tasks]
            self._total -= len(report.forgotten)

        for task_id in list(self._watched):
            task = tasks[task_id]
            if task.status == TaskStatus.COMPLETED and task.result_url:
                asset = self._to_asset(task)
                saved = self.store.save(asset)
                report.imported.append(asset)
                if saved is not None:
                    report.saved_paths.append(saved)
            elif task.status == TaskStatus.FAILED:
                logger.warning("Task %s failed to generate: %s", task.task_id, task.label)
                report.failed.append(task)
            else:
                continue
            self._watched.remove(task_id)
            self._settled += 1

        report.progress = self.progress()
        return report

    def progress(self) -> SyncProgress:
        if not self._watched:
            return SyncProgress(current=self._settled, total=self._total, status="idle")
        return SyncProgress(
            current=min(self._settled + 1, self._total),
            total=self._total,
            status="generating",
        )

    def _to_asset(self, task: Task) -> GalleryAsset:
        now = self._clock()
        prompt, model, width, height = _describe(task)
        return GalleryAsset(
            asset_id=uuid.uuid4().hex,
            task_id=task.task_id,
            name=f"Studio Gen - {datetime.fromtimestamp(now).strftime('%H-%M-%S')}",
            url=task.result_url or "",
            prompt=prompt,
            model=model,
            content_type="video" if task.kind == TaskKind.VIDEO_GENERATION else "image",
            width=width,
            height=height,
            created_at=now,
            generation_seconds=max(0.0, now - task.created_at),
            category=self.category,
        )


def _describe(task: Task) -> tuple[str, str, int, int]:
    payload = task.payload
    if isinstance(payload, ImagePayload):
        return (
            payload.prompt or "Generated Image",
            payload.model or "unknown",
            payload.width,
            payload.height,
        )
    if isinstance(payload, VideoPayload):
        return payload.settings.prompt or "Generated Video", "unknown", 1024, 576
    return "Generated Image", "unknown", 1024, 1024
