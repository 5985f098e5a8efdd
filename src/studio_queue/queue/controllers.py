"""Controllers for studio CLI commands."""

from __future__ import annotations

import asyncio
import mimetypes
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from studio_queue.config import Settings, env_credential_provider
from studio_queue.queue.backend.base import GenerationClient
from studio_queue.queue.backend.downloader import AssetDownloader
from studio_queue.queue.backend.genai_backend import GenaiClient
from studio_queue.queue.builders import (
    CustomStyle,
    ImageGenerationRequest,
    build_batch_tasks,
    build_image_tasks,
    build_video_task,
)
from studio_queue.queue.dispatcher import Dispatcher
from studio_queue.queue.events import QueueEventKind, QueueEvents
from studio_queue.queue.gallery import DirectoryAssetStore
from studio_queue.queue.handlers import ImageTaskHandler, VideoTaskHandler
from studio_queue.queue.media import to_data_url
from studio_queue.queue.models import (
    DispatchSummary,
    Task,
    TaskCreate,
    TaskKind,
    VideoResolution,
    VideoSettings,
)
from studio_queue.queue.rate_limiter import RateLimiter
from studio_queue.queue.retry import RetryPolicy
from studio_queue.queue.store import TaskQueue
from studio_queue.queue.studio_sync import StudioSync

MISSING_KEY_HINT = "Set STUDIO_QUEUE_API_KEY (or GEMINI_API_KEY) and run again."


@dataclass(slots=True)
class ImageCommand:
    """CLI input for studio image generation."""

    prompt: str
    negative_prompt: str
    count: int
    model: str | None
    aspect_ratio: str
    image_size: str
    ref_images: tuple[Path, ...]
    target_images: tuple[Path, ...]
    output_dir: Path | None


@dataclass(slots=True)
class BatchCommand:
    """CLI input for style-transfer batches."""

    target_images: tuple[Path, ...]
    styles: tuple[str, ...]
    custom_prompts: tuple[str, ...]
    count: int
    model: str | None
    aspect_ratio: str
    image_size: str
    output_dir: Path | None


@dataclass(slots=True)
class VideoCommand:
    """CLI input for one video generation."""

    prompt: str
    negative_prompt: str
    source_image: Path | None
    resolution: str
    aspect_ratio: str
    output_dir: Path | None


@dataclass(slots=True)
class SessionResult:
    """Queue session report to render in CLI."""

    lines: list[str]
    success: bool


class StudioCliController:
    """Builds tasks, drains the queue once, and exports results."""

    def __init__(
        self,
        *,
        client_factory: Callable[[str], GenerationClient] = GenaiClient,
    ) -> None:
        self.client_factory = client_factory

    def generate_images(self, command: ImageCommand) -> SessionResult:
        settings = Settings.from_env(output_dir=command.output_dir)
        tasks = build_image_tasks(
            ImageGenerationRequest(
                prompt=command.prompt,
                negative_prompt=command.negative_prompt,
                model=command.model or settings.models.default_image_model,
                aspect_ratio=command.aspect_ratio,
                image_size=command.image_size,
                ref_images=tuple(_read_image(path) for path in command.ref_images),
                target_images=tuple(_read_image(path) for path in command.target_images),
            ),
            command.count,
        )
        return self._run(settings, tasks)

    def generate_batch(self, command: BatchCommand) -> SessionResult:
        settings = Settings.from_env(output_dir=command.output_dir)
        tasks = build_batch_tasks(
            [_read_image(path) for path in command.target_images],
            preset_ids=command.styles,
            custom_styles=[CustomStyle(prompt=prompt) for prompt in command.custom_prompts],
            batch_count=command.count,
            aspect_ratio=command.aspect_ratio,
            image_size=command.image_size,
            model=command.model,
        )
        return self._run(settings, tasks)

    def generate_video(self, command: VideoCommand) -> SessionResult:
        settings = Settings.from_env(output_dir=command.output_dir)
        task = build_video_task(
            VideoSettings(
                prompt=command.prompt,
                negative_prompt=command.negative_prompt,
                resolution=VideoResolution(command.resolution),
                aspect_ratio=command.aspect_ratio,
            ),
            source_image=_read_image(command.source_image) if command.source_image else None,
        )
        return self._run(settings, [task])

    def _run(self, settings: Settings, tasks: list[TaskCreate]) -> SessionResult:
        settings.validate()
        return asyncio.run(self._session(settings, tasks))

    async def _session(self, settings: Settings, tasks: list[TaskCreate]) -> SessionResult:
        queue = TaskQueue()
        events = QueueEvents()
        rate_limiter = RateLimiter(settings.rate_limit)
        sync = StudioSync(queue=queue, store=DirectoryAssetStore(settings.storage.output_dir))

        async with AssetDownloader(
            timeout_seconds=settings.storage.download_timeout_seconds,
        ) as downloader:
            dispatcher = Dispatcher(
                queue=queue,
                handlers={
                    TaskKind.IMAGE_GENERATION: ImageTaskHandler(
                        models=settings.models,
                        dispatch=settings.dispatch,
                    ),
                    TaskKind.VIDEO_GENERATION: VideoTaskHandler(
                        downloader=downloader,
                        media_dir=settings.storage.media_dir,
                        models=settings.models,
                        dispatch=settings.dispatch,
                        retry=settings.retry,
                    ),
                },
                client_factory=self.client_factory,
                credential_provider=env_credential_provider(),
                rate_limiter=rate_limiter,
                events=events,
                retry_policy=RetryPolicy.from_settings(settings.retry),
                settings=settings.dispatch,
            )
            queued = dispatcher.enqueue(tasks)
            sync.watch(task.task_id for task in queued)
            summary = await dispatcher.run_until_drained()

        report = sync.sync_once()
        lines = [f"Queued {len(queued)} task(s)"]
        lines.extend(_render_task(task) for task in queue.snapshot())
        lines.extend(f"Saved: {path}" for path in report.saved_paths)
        lines.append(_render_summary(summary))
        lines.append(f"Rate: {rate_limiter.describe()}")
        for event in events.history(QueueEventKind.QUEUE_PAUSED):
            lines.append(f"{event.message}. {MISSING_KEY_HINT}")
        return SessionResult(lines=lines, success=not summary.paused and summary.failed == 0)


def _read_image(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return to_data_url(path.read_bytes(), mime_type or "image/png")


def _render_task(task: Task) -> str:
    return (
        f"task_id={task.task_id} kind={task.kind.value} status={task.status.value} "
        f"progress={task.progress} label={task.label}"
    )


def _render_summary(summary: DispatchSummary) -> str:
    return (
        f"processed={summary.processed} succeeded={summary.succeeded} "
        f"failed={summary.failed} paused={str(summary.paused).lower()}"
    )
