"""Start-then-poll video generation handler."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx

from studio_queue.config import DispatchSettings, ModelSettings, RetrySettings
from studio_queue.queue.backend.base import VideoOperation, VideoRequest
from studio_queue.queue.backend.downloader import AssetDownloader
from studio_queue.queue.errors import ApiError, DownloadError, VideoGenerationError
from studio_queue.queue.handlers.base import HandlerContext
from studio_queue.queue.media import image_part
from studio_queue.queue.models import Task, VideoPayload, VideoResolution

logger = logging.getLogger(__name__)


class VideoTaskHandler:
    """Drives one long-running video operation: start, poll until done, download.

    Progress during polling is a UX heuristic: the API reports no percentage,
    so each poll adds a fixed step and the value stops at the cap until the
    terminal signal arrives.
    """

    def __init__(
        self,
        *,
        downloader: AssetDownloader,
        media_dir: Path,
        models: ModelSettings | None = None,
        dispatch: DispatchSettings | None = None,
        retry: RetrySettings | None = None,
    ) -> None:
        self.downloader = downloader
        self.media_dir = media_dir
        self.models = models or ModelSettings()
        self.dispatch = dispatch or DispatchSettings()
        self.retry = retry or RetrySettings()

    async def execute(self, task: Task, context: HandlerContext) -> str:
        payload = task.payload
        if not isinstance(payload, VideoPayload):
            raise TypeError(f"Video handler cannot run {type(payload).__name__}")

        request = self.build_request(payload)
        operation = await context.retry(
            lambda: context.client.start_video(request),
            base_delay_seconds=self.retry.video_start_base_delay_seconds,
            description=f"video start {task.task_id}",
        )
        operation = await self._poll_until_done(task, operation, context)

        if operation.error_message is not None:
            raise VideoGenerationError(operation.error_message)
        if not operation.video_uri:
            raise VideoGenerationError("Video operation finished without a video URI.")

        data = await self._download(operation.video_uri, context)
        return await self._materialize(task, data)

    def build_request(self, payload: VideoPayload) -> VideoRequest:
        settings = payload.settings
        return VideoRequest(
            model=self.model_for(settings.resolution),
            prompt=settings.prompt,
            resolution=VideoResolution(settings.resolution).value,
            aspect_ratio=settings.aspect_ratio,
            negative_prompt=settings.negative_prompt or None,
            source_image=image_part(payload.source_image) if payload.source_image else None,
        )

    def model_for(self, resolution: VideoResolution | str) -> str:
        if VideoResolution(resolution) == VideoResolution.P1080:
            return self.models.video_model_high_res
        return self.models.video_model

    async def _poll_until_done(
        self,
        task: Task,
        operation: VideoOperation,
        context: HandlerContext,
    ) -> VideoOperation:
        while not operation.done:
            await context.sleep(self.dispatch.video_poll_interval_seconds)
            current = operation
            operation = await context.retry(
                lambda: context.client.poll_video(current),
                description=f"video poll {task.task_id}",
            )
            progress = context.advance_progress(
                self.dispatch.video_progress_step,
                self.dispatch.video_progress_cap,
            )
            logger.debug(
                "Video task %s polled, done=%s progress=%d",
                task.task_id,
                operation.done,
                progress,
            )
        return operation

    async def _download(self, uri: str, context: HandlerContext) -> bytes:
        try:
            return await context.retry(
                lambda: self.downloader.download(uri, api_key=context.api_key),
                description="video download",
            )
        except (ApiError, httpx.HTTPError) as error:
            raise DownloadError(f"Failed to download video file: {error}") from error

    async def _materialize(self, task: Task, data: bytes) -> str:
        path = self.media_dir / f"{task.task_id}.mp4"
        await asyncio.to_thread(_write_bytes, path, data)
        logger.info("Saved video for task %s to %s", task.task_id, path)
        return path.resolve().as_uri()


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
