"""Shared test fixtures."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from pathlib import Path

import pytest

from studio_queue.config import DispatchSettings, ModelSettings, RetrySettings
from studio_queue.queue.backend.base import (
    ImageRequest,
    ImageResponse,
    InlineImage,
    VideoOperation,
    VideoRequest,
)
from studio_queue.queue.dispatcher import Dispatcher
from studio_queue.queue.events import QueueEvents
from studio_queue.queue.handlers import HandlerContext, ImageTaskHandler, VideoTaskHandler
from studio_queue.queue.models import TaskKind, TaskStatus
from studio_queue.queue.rate_limiter import RateLimiter
from studio_queue.queue.retry import RetryPolicy
from studio_queue.queue.store import TaskQueue

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image"


class RecordingSleep:
    """Async sleep that records requested delays and only yields to the loop."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        await asyncio.sleep(0)


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubClient:
    """Scripted generation backend.

    Each scripted entry is either a response or an exception to raise; once a
    script runs out, images succeed with a unique payload and video polls
    report done.
    """

    def __init__(
        self,
        *,
        image_script: list[ImageResponse | Exception] | None = None,
        start_script: list[VideoOperation | Exception] | None = None,
        poll_script: list[VideoOperation | Exception] | None = None,
        on_call: Callable[[str], None] | None = None,
    ) -> None:
        self.image_script = list(image_script or [])
        self.start_script = list(start_script or [])
        self.poll_script = list(poll_script or [])
        self.on_call = on_call
        self.image_requests: list[ImageRequest] = []
        self.video_requests: list[VideoRequest] = []
        self.polls: list[VideoOperation] = []
        self.closed = 0

    async def generate_image(self, request: ImageRequest) -> ImageResponse:
        self.image_requests.append(request)
        self._notify("generate_image")
        await asyncio.sleep(0)
        if self.image_script:
            return _unwrap(self.image_script.pop(0))
        data = PNG_BYTES + str(len(self.image_requests)).encode()
        return ImageResponse(finish_reason="STOP", images=(InlineImage(data=data),))

    async def start_video(self, request: VideoRequest) -> VideoOperation:
        self.video_requests.append(request)
        self._notify("start_video")
        if self.start_script:
            return _unwrap(self.start_script.pop(0))
        return VideoOperation(name="operations/video-1", done=False)

    async def poll_video(self, operation: VideoOperation) -> VideoOperation:
        self.polls.append(operation)
        self._notify("poll_video")
        if self.poll_script:
            return _unwrap(self.poll_script.pop(0))
        return VideoOperation(
            name=operation.name,
            done=True,
            video_uri="https://media.example.com/video.mp4",
        )

    async def aclose(self) -> None:
        self.closed += 1

    def _notify(self, method: str) -> None:
        if self.on_call is not None:
            self.on_call(method)


class StubDownloader:
    def __init__(self, *, payload: bytes = b"fake-mp4", error: Exception | None = None) -> None:
        self.payload = payload
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def download(self, uri: str, *, api_key: str) -> bytes:
        self.calls.append((uri, api_key))
        if self.error is not None:
            raise self.error
        return self.payload


def _unwrap(item):
    if isinstance(item, Exception):
        raise item
    return item


def processing_count(queue: TaskQueue) -> int:
    return sum(1 for task in queue.snapshot() if task.status == TaskStatus.PROCESSING)


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def make_context(recording_sleep):
    """Factory for a handler context around a stub client."""

    def _make(
        client: StubClient,
        *,
        rate_limiter: RateLimiter | None = None,
        progress: list[int] | None = None,
    ) -> HandlerContext:
        values = progress if progress is not None else [5]

        def _advance(step: int, cap: int) -> int:
            current = values[-1]
            if current < cap:
                current = min(current + step, cap)
            values.append(current)
            return current

        return HandlerContext(
            api_key="test-key",
            client=client,
            rate_limiter=rate_limiter or RateLimiter(),
            retry_policy=RetryPolicy(max_retries=3, base_delay_seconds=2.0),
            sleep=recording_sleep,
            advance_progress=_advance,
        )

    return _make


@pytest.fixture()
def make_dispatcher(recording_sleep, tmp_path: Path):
    """Factory for a dispatcher wired to a stub client and zero tick interval."""

    def _make(
        queue: TaskQueue,
        client: StubClient,
        *,
        api_key: str | None = "test-key",
        credential_provider: Callable[[], str | None] | None = None,
        downloader: StubDownloader | None = None,
        rate_limiter: RateLimiter | None = None,
        dispatch: DispatchSettings | None = None,
    ) -> Dispatcher:
        dispatch = dispatch or DispatchSettings(tick_interval_seconds=0.0)
        return Dispatcher(
            queue=queue,
            handlers={
                TaskKind.IMAGE_GENERATION: ImageTaskHandler(
                    models=ModelSettings(),
                    dispatch=dispatch,
                ),
                TaskKind.VIDEO_GENERATION: VideoTaskHandler(
                    downloader=downloader or StubDownloader(),
                    media_dir=tmp_path / "media",
                    dispatch=dispatch,
                    retry=RetrySettings(),
                ),
            },
            client_factory=lambda _key: client,
            credential_provider=credential_provider or (lambda: api_key),
            rate_limiter=rate_limiter or RateLimiter(),
            events=QueueEvents(),
            retry_policy=RetryPolicy(max_retries=3, base_delay_seconds=2.0),
            settings=dispatch,
            sleep=recording_sleep,
        )

    return _make
