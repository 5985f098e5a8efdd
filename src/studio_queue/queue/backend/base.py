"""Backend interface for the external generation API."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class ImagePart:
    """Inline reference image sent ahead of the prompt."""

    data: bytes
    mime_type: str = "image/jpeg"


@dataclass(frozen=True, slots=True)
class TextPart:
    text: str


ContentPart = ImagePart | TextPart


@dataclass(frozen=True, slots=True)
class ImageRequest:
    """One synchronous image generation call."""

    model: str
    parts: tuple[ContentPart, ...]
    aspect_ratio: str
    image_size: str | None
    safety_threshold: str = "BLOCK_ONLY_HIGH"


@dataclass(frozen=True, slots=True)
class InlineImage:
    data: bytes
    mime_type: str = "image/png"


@dataclass(frozen=True, slots=True)
class ImageResponse:
    """Normalized image response from the first candidate."""

    finish_reason: str | None
    images: tuple[InlineImage, ...] = ()
    blocked: bool = False


@dataclass(frozen=True, slots=True)
class VideoRequest:
    """Start call for one long-running video operation."""

    model: str
    prompt: str
    resolution: str
    aspect_ratio: str
    negative_prompt: str | None = None
    source_image: ImagePart | None = None


@dataclass(frozen=True, slots=True)
class VideoOperation:
    """Poll state of a video operation; ``handle`` is the backend's own object."""

    name: str | None
    done: bool
    error_message: str | None = None
    video_uri: str | None = None
    handle: Any = field(default=None, compare=False, repr=False)


class GenerationClient(Protocol):
    """Protocol implemented by generation API backends."""

    async def generate_image(self, request: ImageRequest) -> ImageResponse:
        """Run one image generation call."""

    async def start_video(self, request: VideoRequest) -> VideoOperation:
        """Start a video operation and return its first poll state."""

    async def poll_video(self, operation: VideoOperation) -> VideoOperation:
        """Re-fetch the state of a running video operation."""

    async def aclose(self) -> None:
        """Release connections held for the task."""
