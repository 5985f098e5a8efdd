"""Generation API backend implementations."""

from studio_queue.queue.backend.base import (
    ContentPart,
    GenerationClient,
    ImagePart,
    ImageRequest,
    ImageResponse,
    InlineImage,
    TextPart,
    VideoOperation,
    VideoRequest,
)
from studio_queue.queue.backend.downloader import AssetDownloader, authorized_url

__all__ = [
    "AssetDownloader",
    "ContentPart",
    "GenerationClient",
    "ImagePart",
    "ImageRequest",
    "ImageResponse",
    "InlineImage",
    "TextPart",
    "VideoOperation",
    "VideoRequest",
    "authorized_url",
]
