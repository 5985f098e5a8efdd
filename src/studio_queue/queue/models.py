"""Domain models for the generation task queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TaskKind(str, Enum):
    """Kind of generation work, fixed at creation."""

    IMAGE_GENERATION = "image_generation"
    VIDEO_GENERATION = "video_generation"


class TaskStatus(str, Enum):
    """Task lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class FailureClass(str, Enum):
    """Normalized failure classes used by retry policy and task labels."""

    CONFIG_ERROR = "config_error"
    TRANSIENT = "transient"
    SAFETY_BLOCKED = "safety_blocked"
    VALIDATION_ERROR = "validation_error"
    NO_RESULT = "no_result"
    VIDEO_GENERATION_ERROR = "video_generation_error"
    DOWNLOAD_ERROR = "download_error"
    UNKNOWN = "unknown"


class RateStatus(str, Enum):
    """Coarse health of recent API load."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"


class VideoResolution(str, Enum):
    P720 = "720p"
    P1080 = "1080p"


@dataclass(frozen=True, slots=True)
class ImagePayload:
    """Request data for one still-image generation.

    Image fields hold base64 strings or ``data:`` URLs exactly as submitted.
    """

    prompt: str = ""
    negative_prompt: str = ""
    model: str | None = None
    aspect_ratio: str = "1:1"
    image_size: str = "1K"
    ref_images: tuple[str, ...] = ()
    target_images: tuple[str, ...] = ()
    style_ref_image: str | None = None
    is_preset: bool = False
    style_id: str | None = None
    style_name: str | None = None
    color_palette: tuple[str, ...] = ()
    width: int = 1024
    height: int = 1024

    def is_empty(self) -> bool:
        return not (self.prompt.strip() or self.ref_images or self.target_images)


@dataclass(frozen=True, slots=True)
class VideoSettings:
    """Camera, motion and export settings from the video studio."""

    prompt: str = ""
    negative_prompt: str = ""
    pan_x: int = 0
    pan_y: int = 0
    zoom: int = 0
    roll: int = 0
    is_static_camera: bool = False
    shake: int = 0
    motion_bucket_id: int = 127
    noise_augmentation: float = 0.0
    seed: int = -1
    fps: int = 24
    resolution: VideoResolution = VideoResolution.P720
    loop: bool = False
    duration: str = "5s"
    aspect_ratio: str = "16:9"


@dataclass(frozen=True, slots=True)
class VideoPayload:
    """Request data for one video generation."""

    settings: VideoSettings
    source_image: str | None = None

    def is_empty(self) -> bool:
        return not (self.settings.prompt.strip() or self.source_image)


TaskPayload = ImagePayload | VideoPayload

PAYLOAD_TYPES: dict[TaskKind, type] = {
    TaskKind.IMAGE_GENERATION: ImagePayload,
    TaskKind.VIDEO_GENERATION: VideoPayload,
}


@dataclass(slots=True)
class TaskCreate:
    """Input payload for enqueuing one generation task."""

    kind: TaskKind
    payload: TaskPayload
    label: str = ""
    thumbnail: str | None = None
    created_at: float | None = None


@dataclass(slots=True)
class Task:
    """Queue entry with live status; observers only ever receive copies."""

    task_id: str
    kind: TaskKind
    payload: TaskPayload
    label: str
    created_at: float
    sequence: int
    status: TaskStatus = TaskStatus.PENDING
    progress: int = 0
    result_url: str | None = None
    failure_class: FailureClass | None = None
    error_summary: str | None = None
    thumbnail: str | None = None
    started_at: float | None = None
    finished_at: float | None = None


@dataclass(slots=True)
class DispatchSummary:
    """Aggregate dispatcher counters for CLI reporting."""

    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    idle_ticks: int = 0
    skipped_ticks: int = 0
    paused: bool = False
    failures: list[str] = field(default_factory=list)
