"""Runtime configuration for the generation queue and its external API."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "STUDIO_QUEUE_API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
)


@dataclass(slots=True)
class RateLimitSettings:
    """Sliding-window thresholds for external API load."""

    window_seconds: float = 60.0
    warning_rpm: int = 15
    critical_rpm: int = 20


@dataclass(slots=True)
class RetrySettings:
    """Exponential backoff policy for transient API failures."""

    max_retries: int = 3
    base_delay_seconds: float = 2.0
    video_start_base_delay_seconds: float = 3.0


@dataclass(slots=True)
class DispatchSettings:
    """Dispatcher timer and handler pacing."""

    tick_interval_seconds: float = 1.0
    settle_delay_seconds: float = 0.1
    critical_pacing_seconds: float = 2.0
    video_poll_interval_seconds: float = 5.0
    video_progress_step: int = 5
    video_progress_cap: int = 90


@dataclass(slots=True)
class ModelSettings:
    """Model identifiers and request defaults for the generation API."""

    default_image_model: str = "gemini-2.5-flash-image"
    default_aspect_ratio: str = "1:1"
    default_image_size: str = "1K"
    video_model: str = "veo-3.1-fast-generate-preview"
    video_model_high_res: str = "veo-3.1-generate-preview"
    safety_threshold: str = "BLOCK_ONLY_HIGH"


@dataclass(slots=True)
class StorageSettings:
    """Local paths for downloaded media and exported gallery assets."""

    media_dir: Path = field(
        default_factory=lambda: Path(tempfile.gettempdir()) / "studio-queue",
    )
    output_dir: Path = Path("studio-output")
    download_timeout_seconds: float = 120.0


@dataclass(slots=True)
class Settings:
    """Application settings grouped by concern."""

    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    dispatch: DispatchSettings = field(default_factory=DispatchSettings)
    models: ModelSettings = field(default_factory=ModelSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)

    @classmethod
    def from_env(cls, output_dir: Path | None = None) -> Settings:
        """Load settings from environment with defaults tuned for a paid tier-1 quota."""

        return cls(
            rate_limit=RateLimitSettings(
                window_seconds=float(os.getenv("STUDIO_QUEUE_RATE_WINDOW_SECONDS", "60")),
                warning_rpm=int(os.getenv("STUDIO_QUEUE_RATE_WARNING_RPM", "15")),
                critical_rpm=int(os.getenv("STUDIO_QUEUE_RATE_CRITICAL_RPM", "20")),
            ),
            retry=RetrySettings(
                max_retries=int(os.getenv("STUDIO_QUEUE_RETRY_MAX_RETRIES", "3")),
                base_delay_seconds=float(
                    os.getenv("STUDIO_QUEUE_RETRY_BASE_DELAY_SECONDS", "2.0"),
                ),
                video_start_base_delay_seconds=float(
                    os.getenv("STUDIO_QUEUE_RETRY_VIDEO_START_BASE_DELAY_SECONDS", "3.0"),
                ),
            ),
            dispatch=DispatchSettings(
                tick_interval_seconds=float(
                    os.getenv("STUDIO_QUEUE_TICK_INTERVAL_SECONDS", "1.0"),
                ),
                settle_delay_seconds=float(
                    os.getenv("STUDIO_QUEUE_SETTLE_DELAY_SECONDS", "0.1"),
                ),
                critical_pacing_seconds=float(
                    os.getenv("STUDIO_QUEUE_CRITICAL_PACING_SECONDS", "2.0"),
                ),
                video_poll_interval_seconds=float(
                    os.getenv("STUDIO_QUEUE_VIDEO_POLL_INTERVAL_SECONDS", "5.0"),
                ),
                video_progress_step=int(os.getenv("STUDIO_QUEUE_VIDEO_PROGRESS_STEP", "5")),
                video_progress_cap=int(os.getenv("STUDIO_QUEUE_VIDEO_PROGRESS_CAP", "90")),
            ),
            models=ModelSettings(
                default_image_model=os.getenv(
                    "STUDIO_QUEUE_IMAGE_MODEL",
                    "gemini-2.5-flash-image",
                ),
                default_aspect_ratio=os.getenv("STUDIO_QUEUE_DEFAULT_ASPECT_RATIO", "1:1"),
                default_image_size=os.getenv("STUDIO_QUEUE_DEFAULT_IMAGE_SIZE", "1K"),
                video_model=os.getenv("STUDIO_QUEUE_VIDEO_MODEL", "veo-3.1-fast-generate-preview"),
                video_model_high_res=os.getenv(
                    "STUDIO_QUEUE_VIDEO_MODEL_HIGH_RES",
                    "veo-3.1-generate-preview",
                ),
                safety_threshold=os.getenv("STUDIO_QUEUE_SAFETY_THRESHOLD", "BLOCK_ONLY_HIGH"),
            ),
            storage=StorageSettings(
                media_dir=Path(
                    os.getenv(
                        "STUDIO_QUEUE_MEDIA_DIR",
                        str(Path(tempfile.gettempdir()) / "studio-queue"),
                    ),
                ),
                output_dir=output_dir
                or Path(os.getenv("STUDIO_QUEUE_OUTPUT_DIR", "studio-output")),
                download_timeout_seconds=float(
                    os.getenv("STUDIO_QUEUE_DOWNLOAD_TIMEOUT_SECONDS", "120"),
                ),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if any threshold or interval is out of range."""

        if self.rate_limit.window_seconds <= 0:
            raise ValueError("STUDIO_QUEUE_RATE_WINDOW_SECONDS must be > 0.")
        if self.rate_limit.warning_rpm <= 0 or self.rate_limit.critical_rpm <= 0:
            raise ValueError("Rate limiter thresholds must be positive integers.")
        if self.rate_limit.warning_rpm > self.rate_limit.critical_rpm:
            raise ValueError(
                "STUDIO_QUEUE_RATE_WARNING_RPM must not exceed STUDIO_QUEUE_RATE_CRITICAL_RPM.",
            )
        if self.retry.max_retries < 0:
            raise ValueError("STUDIO_QUEUE_RETRY_MAX_RETRIES must be >= 0.")
        if self.retry.base_delay_seconds < 0 or self.retry.video_start_base_delay_seconds < 0:
            raise ValueError("Retry base delays must be >= 0.")
        if self.dispatch.tick_interval_seconds < 0:
            raise ValueError("STUDIO_QUEUE_TICK_INTERVAL_SECONDS must be >= 0.")
        if self.dispatch.video_poll_interval_seconds < 0:
            raise ValueError("STUDIO_QUEUE_VIDEO_POLL_INTERVAL_SECONDS must be >= 0.")
        if not 0 < self.dispatch.video_progress_cap < 100:
            raise ValueError("STUDIO_QUEUE_VIDEO_PROGRESS_CAP must be between 1 and 99.")
        if self.dispatch.video_progress_step <= 0:
            raise ValueError("STUDIO_QUEUE_VIDEO_PROGRESS_STEP must be > 0.")
        if self.storage.download_timeout_seconds <= 0:
            raise ValueError("STUDIO_QUEUE_DOWNLOAD_TIMEOUT_SECONDS must be > 0.")


def read_env_credential() -> str | None:
    """Return the first non-empty API key found in the credential variables."""

    for name in CREDENTIAL_ENV_VARS:
        value = os.getenv(name, "").strip()
        if value:
            return value
    return None


def env_credential_provider() -> Callable[[], str | None]:
    """Credential provider that re-reads the environment on every call."""

    return read_env_credential
