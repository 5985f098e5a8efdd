"""Task factories for the studio, batch and video submission surfaces."""

from __future__ import annotations

import math
import time
from collections.abc import Sequence
from dataclasses import dataclass

from studio_queue.queue.models import (
    ImagePayload,
    TaskCreate,
    TaskKind,
    VideoPayload,
    VideoSettings,
)

LABEL_PROMPT_CHARS = 15
VIDEO_TASK_LABEL = "Cinematic Video"


@dataclass(frozen=True, slots=True)
class PresetStyle:
    style_id: str
    name: str
    description: str


PRESET_STYLES: tuple[PresetStyle, ...] = (
    PresetStyle("cyberpunk", "Cyberpunk City", "Neon lights, futuristic, rainy"),
    PresetStyle("studio", "Studio White", "Clean, minimal, professional lighting"),
    PresetStyle("nature", "Deep Forest", "Moss, sunlight, organic textures"),
    PresetStyle("luxury", "Luxury Marble", "Gold accents, black marble, elegant"),
    PresetStyle("pastel", "Pastel Dream", "Soft colors, dreamy, clouds"),
    PresetStyle("industrial", "Industrial Concrete", "Raw concrete, shadows, urban"),
)
PRESET_STYLES_BY_ID: dict[str, PresetStyle] = {style.style_id: style for style in PRESET_STYLES}


@dataclass(frozen=True, slots=True)
class CustomStyle:
    """Free-text style with an optional style reference image."""

    prompt: str
    ref_image: str | None = None


@dataclass(slots=True)
class ImageGenerationRequest:
    """Studio form state for one "generate" click."""

    prompt: str
    negative_prompt: str = ""
    model: str | None = None
    aspect_ratio: str = "1:1"
    image_size: str = "1K"
    ref_images: tuple[str, ...] = ()
    target_images: tuple[str, ...] = ()
    color_palette: tuple[str, ...] = ()


def dimensions_for_ratio(ratio: str) -> tuple[int, int]:
    """Pixel size for an aspect ratio; custom ``W:H`` ratios target about one megapixel."""

    fixed = {
        "1:1": (1024, 1024),
        "3:4": (768, 1024),
        "4:3": (1024, 768),
        "9:16": (576, 1024),
        "16:9": (1024, 576),
    }
    if ratio in fixed:
        return fixed[ratio]
    parts = ratio.split(":")
    if len(parts) == 2:  # noqa: PLR2004
        try:
            width, height = float(parts[0]), float(parts[1])
        except ValueError:
            return 1024, 1024
        if width > 0 and height > 0:
            float_ratio = width / height
            calculated_height = math.sqrt(1024 * 1024 / float_ratio)
            return round(calculated_height * float_ratio), round(calculated_height)
    return 1024, 1024


def build_image_tasks(
    request: ImageGenerationRequest,
    count: int,
    *,
    created_at: float | None = None,
) -> list[TaskCreate]:
    if not request.prompt.strip():
        raise ValueError("A prompt is required to generate images.")
    if count < 1:
        raise ValueError("count must be >= 1")
    timestamp = created_at if created_at is not None else time.time()
    width, height = dimensions_for_ratio(request.aspect_ratio)
    payload = ImagePayload(
        prompt=request.prompt,
        negative_prompt=request.negative_prompt,
        model=request.model,
        aspect_ratio=request.aspect_ratio,
        image_size=request.image_size,
        ref_images=request.ref_images,
        target_images=request.target_images,
        color_palette=request.color_palette,
        width=width,
        height=height,
    )
    thumbnail = next(iter(request.ref_images + request.target_images), None)
    return [
        TaskCreate(
            kind=TaskKind.IMAGE_GENERATION,
            payload=payload,
            label=_short_label(request.prompt),
            thumbnail=thumbnail,
            created_at=timestamp,
        )
        for _ in range(count)
    ]


def build_batch_tasks(  # noqa: PLR0913
    target_images: Sequence[str],
    *,
    preset_ids: Sequence[str] = (),
    custom_styles: Sequence[CustomStyle] = (),
    batch_count: int = 1,
    aspect_ratio: str = "1:1",
    image_size: str = "1K",
    model: str | None = None,
    created_at: float | None = None,
) -> list[TaskCreate]:
    """Style-transfer tasks: every target image times every selected style."""

    unknown = [style_id for style_id in preset_ids if style_id not in PRESET_STYLES_BY_ID]
    if unknown:
        raise ValueError(f"Unknown preset style(s): {', '.join(unknown)}")
    styles = [style for style in custom_styles if style.prompt.strip()]
    if not target_images or (not preset_ids and not styles):
        raise ValueError("Batch needs at least one target image and one style.")
    if batch_count < 1:
        raise ValueError("batch_count must be >= 1")

    timestamp = created_at if created_at is not None else time.time()
    tasks: list[TaskCreate] = []
    for image in target_images:
        for style_id in preset_ids:
            preset = PRESET_STYLES_BY_ID[style_id]
            payload = ImagePayload(
                prompt=preset.name,
                model=model,
                aspect_ratio=aspect_ratio,
                image_size=image_size,
                ref_images=(image,),
                is_preset=True,
                style_id=preset.style_id,
                style_name=preset.name,
            )
            tasks.extend(
                TaskCreate(
                    kind=TaskKind.IMAGE_GENERATION,
                    payload=payload,
                    label=preset.name,
                    thumbnail=image,
                    created_at=timestamp,
                )
                for _ in range(batch_count)
            )
        for style in styles:
            payload = ImagePayload(
                prompt=style.prompt,
                model=model,
                aspect_ratio=aspect_ratio,
                image_size=image_size,
                ref_images=(image,),
                style_ref_image=style.ref_image,
            )
            tasks.extend(
                TaskCreate(
                    kind=TaskKind.IMAGE_GENERATION,
                    payload=payload,
                    label=f"Custom: {_short_label(style.prompt)}",
                    thumbnail=image,
                    created_at=timestamp,
                )
                for _ in range(batch_count)
            )
    return tasks


def build_video_task(
    settings: VideoSettings,
    *,
    source_image: str | None = None,
    created_at: float | None = None,
) -> TaskCreate:
    if not source_image and not settings.prompt.strip():
        raise ValueError("Provide a source image or a prompt for video generation.")
    return TaskCreate(
        kind=TaskKind.VIDEO_GENERATION,
        payload=VideoPayload(settings=settings, source_image=source_image),
        label=VIDEO_TASK_LABEL,
        thumbnail=source_image,
        created_at=created_at if created_at is not None else time.time(),
    )


def _short_label(prompt: str) -> str:
    return f"{prompt[:LABEL_PROMPT_CHARS]}..."
