"""Single-call still-image generation handler."""

from __future__ import annotations

import logging

from studio_queue.config import DispatchSettings, ModelSettings
from studio_queue.queue.backend.base import (
    ContentPart,
    ImageRequest,
    ImageResponse,
    TextPart,
)
from studio_queue.queue.errors import NoResultError, SafetyBlockedError
from studio_queue.queue.handlers.base import HandlerContext
from studio_queue.queue.media import image_part, to_data_url
from studio_queue.queue.models import ImagePayload, RateStatus, Task

logger = logging.getLogger(__name__)

SUPPORTED_ASPECT_RATIOS: tuple[str, ...] = ("1:1", "3:4", "4:3", "9:16", "16:9")
SAFETY_FINISH_REASONS: frozenset[str] = frozenset({"SAFETY", "IMAGE_SAFETY", "PROHIBITED_CONTENT"})


class ImageTaskHandler:
    """Builds one image request, calls the API once per attempt, reads the result."""

    def __init__(
        self,
        *,
        models: ModelSettings | None = None,
        dispatch: DispatchSettings | None = None,
    ) -> None:
        self.models = models or ModelSettings()
        self.dispatch = dispatch or DispatchSettings()

    async def execute(self, task: Task, context: HandlerContext) -> str:
        payload = task.payload
        if not isinstance(payload, ImagePayload):
            raise TypeError(f"Image handler cannot run {type(payload).__name__}")

        if context.rate_limiter.status() == RateStatus.CRITICAL:
            logger.warning(
                "Approaching %d RPM limit. Pausing briefly before task %s",
                context.rate_limiter.settings.critical_rpm,
                task.task_id,
            )
            await context.sleep(self.dispatch.critical_pacing_seconds)
        else:
            await context.sleep(self.dispatch.settle_delay_seconds)

        request = self.build_request(payload)

        async def _generate() -> str:
            response = await context.client.generate_image(request)
            return interpret_response(response)

        return await context.retry(_generate, description=f"image task {task.task_id}")

    def build_request(self, payload: ImagePayload) -> ImageRequest:
        model = payload.model or self.models.default_image_model
        return ImageRequest(
            model=model,
            parts=build_parts(payload),
            aspect_ratio=sanitize_aspect_ratio(
                payload.aspect_ratio,
                default=self.models.default_aspect_ratio,
            ),
            image_size=(payload.image_size or self.models.default_image_size)
            if is_pro_model(model)
            else None,
            safety_threshold=self.models.safety_threshold,
        )


def build_parts(payload: ImagePayload) -> tuple[ContentPart, ...]:
    """Reference images, then targets, then an optional style reference, then the text."""

    parts: list[ContentPart] = [image_part(image) for image in payload.ref_images]
    parts.extend(image_part(image) for image in payload.target_images)

    prompt = payload.prompt
    if payload.is_preset:
        style = payload.style_name or payload.prompt
        prompt = f"Transform this image into the style of {style}. {payload.prompt}. High quality."
    elif payload.style_ref_image:
        parts.append(image_part(payload.style_ref_image))

    if payload.negative_prompt:
        prompt = f"{prompt} . Avoid: {payload.negative_prompt}"
    parts.append(TextPart(text=prompt))
    return tuple(parts)


def sanitize_aspect_ratio(value: str | None, *, default: str = "1:1") -> str:
    if value in SUPPORTED_ASPECT_RATIOS:
        return value
    if value:
        logger.info("Unsupported aspect ratio %r replaced with %s", value, default)
    return default


def is_pro_model(model: str) -> bool:
    return "pro" in model.lower()


def interpret_response(response: ImageResponse) -> str:
    """Return the first inline image as a data URL or raise a classified error."""

    if response.blocked or (response.finish_reason or "").upper() in SAFETY_FINISH_REASONS:
        raise SafetyBlockedError(
            "Generation blocked by safety filters. Try a less sensitive prompt.",
        )
    for image in response.images:
        return to_data_url(image.data, image.mime_type)
    raise NoResultError("No image generated (check prompts/filters).")
