"""Generation backend on the google-genai SDK async surface."""

from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from studio_queue.queue.backend.base import (
    ContentPart,
    ImagePart,
    ImageRequest,
    ImageResponse,
    InlineImage,
    VideoOperation,
    VideoRequest,
)
from studio_queue.queue.errors import ApiError

logger = logging.getLogger(__name__)

SAFETY_CATEGORIES: tuple[types.HarmCategory, ...] = (
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
)


class GenaiClient:
    """Adapter from the queue's request/response types to google-genai calls."""

    def __init__(self, api_key: str, *, client: genai.Client | None = None) -> None:
        self._owns_client = client is None
        self._client = client or genai.Client(api_key=api_key)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aio.aclose()

    async def generate_image(self, request: ImageRequest) -> ImageResponse:
        config = types.GenerateContentConfig(
            response_modalities=["IMAGE"],
            image_config=types.ImageConfig(
                aspect_ratio=request.aspect_ratio,
                image_size=request.image_size,
            ),
            safety_settings=[
                types.SafetySetting(
                    category=category,
                    threshold=types.HarmBlockThreshold(request.safety_threshold),
                )
                for category in SAFETY_CATEGORIES
            ],
        )
        try:
            response = await self._client.aio.models.generate_content(
                model=request.model,
                contents=[_to_sdk_part(part) for part in request.parts],
                config=config,
            )
        except genai_errors.APIError as error:
            raise _api_error(error) from error
        return _image_response(response)

    async def start_video(self, request: VideoRequest) -> VideoOperation:
        image = None
        if request.source_image is not None:
            image = types.Image(
                image_bytes=request.source_image.data,
                mime_type=request.source_image.mime_type,
            )
        config = types.GenerateVideosConfig(
            number_of_videos=1,
            aspect_ratio=request.aspect_ratio,
            resolution=request.resolution,
            negative_prompt=request.negative_prompt or None,
        )
        try:
            operation = await self._client.aio.models.generate_videos(
                model=request.model,
                prompt=request.prompt or None,
                image=image,
                config=config,
            )
        except genai_errors.APIError as error:
            raise _api_error(error) from error
        logger.info("Started video operation %s on %s", operation.name, request.model)
        return _video_operation(operation)

    async def poll_video(self, operation: VideoOperation) -> VideoOperation:
        try:
            refreshed = await self._client.aio.operations.get(operation.handle)
        except genai_errors.APIError as error:
            raise _api_error(error) from error
        return _video_operation(refreshed)


def _to_sdk_part(part: ContentPart) -> types.Part:
    if isinstance(part, ImagePart):
        return types.Part.from_bytes(data=part.data, mime_type=part.mime_type)
    return types.Part.from_text(text=part.text)


def _api_error(error: genai_errors.APIError) -> ApiError:
    return ApiError(
        error.message or str(error),
        status_code=error.code,
        status=error.status,
    )


def _image_response(response: types.GenerateContentResponse) -> ImageResponse:
    feedback = response.prompt_feedback
    if feedback is not None and feedback.block_reason is not None:
        return ImageResponse(finish_reason=_enum_value(feedback.block_reason), blocked=True)

    candidates = response.candidates or []
    if not candidates:
        return ImageResponse(finish_reason=None)
    candidate = candidates[0]
    images: list[InlineImage] = []
    if candidate.content is not None:
        for part in candidate.content.parts or []:
            if part.inline_data is not None and part.inline_data.data:
                images.append(
                    InlineImage(
                        data=part.inline_data.data,
                        mime_type=part.inline_data.mime_type or "image/png",
                    ),
                )
    return ImageResponse(
        finish_reason=_enum_value(candidate.finish_reason),
        images=tuple(images),
    )


def _video_operation(operation: types.GenerateVideosOperation) -> VideoOperation:
    error_message = None
    if operation.error:
        error_message = str(operation.error.get("message") or "Video generation error")

    video_uri = None
    response = operation.response or operation.result
    if response is not None and response.generated_videos:
        video = response.generated_videos[0].video
        if video is not None:
            video_uri = video.uri

    return VideoOperation(
        name=operation.name,
        done=bool(operation.done),
        error_message=error_message,
        video_uri=video_uri,
        handle=operation,
    )


def _enum_value(value: Any) -> str | None:
    if value is None:
        return None
    return str(getattr(value, "value", value))
