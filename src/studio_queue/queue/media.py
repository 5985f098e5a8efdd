"""Conversions between submitted image strings, raw bytes and data URLs."""

from __future__ import annotations

import base64
import binascii
import re

from studio_queue.queue.backend.base import ImagePart
from studio_queue.queue.errors import InvalidRequestError

DEFAULT_IMAGE_MIME_TYPE = "image/jpeg"

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,", re.IGNORECASE)


def clean_base64(value: str) -> str:
    """Strip a ``data:<mime>;base64,`` prefix if present."""

    return _DATA_URL_RE.sub("", value.strip(), count=1)


def mime_type_of(value: str, default: str = DEFAULT_IMAGE_MIME_TYPE) -> str:
    match = _DATA_URL_RE.match(value.strip())
    return match.group("mime").lower() if match else default


def image_part(value: str) -> ImagePart:
    """Decode a submitted base64 image (bare or data URL) into an inline part."""

    try:
        data = base64.b64decode(clean_base64(value), validate=True)
    except (binascii.Error, ValueError) as error:
        raise InvalidRequestError("Reference image is not valid base64 data.") from error
    return ImagePart(data=data, mime_type=mime_type_of(value))


def to_data_url(data: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


def decode_data_url(url: str) -> tuple[bytes, str]:
    """Return ``(bytes, mime_type)`` for a base64 data URL."""

    if not _DATA_URL_RE.match(url):
        raise ValueError("Not a base64 data URL.")
    return base64.b64decode(clean_base64(url)), mime_type_of(url)
