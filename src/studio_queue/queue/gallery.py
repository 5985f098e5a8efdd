"""Gallery assets and the folder-backed store finished results are exported to."""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse
from urllib.request import url2pathname

from studio_queue.queue.media import decode_data_url

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "Uncategorized"
_UNSAFE_CHARS_RE = re.compile(r'[<>:"/\\|?*]')


@dataclass(frozen=True, slots=True)
class GalleryAsset:
    """A finished generation imported from the queue."""

    asset_id: str
    task_id: str
    name: str
    url: str
    prompt: str
    model: str
    content_type: str
    width: int
    height: int
    created_at: float
    generation_seconds: float | None = None
    category: str = DEFAULT_CATEGORY


class AssetStore(Protocol):
    def save(self, asset: GalleryAsset) -> Path | None:
        """Persist one asset and return where it went, if anywhere."""


def sanitize_name(name: str) -> str:
    return _UNSAFE_CHARS_RE.sub("_", name).strip()


class DirectoryAssetStore:
    """Writes assets as files under ``<root>/<category>/``."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def save(self, asset: GalleryAsset) -> Path:
        folder = self.root / (sanitize_name(asset.category) or "Untitled_Folder")
        folder.mkdir(parents=True, exist_ok=True)
        extension = "mp4" if asset.content_type == "video" else "png"
        stem = sanitize_name(asset.name or asset.prompt)[:50] or asset.content_type
        target = folder / f"{stem}_{asset.asset_id[:4]}.{extension}"

        if asset.url.startswith("data:"):
            data, _ = decode_data_url(asset.url)
            target.write_bytes(data)
        elif asset.url.startswith("file:"):
            shutil.copyfile(_file_uri_to_path(asset.url), target)
        else:
            raise ValueError(f"Unsupported asset URL scheme for {asset.asset_id}")
        logger.info("Saved %s asset %s to %s", asset.content_type, asset.asset_id, target)
        return target


def _file_uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    return Path(url2pathname(parsed.path))
