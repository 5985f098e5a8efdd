"""Async HTTP retrieval of finished video assets."""

from __future__ import annotations

import logging

import httpx

from studio_queue.queue.errors import ApiError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 120.0


def authorized_url(uri: str, api_key: str) -> httpx.URL:
    """Append the API key as the ``key`` query parameter the asset host expects."""

    return httpx.URL(uri).copy_merge_params({"key": api_key})


class AssetDownloader:
    """HTTP client wrapper for credential-augmented asset downloads."""

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            follow_redirects=True,
        )

    async def download(self, uri: str, *, api_key: str) -> bytes:
        """Fetch asset bytes; non-success responses raise :class:`ApiError`."""

        try:
            response = await self._client.get(authorized_url(uri, api_key))
        except httpx.TimeoutException as error:
            logger.warning("Timeout downloading asset %s", uri)
            raise ApiError("Asset download timed out") from error
        if not response.is_success:
            logger.warning("HTTP %d downloading asset %s", response.status_code, uri)
            raise ApiError(
                f"Failed to download video file (HTTP {response.status_code})",
                status_code=response.status_code,
            )
        return response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AssetDownloader:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
