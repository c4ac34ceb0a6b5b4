"""
Artifact store client

``ArtifactClient`` is the narrow interface the transfer orchestrator consumes.
``HttpArtifactClient`` implements it over the artifact API with httpx.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

import httpx

from vrt.exceptions import TransferError
from vrt.models.transfer import (
    DownloadPlan,
    UploadPlan,
    UploadRequest,
    UploadResponse,
)

logger = logging.getLogger(__name__)


class ArtifactClient(Protocol):
    async def prepare_download(self, repository: str, path: str, alias: str) -> DownloadPlan: ...

    async def download_presigned(self, url: str, dest: Path) -> None: ...

    async def download_relay(self, repository: str, alias: str, path: str, dest: Path) -> None: ...

    async def prepare_upload(self, request: UploadRequest) -> UploadPlan: ...

    async def upload_presigned(self, url: str, source: Path, content_type: str) -> None: ...

    async def upload_relay(self, upload_token: str, path: str, source: Path, content_type: str) -> None: ...

    async def finalize(self, upload_token: str) -> UploadResponse: ...


class Endpoints:
    PREPARE_DOWNLOAD = "/api/deployments/prepare-batch-download"
    DOWNLOAD_FILE = "/api/deployments/download-file"
    PREPARE_UPLOAD = "/api/deployments/prepare-batch-upload"
    UPLOAD_FILE = "/api/deployments/upload-file"
    FINALIZE_UPLOAD = "/api/deployments/finalize-upload"


class HttpArtifactClient:
    """
    Async client for the artifact API.

    API calls carry the key in an ``X-API-Key`` header; presigned URLs are
    requested without it since they already embed their own credentials.

    Example:
        async with HttpArtifactClient("https://artifacts.example.com", key) as client:
            plan = await client.prepare_download("owner/repo", "screenshots", "production")
    """

    def __init__(self, api_url: str, api_key: str, timeout: float = 60.0):
        self.api_url = api_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={"X-API-Key": api_key},
            timeout=timeout,
            follow_redirects=True,
        )
        # Presigned URLs must not receive the API key
        self.storage = httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()
        await self.storage.aclose()

    # Download

    async def prepare_download(self, repository: str, path: str, alias: str) -> DownloadPlan:
        data = await self._post_json(Endpoints.PREPARE_DOWNLOAD, {
            "repository": repository,
            "path": path,
            "alias": alias,
        })
        return DownloadPlan.model_validate(data)

    async def download_presigned(self, url: str, dest: Path) -> None:
        await self._stream_to_file(self.storage, "GET", url, dest)

    async def download_relay(self, repository: str, alias: str, path: str, dest: Path) -> None:
        await self._stream_to_file(
            self.client, "GET", Endpoints.DOWNLOAD_FILE, dest,
            params={"repository": repository, "alias": alias, "path": path},
        )

    # Upload

    async def prepare_upload(self, request: UploadRequest) -> UploadPlan:
        data = await self._post_json(
            Endpoints.PREPARE_UPLOAD, request.model_dump(by_alias=True, exclude_none=True),
        )
        return UploadPlan.model_validate(data)

    async def upload_presigned(self, url: str, source: Path, content_type: str) -> None:
        content = await asyncio.to_thread(Path(source).read_bytes)
        response = await self.storage.put(url, content=content, headers={"Content-Type": content_type})
        response.raise_for_status()

    async def upload_relay(self, upload_token: str, path: str, source: Path, content_type: str) -> None:
        content = await asyncio.to_thread(Path(source).read_bytes)
        response = await self.client.post(
            Endpoints.UPLOAD_FILE,
            data={"uploadToken": upload_token, "path": path},
            files={"file": (Path(source).name, content, content_type)},
        )
        response.raise_for_status()

    async def finalize(self, upload_token: str) -> UploadResponse:
        data = await self._post_json(Endpoints.FINALIZE_UPLOAD, {"uploadToken": upload_token})
        return UploadResponse.model_validate(data)

    # Helpers

    async def _post_json(self, endpoint: str, payload: dict) -> dict:
        try:
            response = await self.client.post(endpoint, json=payload)
        except httpx.TransportError as e:
            raise TransferError(
                f"Unable to reach artifact API at {self.api_url}: {e}",
                context={"endpoint": endpoint},
            ) from e
        if response.is_error:
            raise TransferError(
                f"Artifact API returned {response.status_code}: {response.text[:200]}",
                context={"endpoint": endpoint},
            )
        return response.json()

    @staticmethod
    async def _stream_to_file(
        client: httpx.AsyncClient, method: str, url: str, dest: Path, params: dict | None = None,
    ) -> None:
        dest = Path(dest)
        await asyncio.to_thread(dest.parent.mkdir, parents=True, exist_ok=True)
        async with client.stream(method, url, params=params) as response:
            response.raise_for_status()
            # Disk writes run in a worker thread so other transfers keep streaming
            f = await asyncio.to_thread(open, dest, "wb")
            try:
                async for chunk in response.aiter_bytes():
                    await asyncio.to_thread(f.write, chunk)
            finally:
                await asyncio.to_thread(f.close)
        logger.debug("Downloaded %s", dest)
