"""Transfer strategies — presigned-direct or relayed through the API.

The strategy is chosen once per batch from the capability flag of the
prepare response; the worker pool only ever sees ``strategy.transfer``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path

from vrt.exceptions import TransferError, TransferSkipped
from vrt.models.transfer import DownloadPlan, FileInfo, TransferTask, UploadPlan

from .client import ArtifactClient

logger = logging.getLogger(__name__)


class TransferStrategy(ABC):
    name: str = ""

    def __init__(self, client: ArtifactClient):
        self.client = client

    @abstractmethod
    async def transfer(self, task: TransferTask) -> None:
        """Move a single file. Raises on failure so the pool can retry."""


class PresignedDownload(TransferStrategy):
    name = "presigned"

    async def transfer(self, task: TransferTask) -> None:
        if not task.destination:
            raise TransferError(f"No download URL for file: {task.relative_path}")
        await self.client.download_presigned(task.destination, Path(task.file_path))


class RelayDownload(TransferStrategy):
    name = "relay"

    def __init__(self, client: ArtifactClient, repository: str, alias: str):
        super().__init__(client)
        self.repository = repository
        self.alias = alias

    async def transfer(self, task: TransferTask) -> None:
        await self.client.download_relay(
            self.repository, self.alias, task.relative_path, Path(task.file_path),
        )


class PresignedUpload(TransferStrategy):
    name = "presigned"

    async def transfer(self, task: TransferTask) -> None:
        if not task.destination:
            raise TransferError(f"No presigned URL for file: {task.relative_path}")
        await self.client.upload_presigned(task.destination, Path(task.file_path), task.content_type)


class RelayUpload(TransferStrategy):
    name = "relay"

    def __init__(self, client: ArtifactClient, upload_token: str):
        super().__init__(client)
        self.upload_token = upload_token

    async def transfer(self, task: TransferTask) -> None:
        await self.client.upload_relay(
            self.upload_token, task.relative_path, Path(task.file_path), task.content_type,
        )


def plan_download(
    plan: DownloadPlan,
    client: ArtifactClient,
    dest_dir: str | Path,
    *,
    repository: str,
    alias: str,
) -> tuple[TransferStrategy, list[TransferTask]]:
    """Pick the download strategy and build one task per remote file."""
    if plan.presigned_urls_supported:
        strategy: TransferStrategy = PresignedDownload(client)
    else:
        strategy = RelayDownload(client, repository, alias)

    dest_dir = Path(dest_dir)
    tasks = [
        TransferTask(
            file_path=str(_local_target(dest_dir, f.path)),
            relative_path=f.path,
            size=f.size,
            destination=f.download_url if plan.presigned_urls_supported else None,
        )
        for f in plan.files
    ]
    return strategy, tasks


def _local_target(dest_dir: Path, remote_path: str) -> Path:
    """Map a remote path into ``dest_dir``; paths escaping it are rejected."""
    root = dest_dir.resolve()
    target = (root / remote_path).resolve()
    if not target.is_relative_to(root) or target == root:
        raise TransferError(
            f"Refusing to download outside the baseline directory: {remote_path}",
            context={"dest_dir": str(root)},
        )
    return target


def plan_upload(
    plan: UploadPlan,
    client: ArtifactClient,
    files: list[FileInfo],
) -> tuple[TransferStrategy, list[TransferTask]]:
    """Pick the upload strategy and match every local file to its destination."""
    if plan.presigned_urls_supported:
        if not plan.files or not plan.upload_token:
            raise TransferError("Invalid response from prepare-batch-upload")
        urls = {f.path: f.presigned_url for f in plan.files}
        missing = [f.relative_path for f in files if f.relative_path not in urls]
        if missing:
            raise TransferError(f"No presigned URL for file: {missing[0]}")
        strategy: TransferStrategy = PresignedUpload(client)
    elif plan.upload_token:
        urls = {}
        strategy = RelayUpload(client, plan.upload_token)
    else:
        raise TransferSkipped("Storage does not support presigned URLs for upload")

    tasks = [
        TransferTask(
            file_path=f.absolute_path,
            relative_path=f.relative_path,
            size=f.size,
            content_type=f.content_type,
            destination=urls.get(f.relative_path),
        )
        for f in files
    ]
    return strategy, tasks
