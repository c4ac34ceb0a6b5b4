"""Transfer data structures: tasks, outcomes and remote transfer plans."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


@dataclass(frozen=True)
class FileInfo:
    absolute_path: str
    relative_path: str  # base-path prefixed, forward slashes
    size: int
    content_type: str


@dataclass(frozen=True)
class TransferTask:
    """One unit of work for the worker pool."""
    file_path: str  # local source (upload) or local target (download)
    relative_path: str  # remote path
    size: int = 0
    content_type: str = "application/octet-stream"
    destination: Optional[str] = None  # presigned URL on the direct path


@dataclass(frozen=True)
class TransferFailure:
    path: str
    error: str


@dataclass(frozen=True)
class TransferOutcome:
    success: tuple[str, ...] = ()
    failed: tuple[TransferFailure, ...] = ()

    @property
    def total(self) -> int:
        return len(self.success) + len(self.failed)


class _ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RemoteFile(_ApiModel):
    path: str
    size: int = 0
    download_url: Optional[str] = None


class DownloadPlan(_ApiModel):
    """Response to a prepare-download request."""
    commit_sha: str
    is_public: bool = False
    presigned_urls_supported: bool = False
    files: list[RemoteFile] = Field(default_factory=list)


class UploadFileSpec(_ApiModel):
    path: str
    size: int
    content_type: str


class UploadRequest(_ApiModel):
    repository: str
    commit_sha: str
    branch: str
    alias: str
    base_path: str = ""
    description: str = ""
    files: list[UploadFileSpec] = Field(default_factory=list)


class PresignedUpload(_ApiModel):
    path: str
    presigned_url: str


class UploadPlan(_ApiModel):
    """Response to a prepare-upload request."""
    presigned_urls_supported: bool = False
    upload_token: Optional[str] = None
    expires_at: Optional[str] = None
    files: Optional[list[PresignedUpload]] = None


class DeploymentUrls(_ApiModel):
    sha: Optional[str] = None
    alias: Optional[str] = None


class UploadResponse(_ApiModel):
    deployment_id: str
    urls: DeploymentUrls = Field(default_factory=DeploymentUrls)

    @property
    def url(self) -> Optional[str]:
        return self.urls.sha or self.urls.alias


class UploadResult(BaseModel):
    screenshots_url: Optional[str] = None
    diffs_url: Optional[str] = None
