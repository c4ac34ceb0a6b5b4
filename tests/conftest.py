"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from vrt.models.comparison import BaselineManifest
from vrt.models.config import CompareConfig, DiffOptions
from vrt.models.context import GitContext
from vrt.models.transfer import (
    DeploymentUrls,
    DownloadPlan,
    RemoteFile,
    UploadPlan,
    UploadRequest,
    UploadResponse,
)

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def write_png(path: Path, width: int, height: int, color=RED) -> Path:
    """Write a solid-color RGBA PNG."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGBA", (width, height), color).save(path, "PNG")
    return path


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def diff_options() -> DiffOptions:
    return DiffOptions(pixel_threshold=0.1, include_anti_aliasing=False)


@pytest.fixture
def dirs(tmp_path: Path) -> dict[str, Path]:
    """Baseline, current and diff output directories inside tmp_path."""
    d = {
        "baseline": tmp_path / "baseline",
        "current": tmp_path / "current",
        "diffs": tmp_path / "diffs",
    }
    d["baseline"].mkdir()
    d["current"].mkdir()
    return d


@pytest.fixture
def compare_config(dirs: dict[str, Path], tmp_path: Path) -> CompareConfig:
    return CompareConfig(
        path=str(dirs["current"]),
        baseline_alias="production",
        api_url="https://artifacts.example.com",
        api_key="secret",
        threshold=0.1,
        pixel_threshold=0.1,
        repository="owner/repo",
        output_dir=str(dirs["diffs"]),
        report_path=str(tmp_path / "vrt-report.json"),
    )


@pytest.fixture
def git_context() -> GitContext:
    return GitContext(
        repository="owner/repo",
        commit_sha="def4567890abcdef",
        branch="feature",
        pr_number=123,
    )


def make_manifest(output_dir: Path, files: list[str], commit_sha: str = "abc1234567") -> BaselineManifest:
    return BaselineManifest(
        commit_sha=commit_sha,
        is_public=True,
        output_dir=str(output_dir),
        file_count=len(files),
        files=tuple(files),
    )


# ============================================================================
# Artifact Client Fixtures
# ============================================================================


class FakeArtifactClient:
    """In-memory ArtifactClient.

    ``remote`` maps remote paths to file bytes. Paths listed in
    ``failing`` raise on every transfer attempt; ``flaky`` maps a path to the
    number of attempts that fail before one succeeds.
    """

    def __init__(
        self,
        remote: dict[str, bytes] | None = None,
        presigned: bool = True,
        upload_token: str | None = "token-1",
        failing: set[str] | None = None,
        flaky: dict[str, int] | None = None,
    ):
        self.remote = remote or {}
        self.presigned = presigned
        self.upload_token = upload_token
        self.failing = failing or set()
        self.flaky = dict(flaky or {})
        self.calls: list[tuple] = []
        self.uploaded: dict[str, bytes] = {}
        self.upload_requests: list[UploadRequest] = []
        self.finalized: list[str] = []
        self.download_dirs: list[Path] = []

    def _maybe_fail(self, path: str) -> None:
        if path in self.failing:
            raise ConnectionError(f"boom: {path}")
        if self.flaky.get(path, 0) > 0:
            self.flaky[path] -= 1
            raise ConnectionError(f"flaky: {path}")

    async def prepare_download(self, repository: str, path: str, alias: str) -> DownloadPlan:
        self.calls.append(("prepare_download", repository, path, alias))
        return DownloadPlan(
            commit_sha="abc1234567",
            is_public=True,
            presigned_urls_supported=self.presigned,
            files=[
                RemoteFile(
                    path=p,
                    size=len(data),
                    download_url=f"https://storage.example.com/{p}" if self.presigned else None,
                )
                for p, data in self.remote.items()
            ],
        )

    async def download_presigned(self, url: str, dest: Path) -> None:
        path = url.removeprefix("https://storage.example.com/")
        self.calls.append(("download_presigned", path))
        self._write(path, dest)

    async def download_relay(self, repository: str, alias: str, path: str, dest: Path) -> None:
        self.calls.append(("download_relay", path))
        self._write(path, dest)

    def _write(self, path: str, dest: Path) -> None:
        self._maybe_fail(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.remote[path])
        self.download_dirs.append(dest.parent)

    async def prepare_upload(self, request: UploadRequest) -> UploadPlan:
        self.upload_requests.append(request)
        if self.presigned:
            return UploadPlan(
                presigned_urls_supported=True,
                upload_token=self.upload_token,
                files=[
                    {"path": f.path, "presignedUrl": f"https://storage.example.com/up/{f.path}"}
                    for f in request.files
                ],
            )
        return UploadPlan(presigned_urls_supported=False, upload_token=self.upload_token)

    async def upload_presigned(self, url: str, source: Path, content_type: str) -> None:
        path = url.removeprefix("https://storage.example.com/up/")
        self.calls.append(("upload_presigned", path))
        self._maybe_fail(path)
        self.uploaded[path] = source.read_bytes()

    async def upload_relay(self, upload_token: str, path: str, source: Path, content_type: str) -> None:
        self.calls.append(("upload_relay", path))
        self._maybe_fail(path)
        self.uploaded[path] = source.read_bytes()

    async def finalize(self, upload_token: str) -> UploadResponse:
        self.finalized.append(upload_token)
        alias = self.upload_requests[-1].alias
        return UploadResponse(
            deployment_id=f"dep-{len(self.finalized)}",
            urls=DeploymentUrls(
                sha=f"https://artifacts.example.com/sha/{alias}",
                alias=f"https://artifacts.example.com/alias/{alias}",
            ),
        )


@pytest.fixture
def fake_client() -> FakeArtifactClient:
    return FakeArtifactClient()
