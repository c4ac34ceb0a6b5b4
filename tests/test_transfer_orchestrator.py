"""Tests for transfer orchestration — strategy selection, abort rule, upload selection."""

from pathlib import Path

import pytest

from conftest import FakeArtifactClient, write_png
from vrt.exceptions import BatchTransferError, TransferError, TransferSkipped
from vrt.models.comparison import ComparisonReport, ComparisonResult, ComparisonSummary
from vrt.models.transfer import FileInfo, TransferFailure, TransferOutcome, UploadPlan
from vrt.transfer.orchestrator import (
    default_aliases,
    download_baseline,
    enforce_abort_rule,
    upload_directory,
    upload_results,
)
from vrt.transfer.strategies import (
    PresignedDownload,
    PresignedUpload,
    RelayDownload,
    RelayUpload,
    plan_upload,
)

REMOTE = {
    "screenshots/a.png": b"a-bytes",
    "screenshots/b.png": b"b-bytes",
    "screenshots/c.png": b"c-bytes",
}


async def _download(client, dest: Path):
    return await download_baseline(
        client,
        repository="owner/repo",
        path="screenshots",
        alias="production",
        dest_dir=dest,
        retry_delay=0,
    )


def _report(*results: ComparisonResult) -> ComparisonReport:
    return ComparisonReport(
        timestamp="2025-01-01T00:00:00Z",
        baseline_alias="production",
        baseline_commit_sha="abc1234567",
        current_commit_sha="def4567890",
        threshold=0.1,
        results=results,
        summary=ComparisonSummary(total=len(results)),
    )


class TestEnforceAbortRule:
    def test_no_failures(self):
        enforce_abort_rule(TransferOutcome(success=("a",)), "download", 1)

    def test_failures_not_exceeding_successes_only_warn(self, caplog):
        outcome = TransferOutcome(success=("a",), failed=(TransferFailure("b", "timeout"),))
        enforce_abort_rule(outcome, "download", 2)
        assert "b: timeout" in caplog.text

    def test_failures_exceeding_successes_raise(self):
        outcome = TransferOutcome(
            success=("a",),
            failed=(TransferFailure("b", "x"), TransferFailure("c", "y")),
        )
        with pytest.raises(BatchTransferError) as exc:
            enforce_abort_rule(outcome, "upload", 3)
        assert exc.value.failed == 2
        assert exc.value.total == 3
        assert "Too many upload failures: 2/3" in str(exc.value)


class TestDownloadBaseline:
    """Tests for download_baseline."""

    @pytest.mark.asyncio
    async def test_presigned_download(self, tmp_path: Path):
        client = FakeArtifactClient(remote=dict(REMOTE), presigned=True)

        manifest = await _download(client, tmp_path)

        assert manifest.commit_sha == "abc1234567"
        assert manifest.is_public is True
        assert manifest.file_count == 3
        assert manifest.files == tuple(sorted(REMOTE))
        assert (tmp_path / "screenshots" / "a.png").read_bytes() == b"a-bytes"
        assert {c[0] for c in client.calls} == {"prepare_download", "download_presigned"}

    @pytest.mark.asyncio
    async def test_relay_download_when_presigned_unsupported(self, tmp_path: Path):
        client = FakeArtifactClient(remote=dict(REMOTE), presigned=False)

        manifest = await _download(client, tmp_path)

        assert manifest.file_count == 3
        assert {c[0] for c in client.calls} == {"prepare_download", "download_relay"}

    @pytest.mark.asyncio
    async def test_empty_baseline(self, tmp_path: Path, caplog):
        manifest = await _download(FakeArtifactClient(remote={}), tmp_path)
        assert manifest.file_count == 0
        assert manifest.files == ()
        assert manifest.output_dir == str(tmp_path)
        assert "No baseline files found" in caplog.text

    @pytest.mark.asyncio
    async def test_partial_failure_returns_successes(self, tmp_path: Path):
        client = FakeArtifactClient(remote=dict(REMOTE), failing={"screenshots/c.png"})

        manifest = await _download(client, tmp_path)

        assert manifest.file_count == 2
        assert "screenshots/c.png" not in manifest.files

    @pytest.mark.asyncio
    async def test_majority_failure_aborts(self, tmp_path: Path):
        client = FakeArtifactClient(
            remote=dict(REMOTE), failing={"screenshots/b.png", "screenshots/c.png"},
        )
        with pytest.raises(BatchTransferError, match="Too many download failures: 2/3"):
            await _download(client, tmp_path)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("remote_path", ["../escaped.png", "screenshots/../../escaped.png"])
    async def test_rejects_paths_outside_dest_dir(self, tmp_path: Path, remote_path: str):
        dest = tmp_path / "baseline"
        client = FakeArtifactClient(remote={remote_path: b"x", "screenshots/a.png": b"a"})

        with pytest.raises(TransferError, match="outside the baseline directory"):
            await _download(client, dest)

        assert not (tmp_path / "escaped.png").exists()
        assert [c[0] for c in client.calls] == ["prepare_download"]

    @pytest.mark.asyncio
    async def test_rejects_absolute_remote_path(self, tmp_path: Path):
        outside = tmp_path / "elsewhere" / "abs.png"
        client = FakeArtifactClient(remote={str(outside): b"x"}, presigned=False)

        with pytest.raises(TransferError):
            await _download(client, tmp_path / "baseline")

        assert not outside.exists()

    @pytest.mark.asyncio
    async def test_dot_segments_inside_dest_dir_are_allowed(self, tmp_path: Path):
        client = FakeArtifactClient(remote={"screenshots/./nested/../a.png": b"a"})

        manifest = await _download(client, tmp_path)

        assert manifest.file_count == 1
        assert (tmp_path / "screenshots" / "a.png").read_bytes() == b"a"

    @pytest.mark.asyncio
    async def test_flaky_file_recovers(self, tmp_path: Path):
        client = FakeArtifactClient(remote=dict(REMOTE), flaky={"screenshots/a.png": 2})
        manifest = await _download(client, tmp_path)
        assert manifest.file_count == 3


class TestPlanUpload:
    def _files(self) -> list[FileInfo]:
        return [FileInfo("/tmp/a.png", "shots/a.png", 3, "image/png")]

    def test_presigned(self):
        plan = UploadPlan(
            presigned_urls_supported=True,
            upload_token="t",
            files=[{"path": "shots/a.png", "presignedUrl": "https://s/a"}],
        )
        strategy, tasks = plan_upload(plan, FakeArtifactClient(), self._files())
        assert isinstance(strategy, PresignedUpload)
        assert tasks[0].destination == "https://s/a"

    def test_relay_with_token_only(self):
        plan = UploadPlan(presigned_urls_supported=False, upload_token="t")
        strategy, tasks = plan_upload(plan, FakeArtifactClient(), self._files())
        assert isinstance(strategy, RelayUpload)
        assert tasks[0].destination is None

    def test_skipped_without_any_path(self):
        with pytest.raises(TransferSkipped):
            plan_upload(UploadPlan(presigned_urls_supported=False), FakeArtifactClient(), self._files())

    def test_missing_presigned_url(self):
        plan = UploadPlan(presigned_urls_supported=True, upload_token="t", files=[])
        with pytest.raises(TransferError):
            plan_upload(plan, FakeArtifactClient(), self._files())

    def test_download_strategies_are_distinct(self):
        assert PresignedDownload.name == "presigned"
        assert RelayDownload.name == "relay"


class TestUploadDirectory:
    """Tests for upload_directory."""

    @pytest.mark.asyncio
    async def test_presigned_upload_and_finalize(self, tmp_path: Path, git_context):
        write_png(tmp_path / "shots" / "a.png", 2, 2)
        write_png(tmp_path / "shots" / "nested" / "b.png", 2, 2)
        client = FakeArtifactClient(presigned=True)

        response = await upload_directory(
            client, tmp_path / "shots", "shots", "screenshots-pr-123",
            repository="owner/repo", context=git_context, retry_delay=0,
        )

        assert response.deployment_id == "dep-1"
        assert response.url == "https://artifacts.example.com/sha/screenshots-pr-123"
        assert set(client.uploaded) == {"shots/a.png", "shots/nested/b.png"}
        assert client.finalized == ["token-1"]
        request = client.upload_requests[0]
        assert request.commit_sha == git_context.commit_sha
        assert request.description == "Visual regression test results for PR #123"
        assert {f.content_type for f in request.files} == {"image/png"}

    @pytest.mark.asyncio
    async def test_relay_upload(self, tmp_path: Path, git_context):
        write_png(tmp_path / "shots" / "a.png", 2, 2)
        client = FakeArtifactClient(presigned=False)

        response = await upload_directory(
            client, tmp_path / "shots", "shots", "alias",
            repository="owner/repo", context=git_context, retry_delay=0,
        )

        assert response is not None
        assert client.calls == [("upload_relay", "shots/a.png")]

    @pytest.mark.asyncio
    async def test_skipped_when_no_upload_path(self, tmp_path: Path, git_context):
        write_png(tmp_path / "shots" / "a.png", 2, 2)
        client = FakeArtifactClient(presigned=False, upload_token=None)

        response = await upload_directory(
            client, tmp_path / "shots", "shots", "alias",
            repository="owner/repo", context=git_context, retry_delay=0,
        )

        assert response is None
        assert client.finalized == []

    @pytest.mark.asyncio
    async def test_missing_directory_returns_none(self, tmp_path: Path, git_context):
        client = FakeArtifactClient()
        response = await upload_directory(
            client, tmp_path / "absent", "absent", "alias",
            repository="owner/repo", context=git_context,
        )
        assert response is None
        assert client.upload_requests == []

    @pytest.mark.asyncio
    async def test_majority_failure_aborts_before_finalize(self, tmp_path: Path, git_context):
        write_png(tmp_path / "shots" / "a.png", 2, 2)
        write_png(tmp_path / "shots" / "b.png", 2, 2)
        client = FakeArtifactClient(failing={"shots/a.png", "shots/b.png"})

        with pytest.raises(BatchTransferError):
            await upload_directory(
                client, tmp_path / "shots", "shots", "alias",
                repository="owner/repo", context=git_context, retry_delay=0,
            )
        assert client.finalized == []


class TestUploadResults:
    """Tests for upload_results selection."""

    def test_default_aliases_for_pr(self, git_context):
        assert default_aliases(git_context) == ("screenshots-pr-123", "screenshot-diffs-pr-123")

    def test_default_aliases_for_push(self, git_context):
        push = git_context.model_copy(update={"pr_number": None})
        assert default_aliases(push) == ("screenshots-sha-def4567", "screenshot-diffs-sha-def4567")

    @pytest.mark.asyncio
    async def test_only_screenshots_without_failures(self, dirs, compare_config, git_context):
        write_png(dirs["current"] / "a.png", 2, 2)
        client = FakeArtifactClient()
        report = _report(ComparisonResult(name="a.png", status="new"))

        result = await upload_results(client, compare_config, git_context, report, retry_delay=0)

        assert [r.alias for r in client.upload_requests] == ["screenshots-pr-123"]
        assert result.screenshots_url == "https://artifacts.example.com/sha/screenshots-pr-123"
        assert result.diffs_url is None

    @pytest.mark.asyncio
    async def test_diffs_uploaded_when_a_result_fails(self, dirs, compare_config, git_context):
        write_png(dirs["current"] / "a.png", 2, 2)
        write_png(dirs["diffs"] / "diff-a.png", 2, 2)
        client = FakeArtifactClient()
        report = _report(ComparisonResult(
            name="a.png", status="fail", diff_percentage=50.0, diff_path=str(dirs["diffs"] / "diff-a.png"),
        ))

        result = await upload_results(client, compare_config, git_context, report, retry_delay=0)

        assert [r.alias for r in client.upload_requests] == ["screenshots-pr-123", "screenshot-diffs-pr-123"]
        assert result.diffs_url == "https://artifacts.example.com/sha/screenshot-diffs-pr-123"

    @pytest.mark.asyncio
    async def test_passing_diff_alone_does_not_upload_diffs(self, dirs, compare_config, git_context):
        write_png(dirs["current"] / "a.png", 2, 2)
        write_png(dirs["diffs"] / "diff-a.png", 2, 2)
        client = FakeArtifactClient()
        report = _report(ComparisonResult(
            name="a.png", status="pass", diff_percentage=0.05, diff_path=str(dirs["diffs"] / "diff-a.png"),
        ))

        await upload_results(client, compare_config, git_context, report, retry_delay=0)

        assert len(client.upload_requests) == 1

    @pytest.mark.asyncio
    async def test_custom_aliases(self, dirs, compare_config, git_context):
        write_png(dirs["current"] / "a.png", 2, 2)
        cfg = compare_config.model_copy(update={"screenshots_alias": "my-shots"})
        client = FakeArtifactClient()

        await upload_results(client, cfg, git_context, _report(), retry_delay=0)

        assert client.upload_requests[0].alias == "my-shots"

    @pytest.mark.asyncio
    async def test_failed_upload_degrades_to_warning(self, dirs, compare_config, git_context, caplog):
        write_png(dirs["current"] / "a.png", 2, 2)
        client = FakeArtifactClient(failing={f"{compare_config.remote_path}/a.png"})

        result = await upload_results(client, compare_config, git_context, _report(), retry_delay=0)

        assert result.screenshots_url is None
        assert "Failed to upload" in caplog.text
