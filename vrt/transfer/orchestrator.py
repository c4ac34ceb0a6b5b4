"""Transfer orchestration — what to move, how, and when a batch is fatal."""

from __future__ import annotations

import logging
from pathlib import Path

from vrt.exceptions import (
    BatchTransferError,
    InvalidDirectoryError,
    TransferError,
    TransferSkipped,
)
from vrt.models.comparison import BaselineManifest, ComparisonReport
from vrt.models.config import CompareConfig
from vrt.models.context import GitContext
from vrt.models.transfer import (
    TransferOutcome,
    UploadFileSpec,
    UploadRequest,
    UploadResponse,
    UploadResult,
)

from .client import ArtifactClient
from .files import validate_directory, walk_directory
from .pool import DEFAULT_CONCURRENCY, DEFAULT_MAX_RETRIES, TransferWorkerPool
from .strategies import plan_download, plan_upload

logger = logging.getLogger(__name__)

MAX_LISTED_FAILURES = 10


def enforce_abort_rule(outcome: TransferOutcome, kind: str, total: int) -> None:
    """Warn about failed files; raise when failures outnumber successes."""
    if not outcome.failed:
        return
    listed = "\n".join(f"  - {f.path}: {f.error}" for f in outcome.failed[:MAX_LISTED_FAILURES])
    logger.warning("%d files failed to %s:\n%s", len(outcome.failed), kind, listed)
    if len(outcome.failed) > len(outcome.success):
        raise BatchTransferError(kind, len(outcome.failed), total)


async def download_baseline(
    client: ArtifactClient,
    *,
    repository: str,
    path: str,
    alias: str,
    dest_dir: str | Path,
    concurrency: int = DEFAULT_CONCURRENCY,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = 1.0,
) -> BaselineManifest:
    """Materialize the baseline for ``alias`` into ``dest_dir``."""
    logger.info("Downloading baseline to: %s", dest_dir)
    plan = await client.prepare_download(repository, path, alias)

    if not plan.files:
        logger.warning("No baseline files found")
        return BaselineManifest(
            commit_sha=plan.commit_sha,
            is_public=plan.is_public,
            output_dir=str(dest_dir),
        )

    logger.info("Found %d baseline files (commit %s, public=%s)",
                len(plan.files), plan.commit_sha, plan.is_public)

    strategy, tasks = plan_download(plan, client, dest_dir, repository=repository, alias=alias)
    if strategy.name == "relay":
        logger.info("Storage does not support presigned URLs, downloading through API...")
    else:
        logger.info("Downloading baseline directly from storage...")

    pool = TransferWorkerPool(strategy.transfer, concurrency, max_retries, retry_delay)
    outcome = await pool.run(tasks)
    enforce_abort_rule(outcome, "download", len(tasks))

    logger.info("Successfully downloaded %d baseline files", len(outcome.success))
    return BaselineManifest(
        commit_sha=plan.commit_sha,
        is_public=plan.is_public,
        output_dir=str(dest_dir),
        file_count=len(outcome.success),
        files=tuple(sorted(outcome.success)),
    )


async def upload_directory(
    client: ArtifactClient,
    dir_path: str | Path,
    base_path: str,
    alias: str,
    *,
    repository: str,
    context: GitContext,
    concurrency: int = DEFAULT_CONCURRENCY,
    max_retries: int = DEFAULT_MAX_RETRIES,
    retry_delay: float = 1.0,
) -> UploadResponse | None:
    """Upload every file under ``dir_path`` as one deployment.

    Returns None when there is nothing to upload or the storage offers no
    upload path at all.
    """
    try:
        resolved = validate_directory(dir_path)
    except InvalidDirectoryError as e:
        logger.warning("Directory not found or empty: %s (%s)", dir_path, e.message)
        return None

    files = walk_directory(resolved, base_path)
    if not files:
        logger.warning("No files found in: %s", dir_path)
        return None
    logger.info("Found %d files to upload", len(files))

    target = f"PR #{context.pr_number}" if context.pr_number else context.short_sha
    plan = await client.prepare_upload(UploadRequest(
        repository=repository,
        commit_sha=context.commit_sha,
        branch=context.branch,
        alias=alias,
        base_path=base_path,
        description=f"Visual regression test results for {target}",
        files=[
            UploadFileSpec(path=f.relative_path, size=f.size, content_type=f.content_type)
            for f in files
        ],
    ))

    try:
        strategy, tasks = plan_upload(plan, client, files)
    except TransferSkipped as e:
        logger.warning("%s", e)
        return None

    logger.info("Uploading %d files (%s)...", len(tasks), strategy.name)
    pool = TransferWorkerPool(strategy.transfer, concurrency, max_retries, retry_delay)
    outcome = await pool.run(tasks)
    enforce_abort_rule(outcome, "upload", len(files))
    logger.info("Successfully uploaded %d files", len(outcome.success))

    response = await client.finalize(plan.upload_token)
    logger.info("Upload finalized (deployment %s)", response.deployment_id)
    return response


def default_aliases(context: GitContext) -> tuple[str, str]:
    suffix = f"pr-{context.pr_number}" if context.pr_number else f"sha-{context.short_sha}"
    return f"screenshots-{suffix}", f"screenshot-diffs-{suffix}"


def has_failed_diffs(report: ComparisonReport) -> bool:
    return any(r.status == "fail" and r.diff_path for r in report.results)


async def upload_results(
    client: ArtifactClient,
    config: CompareConfig,
    context: GitContext,
    report: ComparisonReport,
    retry_delay: float = 1.0,
) -> UploadResult:
    """Upload current screenshots, plus diff images when something failed.

    A failed directory upload is logged and leaves its URL unset; it never
    fails the comparison.
    """
    screenshots_alias, diffs_alias = default_aliases(context)
    screenshots_alias = config.screenshots_alias or screenshots_alias
    diffs_alias = config.diffs_alias or diffs_alias
    repository = config.repository or context.repository

    targets = [("screenshots_url", config.path, config.remote_path, screenshots_alias)]
    if has_failed_diffs(report):
        targets.append(("diffs_url", config.output_dir, config.remote_output_dir, diffs_alias))

    urls: dict[str, str | None] = {}
    for field, local_dir, base_path, alias in targets:
        logger.info("Uploading %s from: %s", field.replace("_url", ""), local_dir)
        try:
            response = await upload_directory(
                client, local_dir, base_path, alias,
                repository=repository,
                context=context,
                concurrency=config.concurrency,
                max_retries=config.max_retries,
                retry_delay=retry_delay,
            )
        except TransferError as e:
            logger.warning("Failed to upload %s: %s", local_dir, e)
            continue
        if response:
            urls[field] = response.url
            logger.info("Uploaded %s: %s", alias, response.url)

    return UploadResult(**urls)
