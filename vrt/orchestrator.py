"""Pipeline orchestrator — coordinates download, compare, report and upload stages."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import shutil
import tempfile
import time
import uuid
from pathlib import Path

from vrt.compare.comparator import compare_screenshots
from vrt.exceptions import ConfigurationError
from vrt.models.comparison import ComparisonReport
from vrt.models.config import CompareConfig
from vrt.models.context import GitContext
from vrt.models.outputs import RunOutputs
from vrt.models.transfer import UploadResult
from vrt.reporter.json_report import write_report
from vrt.reporter.markdown_report import render_summary, write_step_summary
from vrt.reporter.pr_comment import post_pr_comment
from vrt.transfer.client import ArtifactClient, HttpArtifactClient
from vrt.transfer.orchestrator import download_baseline, upload_results

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs one visual regression check end to end."""

    def __init__(
        self,
        config: CompareConfig,
        context: GitContext,
        client: ArtifactClient | None = None,
        retry_delay: float = 1.0,
    ):
        self.config = config
        self.context = context
        self.client = client
        self.retry_delay = retry_delay

    def run(self) -> RunOutputs:
        """Execute the complete download → compare → report → upload pipeline."""
        return asyncio.run(self._run_pipeline())

    async def _run_pipeline(self) -> RunOutputs:
        if self.client is not None:
            return await self._run_with_client(self.client)

        if not self.config.api_url or not self.config.api_key:
            raise ConfigurationError(
                "api_url and api_key are required to fetch the baseline",
                recovery_hint="Set them in the config file or as INPUT_API-URL / INPUT_API-KEY.",
            )
        async with HttpArtifactClient(self.config.api_url, self.config.api_key) as client:
            return await self._run_with_client(client)

    async def _run_with_client(self, client: ArtifactClient) -> RunOutputs:
        start = time.time()
        cfg = self.config
        repository = cfg.repository or self.context.repository
        logger.info("=== Visual regression check for %s @ %s ===", repository, self.context.short_sha)
        logger.info("Path: %s | Baseline alias: %s | Threshold: %s%%",
                    cfg.path, cfg.baseline_alias, cfg.threshold)

        baseline_dir = Path(tempfile.mkdtemp(prefix="vrt-baseline-"))
        try:
            # Stage 1: Download baseline
            logger.info("--- Stage 1: Download baseline (%s) ---", cfg.baseline_alias)
            baseline = await download_baseline(
                client,
                repository=repository,
                path=cfg.remote_path,
                alias=cfg.baseline_alias,
                dest_dir=baseline_dir,
                concurrency=cfg.concurrency,
                max_retries=cfg.max_retries,
                retry_delay=self.retry_delay,
            )
            logger.info("Downloaded %d baseline screenshots (commit %s)",
                        baseline.file_count, baseline.commit_sha)

            # Stage 2: Compare
            logger.info("--- Stage 2: Compare ---")
            report = compare_screenshots(cfg, baseline, self.context)

            # Stage 3: Persist report
            report_path = write_report(report, cfg.report_path)
            logger.info("Report written to: %s", report_path)

            # Stage 4: Upload
            uploaded = UploadResult()
            if cfg.upload_results and (report.summary.failed > 0 or report.summary.new > 0):
                logger.info("--- Stage 4: Upload results ---")
                uploaded = await upload_results(client, cfg, self.context, report, self.retry_delay)

            outputs = build_outputs(report, uploaded)

            if cfg.summary:
                write_step_summary(render_summary(report, cfg, self.context, uploaded))

            if cfg.comment:
                await post_pr_comment(report, cfg, self.context, uploaded)
        finally:
            self._cleanup(baseline_dir)

        logger.info("=== Check complete in %.1fs: %s ===", time.time() - start, outputs.result.upper())
        return outputs

    @staticmethod
    def _cleanup(baseline_dir: Path) -> None:
        if not baseline_dir.exists():
            return
        try:
            shutil.rmtree(baseline_dir)
            logger.debug("Cleaned up temporary baseline directory")
        except OSError as e:
            logger.warning("Failed to clean up temp directory %s: %s", baseline_dir, e)


def build_outputs(report: ComparisonReport, uploaded: UploadResult | None = None) -> RunOutputs:
    s = report.summary
    uploaded = uploaded or UploadResult()
    return RunOutputs(
        total=s.total,
        passed=s.passed,
        failed=s.failed,
        new=s.new,
        missing=s.missing,
        result=s.result,
        report=json.dumps(report.to_json_dict()),
        baseline_commit_sha=report.baseline_commit_sha,
        baseline_is_public=report.baseline_is_public,
        screenshots_url=uploaded.screenshots_url,
        diffs_url=uploaded.diffs_url,
    )


def write_github_outputs(outputs: RunOutputs, path: str | Path | None = None) -> Path | None:
    """Append outputs to the runner's output file using delimiter syntax."""
    target = path or os.environ.get("GITHUB_OUTPUT")
    if not target:
        return None
    target = Path(target)
    with open(target, "a", encoding="utf-8") as f:
        for name, value in outputs.as_action_outputs().items():
            delimiter = f"ghadelimiter_{uuid.uuid4().hex}"
            f.write(f"{name}<<{delimiter}\n{value}\n{delimiter}\n")
    return target
