"""Comparison entry point — screenshots directory vs. a materialized baseline."""

from __future__ import annotations

import logging
from pathlib import Path

from vrt.models.comparison import BaselineManifest, ComparisonReport
from vrt.models.config import CompareConfig
from vrt.models.context import GitContext
from vrt.reporter.aggregator import build_report

from .classifier import baseline_lookup, classify_screenshots, list_screenshots

logger = logging.getLogger(__name__)


def compare_screenshots(
    config: CompareConfig,
    baseline: BaselineManifest,
    context: GitContext,
) -> ComparisonReport:
    """Compare local screenshots against the baseline and build the report."""
    local_dir = Path(config.path).resolve()
    local_names = list_screenshots(local_dir)
    lookup = baseline_lookup(baseline)
    logger.info("Comparing %d local screenshots against %d baseline files",
                len(local_names), len(lookup))

    results = classify_screenshots(
        local_dir,
        local_names,
        lookup,
        Path(config.output_dir).resolve(),
        config.diff_options,
        config.threshold,
    )

    report = build_report(
        results,
        baseline_alias=config.baseline_alias,
        baseline=baseline,
        current_commit_sha=context.commit_sha,
        threshold=config.threshold,
    )
    s = report.summary
    logger.info("Comparison complete: %d total, %d passed, %d failed, %d new, %d missing",
                s.total, s.passed, s.failed, s.new, s.missing)
    return report


def local_baseline(directory: str | Path, commit_sha: str = "local") -> BaselineManifest:
    """Describe an on-disk directory of screenshots as a baseline manifest."""
    directory = Path(directory).resolve()
    files = tuple(list_screenshots(directory))
    return BaselineManifest(
        commit_sha=commit_sha,
        is_public=False,
        output_dir=str(directory),
        file_count=len(files),
        files=files,
    )
