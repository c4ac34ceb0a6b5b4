"""Report aggregation — folds classification results into a report record."""

from __future__ import annotations

import time
from typing import Iterable

from vrt.models.comparison import (
    BaselineManifest,
    ComparisonReport,
    ComparisonResult,
    ComparisonSummary,
)


def summarize(results: Iterable[ComparisonResult]) -> ComparisonSummary:
    """Count results per status."""
    counts = {"pass": 0, "fail": 0, "new": 0, "missing": 0}
    total = 0
    for r in results:
        counts[r.status] += 1
        total += 1
    return ComparisonSummary(
        total=total,
        passed=counts["pass"],
        failed=counts["fail"],
        new=counts["new"],
        missing=counts["missing"],
    )


def build_report(
    results: Iterable[ComparisonResult],
    *,
    baseline_alias: str,
    baseline: BaselineManifest,
    current_commit_sha: str,
    threshold: float,
    timestamp: str | None = None,
) -> ComparisonReport:
    results = tuple(results)
    return ComparisonReport(
        timestamp=timestamp or time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        baseline_alias=baseline_alias,
        baseline_commit_sha=baseline.commit_sha,
        baseline_is_public=baseline.is_public,
        current_commit_sha=current_commit_sha,
        threshold=threshold,
        results=results,
        summary=summarize(results),
    )


def overall_result(summary: ComparisonSummary) -> str:
    return summary.result
