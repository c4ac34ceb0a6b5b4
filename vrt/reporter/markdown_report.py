"""Markdown step summary — renders the comparison report for the CI job page."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from vrt.models.comparison import ComparisonReport, ComparisonResult
from vrt.models.config import CompareConfig
from vrt.models.context import GitContext
from vrt.models.transfer import UploadResult

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "## Visual Regression Report"

_STATUS_EMOJI = {
    "pass": ":white_check_mark:",
    "fail": ":x:",
    "new": ":new:",
    "missing": ":warning:",
}


def _plural(n: int, word: str) -> str:
    return f"{word}{'s' if n > 1 else ''}"


def _diff_pct(r: ComparisonResult) -> str:
    return f"{r.diff_percentage:.3f}%" if r.diff_percentage is not None else "-"


def show_images(report: ComparisonReport, config: CompareConfig) -> bool:
    return config.summary_images == "true" or (
        config.summary_images == "auto" and report.baseline_is_public
    )


def _headline(report: ComparisonReport) -> str:
    s = report.summary
    if s.failed == 0 and s.missing == 0:
        if s.new > 0:
            return f"> **{s.new}** new {_plural(s.new, 'screenshot')} (no baseline to compare)\n\n"
        return f"> **{s.passed}/{s.total}** screenshots passed\n\n"
    line = f"> **{s.passed}/{s.total - s.new}** screenshots passed"
    if s.failed:
        line += f" | **{s.failed}** failed"
    if s.missing:
        line += f" | **{s.missing}** missing"
    if s.new:
        line += f" | **{s.new}** new"
    return line + "\n\n"


def _failures_section(
    failures: list[ComparisonResult],
    report: ComparisonReport,
    config: CompareConfig,
    context: GitContext,
) -> str:
    api_url = (config.api_url or "").rstrip("/")
    owner, _, repo = (config.repository or context.repository).partition("/")
    shots = config.remote_path
    diffs = config.remote_output_dir
    base, current = report.baseline_commit_sha, context.commit_sha

    md = "\n### Failed Screenshots\n\n"
    if show_images(report, config):
        public = f"{api_url}/public/{owner}/{repo}/commits"
        for f in failures:
            md += "<details>\n"
            md += f"<summary>:x: {f.name} ({_diff_pct(f)} diff)</summary>\n\n"
            md += "| Baseline | Current | Diff |\n"
            md += "|----------|---------|------|\n"
            md += (
                f"| ![baseline]({public}/{base}/{shots}/{f.name}) "
                f"| ![current]({public}/{current}/{shots}/{f.name}) "
                f"| ![diff]({public}/{current}/{diffs}/diff-{f.name}) |\n\n"
            )
            md += "</details>\n\n"
        return md

    # Private baselines: link into the admin UI, which requires login
    admin = f"{api_url}/repo/{owner}/{repo}"
    md += "| Screenshot | Diff % | Links |\n"
    md += "|------------|--------|-------|\n"
    for f in failures:
        md += (
            f"| {f.name} | {_diff_pct(f)} | "
            f"[baseline]({admin}/{base}/{shots}/{f.name}) "
            f"[current]({admin}/{current}/{shots}/{f.name}) "
            f"[diff]({admin}/{current}/{diffs}/diff-{f.name}) |\n"
        )
    md += f"\n> :lock: [View all diffs]({admin}/{current}/{diffs}) (requires login)\n"
    return md


def render_summary(
    report: ComparisonReport,
    config: CompareConfig,
    context: GitContext,
    upload_result: UploadResult | None = None,
    title: str = DEFAULT_TITLE,
) -> str:
    """Render the report as GitHub-flavoured markdown under ``title``."""
    md = f"{title}\n\n"
    md += _headline(report)

    md += f"**Baseline:** `{report.baseline_alias}` @ `{report.baseline_commit_sha[:7]}`\n"
    md += f"**Current:** `{context.short_sha}`\n"
    md += f"**Threshold:** {report.threshold}%\n\n"

    md += "### Results\n\n"
    md += "| Screenshot | Status | Diff % |\n"
    md += "|------------|--------|--------|\n"
    for r in report.results:
        md += f"| {r.name} | {_STATUS_EMOJI[r.status]} {r.status} | {_diff_pct(r)} |\n"

    failures = [r for r in report.results if r.status == "fail"]
    if failures:
        md += _failures_section(failures, report, config, context)

    new = [r for r in report.results if r.status == "new"]
    if new:
        md += "\n### New Screenshots\n\n"
        md += "These screenshots have no baseline to compare against:\n\n"
        md += "".join(f"- `{r.name}`\n" for r in new)

    missing = [r for r in report.results if r.status == "missing"]
    if missing:
        md += "\n### Missing Screenshots\n\n"
        md += "These screenshots exist in baseline but not in the current run:\n\n"
        md += "".join(f"- `{r.name}`\n" for r in missing)

    if upload_result and (upload_result.screenshots_url or upload_result.diffs_url):
        md += "\n### Uploaded Results\n\n"
        if upload_result.screenshots_url:
            md += f"- [PR Screenshots]({upload_result.screenshots_url})\n"
        if upload_result.diffs_url:
            md += f"- [Diff Images]({upload_result.diffs_url})\n"

    return md


def write_step_summary(markdown: str, path: str | Path | None = None) -> Path | None:
    """Append markdown to the job summary file, if the runner provides one."""
    target = path or os.environ.get("GITHUB_STEP_SUMMARY")
    if not target:
        logger.debug("GITHUB_STEP_SUMMARY not set, skipping step summary")
        return None
    target = Path(target)
    with open(target, "a", encoding="utf-8") as f:
        f.write(markdown)
    logger.info("Step summary written to %s", target)
    return target
