"""Outputs exposed to the calling workflow after a run."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel


class RunOutputs(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    new: int = 0
    missing: int = 0
    result: Literal["pass", "fail", "error"] = "pass"
    report: str = ""  # the full report as JSON
    baseline_commit_sha: str = ""
    baseline_is_public: bool = False
    screenshots_url: Optional[str] = None
    diffs_url: Optional[str] = None

    def as_action_outputs(self) -> dict[str, str]:
        """Output names and string values as the workflow sees them."""
        outputs = {
            "total": str(self.total),
            "passed": str(self.passed),
            "failed": str(self.failed),
            "new": str(self.new),
            "missing": str(self.missing),
            "result": self.result,
            "report": self.report,
            "baseline-commit-sha": self.baseline_commit_sha,
            "baseline-is-public": str(self.baseline_is_public).lower(),
        }
        if self.screenshots_url:
            outputs["screenshots-url"] = self.screenshots_url
        if self.diffs_url:
            outputs["diffs-url"] = self.diffs_url
        return outputs
