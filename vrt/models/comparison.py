"""Comparison result data structures produced by the classifier."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Status = Literal["pass", "fail", "new", "missing"]


class _Record(BaseModel):
    # Records are built once per run and never patched afterwards.
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class ComparisonResult(_Record):
    name: str
    status: Status
    diff_pixels: Optional[int] = None
    total_pixels: Optional[int] = None
    diff_percentage: Optional[float] = None
    diff_path: Optional[str] = None
    baseline_path: Optional[str] = None
    current_path: Optional[str] = None


class ComparisonSummary(_Record):
    total: int = 0
    passed: int = 0
    failed: int = 0
    new: int = 0
    missing: int = 0

    @property
    def result(self) -> str:
        """Overall verdict: new screenshots alone never fail a run."""
        return "fail" if self.failed > 0 or self.missing > 0 else "pass"


class ComparisonReport(_Record):
    timestamp: str
    baseline_alias: str
    baseline_commit_sha: str
    baseline_is_public: bool = False
    current_commit_sha: str
    threshold: float
    results: tuple[ComparisonResult, ...] = ()
    summary: ComparisonSummary = Field(default_factory=ComparisonSummary)

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class BaselineManifest(_Record):
    """Where baseline files were materialized and under which revision."""
    commit_sha: str
    is_public: bool = False
    output_dir: str
    file_count: int = 0
    files: tuple[str, ...] = ()  # paths relative to output_dir
