"""Source-control context for the current run."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel


class GitContext(BaseModel):
    repository: str
    commit_sha: str
    branch: str = ""
    pr_number: Optional[int] = None

    @property
    def short_sha(self) -> str:
        return self.commit_sha[:7]
