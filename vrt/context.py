"""Git context derivation from the CI environment."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Mapping

from vrt.exceptions import ConfigurationError
from vrt.models.context import GitContext

logger = logging.getLogger(__name__)


def derive_context(env: Mapping[str, str] | None = None) -> GitContext:
    """Build the commit/branch/PR context of the current run.

    Pull request events report the head commit and branch rather than the
    merge commit GitHub checks out.
    """
    env = os.environ if env is None else env
    repository = env.get("GITHUB_REPOSITORY", "")
    commit_sha = env.get("GITHUB_SHA", "")
    branch = env.get("GITHUB_REF", "").removeprefix("refs/heads/")
    pr_number = None

    if env.get("GITHUB_EVENT_NAME") == "pull_request":
        pull_request = _load_event(env.get("GITHUB_EVENT_PATH")).get("pull_request")
        if pull_request:
            commit_sha = pull_request["head"]["sha"]
            branch = pull_request["head"]["ref"]
            pr_number = pull_request["number"]

    if not commit_sha:
        raise ConfigurationError(
            "Unable to determine the current commit",
            recovery_hint="Set GITHUB_SHA or run inside a GitHub Actions workflow.",
        )
    return GitContext(repository=repository, commit_sha=commit_sha, branch=branch, pr_number=pr_number)


def _load_event(path: str | None) -> dict:
    if not path or not Path(path).exists():
        logger.debug("No event payload available")
        return {}
    with open(path) as f:
        return json.load(f)
