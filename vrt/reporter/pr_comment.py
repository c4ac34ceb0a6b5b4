"""
Pull request comment

Posts the markdown report on the pull request. A previous comment carrying the
same header is edited in place so repeated runs keep a single comment.
"""

from __future__ import annotations

import logging
import os

import httpx

from vrt.exceptions import GitHubApiError
from vrt.models.comparison import ComparisonReport
from vrt.models.config import CompareConfig
from vrt.models.context import GitContext
from vrt.models.transfer import UploadResult
from vrt.reporter.markdown_report import render_summary

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


class GitHubCommentClient:
    """Minimal async client for the issue comment endpoints of the GitHub REST API."""

    def __init__(self, token: str, api_url: str = GITHUB_API_URL, timeout: float = 30.0):
        self.client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=timeout,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self) -> None:
        await self.client.aclose()

    async def list_comments(self, repository: str, issue_number: int) -> list[dict]:
        return await self._request(
            "GET", f"/repos/{repository}/issues/{issue_number}/comments", params={"per_page": 100},
        )

    async def create_comment(self, repository: str, issue_number: int, body: str) -> dict:
        return await self._request(
            "POST", f"/repos/{repository}/issues/{issue_number}/comments", json={"body": body},
        )

    async def update_comment(self, repository: str, comment_id: int, body: str) -> dict:
        return await self._request(
            "PATCH", f"/repos/{repository}/issues/comments/{comment_id}", json={"body": body},
        )

    async def _request(self, method: str, url: str, **kwargs):
        try:
            response = await self.client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise GitHubApiError(f"Unable to reach GitHub API: {e}", context={"url": url}) from e
        if response.is_error:
            raise GitHubApiError(
                f"GitHub API returned {response.status_code}: {response.text[:200]}",
                recovery_hint="The workflow token needs pull-requests: write permission.",
                context={"url": url},
            )
        return response.json()


def find_existing_comment(comments: list[dict], header: str) -> dict | None:
    """First bot-authored comment whose body contains ``header``."""
    for comment in comments:
        if (comment.get("user") or {}).get("type") == "Bot" and header in (comment.get("body") or ""):
            return comment
    return None


async def post_pr_comment(
    report: ComparisonReport,
    config: CompareConfig,
    context: GitContext,
    upload_result: UploadResult | None = None,
    client: GitHubCommentClient | None = None,
) -> int | None:
    """Create or update the report comment. Returns the comment id, or None when skipped."""
    if context.pr_number is None:
        logger.info("Not in a PR context, skipping PR comment")
        return None

    if client is None:
        token = os.environ.get("GITHUB_TOKEN")
        if not token:
            logger.warning("GITHUB_TOKEN not available, skipping PR comment")
            return None
        async with GitHubCommentClient(token, os.environ.get("GITHUB_API_URL", GITHUB_API_URL)) as owned:
            return await post_pr_comment(report, config, context, upload_result, client=owned)

    repository = config.repository or context.repository
    body = render_summary(report, config, context, upload_result, title=config.comment_header)

    comments = await client.list_comments(repository, context.pr_number)
    existing = find_existing_comment(comments, config.comment_header)
    if existing:
        await client.update_comment(repository, existing["id"], body)
        logger.info("Updated existing PR comment (ID: %s)", existing["id"])
        return existing["id"]

    created = await client.create_comment(repository, context.pr_number, body)
    logger.info("Created new PR comment (ID: %s)", created["id"])
    return created["id"]
